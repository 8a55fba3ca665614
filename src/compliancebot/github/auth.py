import asyncio
import logging

import aiohttp
from gidgethub import aiohttp as gh_aiohttp
from gidgethub.apps import get_installation_access_token

from compliancebot.config import Settings
from compliancebot.errors import AuthError
from compliancebot.github.api import API
from compliancebot.metric import record_api_call

logger = logging.getLogger("compliancebot")

REQUESTER = "compliancebot"


class InstallationAuthenticator:
    """Exchanges the app identity for an installation scoped API client.

    A new token and a new client are produced for every call; nothing is
    cached between events. Only the aiohttp session (connection pool) is
    shared.
    """

    def __init__(self, session: aiohttp.ClientSession, settings: Settings):
        self.session = session
        self.settings = settings

    async def get_access_token(self, installation_id: int) -> str:
        gh = gh_aiohttp.GitHubAPI(self.session, REQUESTER)
        logger.debug("Getting installation access token for %d", installation_id)
        record_api_call("installation_token")
        access_token_response = await asyncio.wait_for(
            get_installation_access_token(
                gh,
                installation_id=installation_id,
                app_id=self.settings.github_app_id,
                private_key=self.settings.github_private_key,
            ),
            timeout=self.settings.api_timeout,
        )
        return access_token_response["token"]

    async def authenticate(self, installation_id: int) -> API:
        try:
            token = await self.get_access_token(installation_id)
        except Exception as e:  # noqa: BLE001
            raise AuthError(
                f"Unable to authenticate installation {installation_id}: {e!r}",
                installation_id=installation_id,
            ) from e

        gh = gh_aiohttp.GitHubAPI(self.session, REQUESTER, oauth_token=token)
        return API(gh, installation_id, timeout=self.settings.api_timeout)
