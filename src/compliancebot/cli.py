import asyncio
import logging
from typing import Optional

import aiohttp
from gidgethub import GitHubException
import typer

from compliancebot.config import Settings
from compliancebot.errors import ComplianceError
from compliancebot.events import parse_pull_request_event
from compliancebot.github.auth import InstallationAuthenticator
from compliancebot.logger import configure_logging
from compliancebot.orchestrator import Orchestrator

logger = logging.getLogger("compliancebot")

app = typer.Typer()


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj


@app.callback()
def init(ctx: typer.Context):
    settings = Settings.from_env()
    configure_logging(settings)
    ctx.obj = settings


@app.command()
def serve(ctx: typer.Context, host: str = "0.0.0.0", port: Optional[int] = None):
    from compliancebot.web import create_app

    settings = _settings(ctx)
    create_app(settings).run(
        host=host,
        port=port if port is not None else settings.port,
        single_process=True,
    )


@app.command()
def pr(ctx: typer.Context, repo: str, number: int, installation: int):
    """Run the compliance checks for REPO (owner/name) pull request NUMBER."""
    settings = _settings(ctx)
    owner, _, name = repo.partition("/")
    if not owner or not name:
        raise typer.BadParameter("Expected owner/name", param_hint="REPO")

    async def handle():
        async with aiohttp.ClientSession() as session:
            authenticator = InstallationAuthenticator(session, settings)
            api = await authenticator.authenticate(installation)
            pull = await api.get_pull(owner, name, number)
            _, ref = parse_pull_request_event(
                {
                    "action": "opened",
                    "number": number,
                    "installation": {"id": installation},
                    "repository": {"name": name, "owner": {"login": owner}},
                    "pull_request": pull,
                }
            )
            orchestrator = Orchestrator(settings, authenticator)
            return await orchestrator.process(ref, api)

    try:
        result = asyncio.run(handle())
    except (
        ComplianceError,
        GitHubException,
        aiohttp.ClientError,
        asyncio.TimeoutError,
    ) as e:
        logger.error("Unable to process %s#%d", repo, number, exc_info=True)
        typer.echo(f"{repo}#{number}: failed ({e!r})")
        raise typer.Exit(code=1)

    typer.echo(f"{repo}#{number}: {result.result} ({result.conclusion})")
    if result.result != "completed":
        raise typer.Exit(code=1)


def main():
    app()
