import asyncio
from typing import Any, Awaitable

from gidgethub import BadRequest
from gidgethub.abc import GitHubAPI
from sanic.log import logger

from compliancebot.github.model import CheckRun
from compliancebot.metric import record_api_call


class API:
    gh: GitHubAPI
    installation: int
    timeout: float

    call_count: int

    def __init__(self, gh: GitHubAPI, installation: int, timeout: float = 10.0):
        self.gh = gh
        self.installation = installation
        self.timeout = timeout
        self.call_count = 0

    async def _call(self, endpoint: str, request: Awaitable[Any]) -> Any:
        self.call_count += 1
        record_api_call(endpoint)
        return await asyncio.wait_for(request, timeout=self.timeout)

    async def create_check_run(
        self, owner: str, repo: str, check_run: CheckRun
    ) -> CheckRun:
        if check_run.id is not None:
            raise ValueError(f"Check run {check_run.id} already exists")
        endpoint = f"/repos/{owner}/{repo}/check-runs"
        logger.debug("Creating check run %s on sha %s", endpoint, check_run.head_sha)
        data = await self._call(
            endpoint,
            self.gh.post(
                "/repos/{owner}/{repo}/check-runs",
                {"owner": owner, "repo": repo},
                data=check_run.payload(),
            ),
        )
        return check_run.model_copy(
            update={"id": data["id"], "html_url": data.get("html_url")}
        )

    async def update_check_run(self, owner: str, repo: str, check_run: CheckRun) -> None:
        if check_run.id is None:
            raise ValueError("Cannot update a check run without id")
        endpoint = f"/repos/{owner}/{repo}/check-runs/{check_run.id}"
        logger.debug("Updating check run %d, %s", check_run.id, endpoint)
        await self._call(
            endpoint,
            self.gh.patch(
                "/repos/{owner}/{repo}/check-runs/{check_run_id}",
                {"owner": owner, "repo": repo, "check_run_id": check_run.id},
                data=check_run.payload(),
            ),
        )

    async def file_exists(self, owner: str, repo: str, path: str, ref: str) -> bool:
        endpoint = f"/repos/{owner}/{repo}/contents/{path}"
        logger.debug("Get file content: %s @ %s", endpoint, ref)
        try:
            await self._call(
                endpoint,
                self.gh.getitem(
                    "/repos/{owner}/{repo}/contents/{+path}{?ref}",
                    {"owner": owner, "repo": repo, "path": path, "ref": ref},
                ),
            )
        except BadRequest as e:
            if e.status_code == 404:
                return False
            raise e
        return True

    async def post_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> None:
        endpoint = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
        logger.debug("Posting comment on %s", endpoint)
        await self._call(
            endpoint,
            self.gh.post(
                "/repos/{owner}/{repo}/issues/{issue_number}/comments",
                {"owner": owner, "repo": repo, "issue_number": issue_number},
                data={"body": body},
            ),
        )

    async def get_pull(self, owner: str, repo: str, number: int) -> dict:
        endpoint = f"/repos/{owner}/{repo}/pulls/{number}"
        logger.debug("Get pull %s", endpoint)
        return await self._call(
            endpoint,
            self.gh.getitem(
                "/repos/{owner}/{repo}/pulls/{number}",
                {"owner": owner, "repo": repo, "number": number},
            ),
        )
