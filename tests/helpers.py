import asyncio
from http import HTTPStatus
from typing import Dict, Optional, Set

from gidgethub import BadRequest

from compliancebot.github.api import API

HEAD_SHA = "a" * 40


class FakeGitHub:
    """Stands in for ``gidgethub.abc.GitHubAPI`` and records every request."""

    def __init__(
        self,
        *,
        files: Optional[Set[str]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        delays: Optional[Dict[str, float]] = None,
        check_run_id: int = 4242,
        create_error: Optional[Exception] = None,
        update_error: Optional[Exception] = None,
        comment_error: Optional[Exception] = None,
    ):
        self.files = set(files or ())
        self.errors = dict(errors or {})
        self.delays = dict(delays or {})
        self.check_run_id = check_run_id
        self.create_error = create_error
        self.update_error = update_error
        self.comment_error = comment_error
        self.created = []
        self.updated = []
        self.comments = []
        self.content_requests = []

    async def getitem(self, url, url_vars=None, **kwargs):
        url_vars = url_vars or {}
        if "contents" in url:
            path = url_vars["path"]
            self.content_requests.append((path, url_vars.get("ref")))
            if path in self.delays:
                await asyncio.sleep(self.delays[path])
            if path in self.errors:
                raise self.errors[path]
            if path not in self.files:
                raise BadRequest(HTTPStatus.NOT_FOUND)
            return {"type": "file", "path": path}
        if "pulls" in url:
            return {
                "number": url_vars["number"],
                "head": {"ref": "feature", "sha": HEAD_SHA},
            }
        raise AssertionError(f"Unexpected GET {url}")

    async def post(self, url, url_vars=None, *, data, **kwargs):
        if url.endswith("/check-runs"):
            self.created.append((url_vars, data))
            if self.create_error is not None:
                raise self.create_error
            return {"id": self.check_run_id, "html_url": "https://github.com/run"}
        if url.endswith("/comments"):
            self.comments.append((url_vars, data))
            if self.comment_error is not None:
                raise self.comment_error
            return {"id": 1}
        raise AssertionError(f"Unexpected POST {url}")

    async def patch(self, url, url_vars=None, *, data, **kwargs):
        self.updated.append((url_vars, data))
        if self.update_error is not None:
            raise self.update_error
        return {"id": url_vars["check_run_id"]}


class FakeAuthenticator:
    def __init__(self, gh: FakeGitHub, error: Optional[Exception] = None):
        self.gh = gh
        self.error = error
        self.calls = []

    async def authenticate(self, installation_id: int) -> API:
        self.calls.append(installation_id)
        if self.error is not None:
            raise self.error
        return API(self.gh, installation_id, timeout=1.0)


def make_pr_event(action: str = "opened", **overrides) -> dict:
    data = {
        "action": action,
        "number": 7,
        "installation": {"id": 99},
        "repository": {
            "id": 500,
            "name": "repo",
            "full_name": "org/repo",
            "owner": {"login": "org"},
            "private": False,
        },
        "pull_request": {
            "id": 5001,
            "number": 7,
            "head": {"ref": "feature", "sha": HEAD_SHA},
        },
    }
    data.update(overrides)
    return data
