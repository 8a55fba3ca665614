from datetime import datetime, timezone
from typing import Literal, Optional

import pydantic


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(Model):
    login: Optional[str] = None


class Installation(Model):
    id: Optional[int] = None


class Repository(Model):
    id: Optional[int] = None
    name: Optional[str] = None
    full_name: Optional[str] = None
    owner: Optional[Account] = None
    private: Optional[bool] = None


class PrConnection(Model):
    ref: Optional[str] = None
    sha: Optional[str] = None


class PullRequest(Model):
    id: Optional[int] = None
    number: Optional[int] = None
    head: Optional[PrConnection] = None
    html_url: Optional[str] = None


class PullRequestEvent(Model):
    action: Optional[str] = None
    number: Optional[int] = None
    installation: Optional[Installation] = None
    repository: Optional[Repository] = None
    pull_request: Optional[PullRequest] = None


class CheckRunOutput(Model):
    title: Optional[str] = None
    summary: Optional[str] = None
    text: Optional[str] = None


class CheckRun(Model):
    id: Optional[int] = None
    name: str
    head_sha: str
    status: Literal["completed", "queued", "in_progress"] = "queued"
    conclusion: Optional[Literal["success", "failure"]] = None
    started_at: datetime = pydantic.Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    output: Optional[CheckRunOutput] = None
    html_url: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def payload(self) -> dict:
        fields = {"name", "head_sha", "status", "started_at"}
        if self.completed_at is not None:
            fields.add("completed_at")
        if self.conclusion is not None:
            fields.add("conclusion")
        payload = self.model_dump(include=fields, exclude_none=False)

        if self.output is not None:
            payload["output"] = self.output.model_dump(exclude_none=True)

        for k, v in payload.items():
            if isinstance(v, datetime):
                payload[k] = v.strftime("%Y-%m-%dT%H:%M:%SZ")

        return payload
