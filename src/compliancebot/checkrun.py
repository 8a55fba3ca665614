from __future__ import annotations

from contextlib import asynccontextmanager
from enum import Enum
import logging
from typing import AsyncIterator, Optional

from compliancebot.errors import CheckRunStateError, CreateError, FinalizeError
from compliancebot.github.api import API
from compliancebot.github.model import CheckRun, CheckRunOutput, utcnow
from compliancebot.metric import check_run_finalized, error_counter
from compliancebot.report import error_report
from compliancebot.types import PullRequestRef, Report

logger = logging.getLogger("compliancebot")


class CheckRunState(Enum):
    absent = 1
    in_progress = 2
    completed = 3


class CheckRunLifecycle:
    """Owns the single check run posted for one pull request head commit.

    The run moves ``absent -> in_progress -> completed`` and ``completed`` is
    terminal. :meth:`scope` guarantees that a created run is finalized exactly
    once, falling back to a failure with the generic error report when no
    conclusion was recorded.
    """

    def __init__(self, api: API, ref: PullRequestRef, name: str = "Compliance"):
        self.api = api
        self.ref = ref
        self.name = name
        self.check_run: Optional[CheckRun] = None
        self.finalize_failed = False
        self._pending: Optional[tuple[str, Report]] = None

    @property
    def state(self) -> CheckRunState:
        if self.check_run is None:
            return CheckRunState.absent
        if self.check_run.is_completed:
            return CheckRunState.completed
        return CheckRunState.in_progress

    @property
    def conclusion(self) -> Optional[str]:
        if self.check_run is None:
            return None
        return self.check_run.conclusion

    async def create(self) -> CheckRun:
        if self.state != CheckRunState.absent:
            raise CheckRunStateError(f"Check run for {self.ref} already created")

        check_run = CheckRun(
            name=self.name, head_sha=self.ref.head_sha, status="in_progress"
        )
        try:
            self.check_run = await self.api.create_check_run(
                self.ref.owner, self.ref.repo, check_run
            )
        except Exception as e:  # noqa: BLE001
            error_counter.labels(context="check_run_create").inc()
            raise CreateError(f"Unable to create check run for {self.ref}: {e!r}") from e

        logger.info("Created check run %d for %s", self.check_run.id, self.ref)
        return self.check_run

    def conclude(self, conclusion: str, report: Report) -> None:
        """Record the outcome that :meth:`scope` finalizes with on exit."""
        if conclusion not in ("success", "failure"):
            raise ValueError(f"Invalid conclusion {conclusion}")
        if self.state != CheckRunState.in_progress:
            raise CheckRunStateError(f"Check run for {self.ref} is not in progress")
        self._pending = (conclusion, report)

    async def finalize(self, conclusion: str, report: Report) -> None:
        if self.state == CheckRunState.absent:
            raise CheckRunStateError(f"No check run exists for {self.ref}")
        if self.state == CheckRunState.completed:
            raise CheckRunStateError(
                f"Check run {self.check_run.id} is already completed"
            )

        completed = self.check_run.model_copy(
            update={
                "status": "completed",
                "conclusion": conclusion,
                "completed_at": utcnow(),
                "output": CheckRunOutput(
                    title=report.title,
                    summary=report.summary,
                    text=report.detail_markdown,
                ),
            }
        )
        # Completed is recorded before the remote call: no second attempt is
        # ever made, even if this one fails.
        self.check_run = completed

        try:
            await self.api.update_check_run(self.ref.owner, self.ref.repo, completed)
        except Exception as e:  # noqa: BLE001
            self.finalize_failed = True
            error_counter.labels(context="check_run_finalize").inc()
            raise FinalizeError(
                f"Unable to finalize check run {completed.id} for {self.ref}: {e!r}"
            ) from e

        check_run_finalized.labels(conclusion=conclusion).inc()
        logger.info(
            "Finalized check run %d for %s as %s", completed.id, self.ref, conclusion
        )

    @asynccontextmanager
    async def scope(self) -> AsyncIterator["CheckRunLifecycle"]:
        await self.create()
        try:
            yield self
        except BaseException:
            self._pending = None
            raise
        finally:
            if self._pending is not None:
                conclusion, report = self._pending
            else:
                logger.warning(
                    "No verdict for check run %d on %s, finalizing as failure",
                    self.check_run.id,
                    self.ref,
                )
                conclusion, report = "failure", error_report(self.name)
            try:
                await self.finalize(conclusion, report)
            except FinalizeError:
                logger.error(
                    "Finalize failed, remote check run may remain in progress",
                    exc_info=True,
                )
