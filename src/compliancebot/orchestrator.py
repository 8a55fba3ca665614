from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Mapping, Optional, Protocol

from compliancebot.checkrun import CheckRunLifecycle
from compliancebot.config import Settings
from compliancebot.errors import AuthError, CommentError, CreateError, RuleExecutionError
from compliancebot.events import filter_pull_request_event
from compliancebot.github.api import API
from compliancebot.metric import error_counter, orchestration_counter
from compliancebot.report import render_report
from compliancebot.types import PullRequestRef, Report, Verdict
from compliancebot.verification import VerificationEngine, required_file_rules

logger = logging.getLogger("compliancebot")


class Authenticator(Protocol):
    async def authenticate(self, installation_id: int) -> API:
        ...


@dataclass(frozen=True)
class OrchestrationResult:
    result: str
    conclusion: Optional[str] = None
    check_run_id: Optional[int] = None
    comment_posted: bool = False
    finalize_failed: bool = False
    error: Optional[str] = None


class Orchestrator:
    def __init__(
        self,
        settings: Settings,
        authenticator: Authenticator,
        engine: Optional[VerificationEngine] = None,
    ):
        self.settings = settings
        self.authenticator = authenticator
        if engine is None:
            engine = VerificationEngine(required_file_rules(settings.required_files))
        self.engine = engine

    async def on_pull_request_event(
        self, data: Mapping[str, Any], delivery_id: Optional[str] = None
    ) -> OrchestrationResult:
        started = time.monotonic()
        result = await self._handle(data, delivery_id)
        orchestration_counter.labels(result=result.result).inc()
        logger.info(
            "Orchestration done delivery=%s result=%s conclusion=%s check_run_id=%s "
            "comment_posted=%s duration_ms=%.1f",
            delivery_id,
            result.result,
            result.conclusion,
            result.check_run_id,
            result.comment_posted,
            (time.monotonic() - started) * 1000.0,
        )
        return result

    async def _handle(
        self, data: Mapping[str, Any], delivery_id: Optional[str]
    ) -> OrchestrationResult:
        target = filter_pull_request_event(data, delivery_id=delivery_id)
        if target is None:
            return OrchestrationResult(result="skipped")
        context, ref = target

        try:
            api = await self.authenticator.authenticate(context.installation_id)
        except AuthError as e:
            error_counter.labels(context="auth").inc()
            logger.error("Authentication failed for %s", ref, exc_info=True)
            return OrchestrationResult(result="auth_error", error=str(e))

        return await self.process(ref, api)

    async def process(self, ref: PullRequestRef, api: API) -> OrchestrationResult:
        """Run the compliance checks for one head commit and report them."""
        logger.info("Begin handling %s", ref)
        lifecycle = CheckRunLifecycle(api, ref, name=self.settings.check_run_name)
        verdict: Optional[Verdict] = None
        report: Optional[Report] = None
        result = "completed"
        error = None

        try:
            async with lifecycle.scope():
                verdict = await self.engine.run(ref, api)
                report = render_report(verdict, check_name=self.settings.check_run_name)
                lifecycle.conclude(verdict.conclusion, report)
        except CreateError as e:
            logger.error("Aborting %s, check run not created", ref, exc_info=True)
            return OrchestrationResult(result="create_error", error=str(e))
        except RuleExecutionError as e:
            logger.error(
                "Rule %s raised unexpectedly on %s", e.rule_name, ref, exc_info=True
            )
            result, error, report = "rule_error", str(e), None
        except Exception as e:  # noqa: BLE001
            error_counter.labels(context="orchestration").inc()
            logger.error("Error during compliance checks on %s", ref, exc_info=True)
            result, error, report = "error", str(e), None

        check_run = lifecycle.check_run
        comment_posted = False
        if report is not None and self.settings.post_comment:
            try:
                comment_posted = await self.post_comment(api, ref, report)
            except CommentError as e:
                error_counter.labels(context="comment").inc()
                logger.error("Comment failed on %s", ref, exc_info=True)
                error = str(e)

        logger.info("Finished handling %s, API calls: %d", ref, api.call_count)
        return OrchestrationResult(
            result=result,
            conclusion=lifecycle.conclusion,
            check_run_id=check_run.id if check_run is not None else None,
            comment_posted=comment_posted,
            finalize_failed=lifecycle.finalize_failed,
            error=error,
        )

    async def post_comment(self, api: API, ref: PullRequestRef, report: Report) -> bool:
        if report.comment_markdown is None:
            return False
        try:
            await api.post_issue_comment(
                ref.owner, ref.repo, ref.pr_number, report.comment_markdown
            )
        except Exception as e:  # noqa: BLE001
            raise CommentError(f"Unable to comment on {ref}: {e!r}") from e
        logger.info("Commented on %s", ref)
        return True
