from __future__ import annotations

import asyncio
import logging
import posixpath
from typing import Iterable, List, Protocol, Sequence

from compliancebot.errors import ConfigError, RuleExecutionError
from compliancebot.github.api import API
from compliancebot.metric import error_counter
from compliancebot.types import PullRequestRef, RuleResult, Verdict

logger = logging.getLogger("compliancebot")


class Rule(Protocol):
    name: str

    async def check(self, ref: PullRequestRef, api: API) -> RuleResult:
        ...


class RequiredFileRule:
    """Passes if ``path`` exists in the repository at the head commit."""

    kind = "file"

    def __init__(self, path: str):
        path = path.strip().lstrip("/")
        if not path:
            raise ConfigError("Required file path must not be empty")
        self.path = path
        self.name = path

    def __repr__(self) -> str:
        return f"RequiredFileRule({self.path!r})"

    @property
    def notes(self) -> str:
        directory = posixpath.dirname(self.path)
        if directory == "":
            return "Checked at repo root"
        return f"Checked at {directory}/"

    async def check(self, ref: PullRequestRef, api: API) -> RuleResult:
        exists = await api.file_exists(ref.owner, ref.repo, self.path, ref=ref.head_sha)
        logger.debug("%s: %s exists=%s", ref, self.path, exists)
        return RuleResult(name=self.name, passed=exists, notes=self.notes, kind=self.kind)


def required_file_rules(paths: Iterable[str]) -> List[RequiredFileRule]:
    return [RequiredFileRule(p) for p in paths]


class VerificationEngine:
    rules: Sequence[Rule]

    def __init__(self, rules: Sequence[Rule]):
        if len(rules) == 0:
            raise ConfigError("At least one compliance rule must be configured")
        names = [r.name for r in rules]
        if len(set(names)) != len(names):
            raise ConfigError(f"Rule names must be unique: {names}")
        self.rules = tuple(rules)

    async def _run_rule(self, rule: Rule, ref: PullRequestRef, api: API) -> RuleResult:
        try:
            return await rule.check(ref, api)
        except Exception as e:  # noqa: BLE001
            error_counter.labels(context="rule").inc()
            raise RuleExecutionError(
                f"Rule {rule.name} failed on {ref}: {e!r}", rule_name=rule.name
            ) from e

    async def run(self, ref: PullRequestRef, api: API) -> Verdict:
        logger.debug("Running %d rules on %s", len(self.rules), ref)
        tasks = [
            asyncio.create_task(self._run_rule(rule, ref, api)) for rule in self.rules
        ]
        try:
            # gather keeps the declared rule order regardless of completion order
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        verdict = Verdict.from_results(results)
        logger.info(
            "%s: %d / %d rules passed",
            ref,
            verdict.passed_count,
            verdict.total_count,
        )
        return verdict
