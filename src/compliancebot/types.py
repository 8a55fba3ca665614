from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


@dataclass(frozen=True)
class InstallationContext:
    installation_id: int
    owner: str
    repo: str


@dataclass(frozen=True)
class PullRequestRef:
    owner: str
    repo: str
    pr_number: int
    head_sha: str
    head_ref: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"PR({self.full_name}#{self.pr_number}@{self.head_sha[:7]})"


@dataclass(frozen=True)
class RuleResult:
    name: str
    passed: bool
    notes: str = ""
    kind: str = "check"


@dataclass(frozen=True)
class Verdict:
    results: Tuple[RuleResult, ...]

    def __post_init__(self):
        if len(self.results) == 0:
            raise ValueError("A verdict needs at least one rule result")

    @classmethod
    def from_results(cls, results: Sequence[RuleResult]) -> "Verdict":
        return cls(results=tuple(results))

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def overall_pass(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> Tuple[RuleResult, ...]:
        return tuple(r for r in self.results if not r.passed)

    @property
    def conclusion(self) -> str:
        return "success" if self.overall_pass else "failure"


@dataclass(frozen=True)
class Report:
    title: str
    summary: str
    detail_markdown: str
    comment_markdown: str | None = None
