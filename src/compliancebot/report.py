from __future__ import annotations

from tabulate import tabulate

from compliancebot.types import Report, RuleResult, Verdict

HEADERS = ("Check", "Result", "Notes")


def _all_files(verdict: Verdict) -> bool:
    return all(r.kind == "file" for r in verdict.results)


def _result_cell(result: RuleResult) -> str:
    if result.kind == "file":
        return "✅ Present" if result.passed else "❌ Missing"
    return "✅ Passed" if result.passed else "❌ Failed"


def render_table(verdict: Verdict) -> str:
    rows = [(r.name, _result_cell(r), r.notes) for r in verdict.results]
    return tabulate(rows, headers=HEADERS, tablefmt="github", disable_numparse=True)


def render_summary(verdict: Verdict) -> str:
    if _all_files(verdict):
        noun = "required files present"
    else:
        noun = "checks passed"
    return f"{verdict.passed_count} / {verdict.total_count} {noun}"


def render_title(verdict: Verdict, check_name: str = "Compliance") -> str:
    scope = "files" if _all_files(verdict) else "checks"
    state = "PASSED" if verdict.overall_pass else "FAILED"
    return f"{check_name} ({scope}): {state}"


def render_comment(verdict: Verdict, check_name: str = "Compliance") -> str:
    files = _all_files(verdict)
    if verdict.overall_pass:
        detail = "all required files are present." if files else "all checks passed."
        header = f"✅ **{check_name} PASSED**: {detail}"
    else:
        label = "Missing" if files else "Failed"
        names = ", ".join(r.name for r in verdict.failures)
        header = f"❌ **{check_name} FAILED**: {label}: {names}"
    return f"{header}\n\n{render_table(verdict)}"


def render_report(verdict: Verdict, check_name: str = "Compliance") -> Report:
    heading = "### Required files" if _all_files(verdict) else "### Checks"
    return Report(
        title=render_title(verdict, check_name),
        summary=render_summary(verdict),
        detail_markdown=f"{heading}\n{render_table(verdict)}",
        comment_markdown=render_comment(verdict, check_name),
    )


def error_report(check_name: str = "Compliance") -> Report:
    return Report(
        title=f"{check_name} (files): ERROR",
        summary="Error while performing compliance checks",
        detail_markdown="See app logs for details.",
    )
