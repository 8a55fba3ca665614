from dataclasses import replace
from http import HTTPStatus

from gidgethub import BadRequest, GitHubBroken
import pytest

from compliancebot.errors import AuthError
from compliancebot.orchestrator import Orchestrator
from compliancebot.types import RuleResult
from compliancebot.verification import VerificationEngine

from tests.helpers import HEAD_SHA, FakeAuthenticator, FakeGitHub, make_pr_event


def make_orchestrator(settings, gh, **kwargs):
    authenticator = FakeAuthenticator(gh, error=kwargs.pop("auth_error", None))
    return Orchestrator(settings, authenticator, **kwargs), authenticator


@pytest.mark.asyncio
async def test_all_required_files_present(settings):
    gh = FakeGitHub(files={"README.md", "CONTRIBUTING.md"})
    orchestrator, authenticator = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.result == "completed"
    assert result.conclusion == "success"
    assert result.check_run_id == 4242
    assert result.comment_posted
    assert authenticator.calls == [99]

    assert len(gh.created) == 1
    [(_, data)] = gh.updated
    assert data["status"] == "completed"
    assert data["conclusion"] == "success"
    assert data["output"]["summary"] == "2 / 2 required files present"
    assert data["output"]["title"] == "Compliance (files): PASSED"

    [(url_vars, comment)] = gh.comments
    assert url_vars["issue_number"] == 7
    assert comment["body"].startswith("✅ **Compliance PASSED**")


@pytest.mark.asyncio
async def test_missing_required_file(settings):
    gh = FakeGitHub(files={"README.md"})
    orchestrator, _ = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.result == "completed"
    assert result.conclusion == "failure"
    [(_, data)] = gh.updated
    assert data["conclusion"] == "failure"
    assert data["output"]["summary"] == "1 / 2 required files present"

    [(_, comment)] = gh.comments
    header = comment["body"].splitlines()[0]
    assert "Missing: CONTRIBUTING.md" in header
    assert "README.md" not in header


@pytest.mark.asyncio
async def test_closed_event_contacts_nothing(settings):
    gh = FakeGitHub(files={"README.md", "CONTRIBUTING.md"})
    orchestrator, authenticator = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("closed"))

    assert result.result == "skipped"
    assert authenticator.calls == []
    assert gh.created == gh.updated == gh.comments == gh.content_requests == []


@pytest.mark.asyncio
async def test_unexpected_rule_error_fails_closed(settings):
    gh = FakeGitHub(
        files={"README.md"},
        errors={"CONTRIBUTING.md": BadRequest(HTTPStatus.FORBIDDEN)},
    )
    orchestrator, _ = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("synchronize"))

    assert result.result == "rule_error"
    assert result.conclusion == "failure"
    assert not result.comment_posted
    [(_, data)] = gh.updated
    assert data["status"] == "completed"
    assert data["conclusion"] == "failure"
    assert data["output"]["title"] == "Compliance (files): ERROR"
    assert gh.comments == []


@pytest.mark.asyncio
async def test_malformed_event_is_dropped(settings):
    gh = FakeGitHub()
    orchestrator, authenticator = make_orchestrator(settings, gh)

    event = make_pr_event("opened")
    event["pull_request"]["head"].pop("sha")
    result = await orchestrator.on_pull_request_event(event)

    assert result.result == "skipped"
    assert authenticator.calls == []
    assert gh.created == []


@pytest.mark.asyncio
async def test_unhashable_action_is_dropped(settings):
    gh = FakeGitHub()
    orchestrator, authenticator = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event(["opened"]))

    assert result.result == "skipped"
    assert authenticator.calls == []
    assert gh.created == []


@pytest.mark.asyncio
async def test_auth_error_aborts_before_create(settings):
    gh = FakeGitHub()
    orchestrator, _ = make_orchestrator(
        settings, gh, auth_error=AuthError("nope", installation_id=99)
    )

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.result == "auth_error"
    assert gh.created == gh.updated == []


@pytest.mark.asyncio
async def test_create_error_aborts_without_finalize(settings):
    gh = FakeGitHub(create_error=GitHubBroken(HTTPStatus.SERVICE_UNAVAILABLE))
    orchestrator, _ = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.result == "create_error"
    assert result.check_run_id is None
    assert gh.updated == []
    assert gh.content_requests == []


@pytest.mark.asyncio
async def test_finalize_error_is_degraded_not_fatal(settings):
    gh = FakeGitHub(
        files={"README.md", "CONTRIBUTING.md"},
        update_error=GitHubBroken(HTTPStatus.BAD_GATEWAY),
    )
    orchestrator, _ = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.result == "completed"
    assert result.finalize_failed
    assert len(gh.updated) == 1
    assert result.comment_posted


@pytest.mark.asyncio
async def test_comment_error_does_not_touch_check_run(settings):
    gh = FakeGitHub(
        files={"README.md", "CONTRIBUTING.md"},
        comment_error=BadRequest(HTTPStatus.FORBIDDEN),
    )
    orchestrator, _ = make_orchestrator(settings, gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.result == "completed"
    assert result.conclusion == "success"
    assert not result.comment_posted
    assert "Unable to comment" in result.error
    assert len(gh.updated) == 1


@pytest.mark.asyncio
async def test_comments_can_be_disabled(settings):
    gh = FakeGitHub(files={"README.md", "CONTRIBUTING.md"})
    orchestrator, _ = make_orchestrator(replace(settings, post_comment=False), gh)

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.conclusion == "success"
    assert gh.comments == []


@pytest.mark.asyncio
async def test_configured_required_files(settings):
    gh = FakeGitHub(files={"LICENSE"})
    orchestrator, _ = make_orchestrator(
        replace(settings, required_files=("LICENSE",), check_run_name="Policy"), gh
    )

    result = await orchestrator.on_pull_request_event(make_pr_event("reopened"))

    assert result.conclusion == "success"
    [(_, created)] = gh.created
    assert created["name"] == "Policy"
    assert gh.content_requests == [("LICENSE", HEAD_SHA)]


@pytest.mark.asyncio
async def test_non_rule_error_still_finalizes(settings):
    class BrokenRule:
        name = "broken"

        async def check(self, ref, api):
            return "not a rule result"

    gh = FakeGitHub()
    orchestrator, _ = make_orchestrator(
        settings, gh, engine=VerificationEngine([BrokenRule()])
    )

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.result == "error"
    assert result.conclusion == "failure"
    assert len(gh.updated) == 1
    assert gh.comments == []


@pytest.mark.asyncio
async def test_rerun_produces_identical_report(settings):
    outputs = []
    comments = []
    for _ in range(2):
        gh = FakeGitHub(files={"README.md"})
        orchestrator, _ = make_orchestrator(settings, gh)
        await orchestrator.on_pull_request_event(make_pr_event("synchronize"))
        [(_, data)] = gh.updated
        outputs.append(data["output"])
        comments.append(gh.comments[0][1]["body"])

    assert outputs[0] == outputs[1]
    assert comments[0] == comments[1]


@pytest.mark.asyncio
async def test_generic_rules_report_as_checks(settings):
    class Rule:
        def __init__(self, name, passed):
            self.name = name
            self.passed = passed

        async def check(self, ref, api):
            return RuleResult(name=self.name, passed=self.passed)

    gh = FakeGitHub()
    engine = VerificationEngine([Rule("lint", True), Rule("vulnerabilities", False)])
    orchestrator, _ = make_orchestrator(settings, gh, engine=engine)

    result = await orchestrator.on_pull_request_event(make_pr_event("opened"))

    assert result.conclusion == "failure"
    [(_, data)] = gh.updated
    assert data["output"]["summary"] == "1 / 2 checks passed"
    assert "Failed: vulnerabilities" in gh.comments[0][1]["body"]
