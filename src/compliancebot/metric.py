import re

from prometheus_client import Counter

request_counter = Counter(
    "compliancebot_num_req", "Total number of requests", labelnames=["path"]
)
webhook_counter = Counter(
    "compliancebot_num_webhook", "Total number of webhooks", labelnames=["event"]
)
event_skipped_counter = Counter(
    "compliancebot_num_event_skipped",
    "Total number of pull request events not acted upon",
    labelnames=["reason"],
)

orchestration_counter = Counter(
    "compliancebot_num_orchestration",
    "Outcomes of pull request orchestrations",
    labelnames=["result"],
)

check_run_finalized = Counter(
    "compliancebot_check_run_finalized",
    "Number of check runs moved to completed",
    labelnames=["conclusion"],
)

error_counter = Counter(
    "compliancebot_error_counter", "Total number of errors", labelnames=["context"]
)

api_call_count = Counter(
    "compliancebot_num_api_calls",
    "Total number of GitHub API calls",
    labelnames=["endpoint"],
)

_CHECK_RUN_RE = re.compile(r"^/repos/[^/]+/[^/]+/check-runs(/\d+)?$")
_CONTENTS_RE = re.compile(r"^/repos/[^/]+/[^/]+/contents/")
_COMMENTS_RE = re.compile(r"^/repos/[^/]+/[^/]+/issues/\d+/comments$")
_PULL_RE = re.compile(r"^/repos/[^/]+/[^/]+/pulls/\d+$")


def _normalize_api_endpoint(endpoint: str) -> str:
    if endpoint == "installation_token" or endpoint.endswith("/access_tokens"):
        return "installation_token"
    if match := _CHECK_RUN_RE.match(endpoint):
        return "check_run_update" if match.group(1) else "check_run_create"
    if _CONTENTS_RE.match(endpoint):
        return "contents/xxx"
    if _COMMENTS_RE.match(endpoint):
        return "issue_comment"
    if _PULL_RE.match(endpoint):
        return "pulls"
    return "other"


def record_api_call(endpoint: str) -> None:
    api_call_count.labels(endpoint=_normalize_api_endpoint(endpoint)).inc()
