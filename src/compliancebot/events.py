from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

import pydantic

from compliancebot.errors import MalformedEvent
from compliancebot.github.model import PullRequestEvent
from compliancebot.metric import event_skipped_counter
from compliancebot.types import InstallationContext, PullRequestRef

logger = logging.getLogger("compliancebot")

ACTIONABLE_ACTIONS = frozenset({"opened", "reopened", "synchronize"})


def parse_pull_request_event(
    data: Mapping[str, Any]
) -> Tuple[InstallationContext, PullRequestRef]:
    """Extract the correlation fields of an actionable event.

    Raises :class:`MalformedEvent` if any required field is missing.
    """
    try:
        event = PullRequestEvent.model_validate(data)
    except pydantic.ValidationError as e:
        raise MalformedEvent(f"Undecodable pull_request payload: {e}") from e

    installation_id = event.installation.id if event.installation else None
    repository = event.repository
    owner = (
        repository.owner.login
        if repository is not None and repository.owner is not None
        else None
    )
    repo = repository.name if repository is not None else None
    pr = event.pull_request
    head = pr.head if pr is not None else None
    head_sha = head.sha if head is not None else None
    head_ref = head.ref if head is not None else None
    pr_number = event.number
    if pr_number is None and pr is not None:
        pr_number = pr.number

    missing = [
        name
        for name, value in (
            ("installation.id", installation_id),
            ("repository.owner.login", owner),
            ("repository.name", repo),
            ("pull_request.head.sha", head_sha),
            ("number", pr_number),
        )
        if not value
    ]
    if missing:
        raise MalformedEvent(f"Missing fields: {', '.join(missing)}")

    return (
        InstallationContext(installation_id=installation_id, owner=owner, repo=repo),
        PullRequestRef(
            owner=owner,
            repo=repo,
            pr_number=pr_number,
            head_sha=head_sha,
            head_ref=head_ref,
        ),
    )


def filter_pull_request_event(
    data: Mapping[str, Any], delivery_id: Optional[str] = None
) -> Optional[Tuple[InstallationContext, PullRequestRef]]:
    action = data.get("action")
    if not isinstance(action, str):
        logger.warning(
            "Dropping malformed pull_request event (delivery %s): action is %r",
            delivery_id,
            action,
        )
        event_skipped_counter.labels(reason="malformed").inc()
        return None
    if action not in ACTIONABLE_ACTIONS:
        logger.debug("Ignoring pull_request action %s (delivery %s)", action, delivery_id)
        event_skipped_counter.labels(reason="action").inc()
        return None

    try:
        context, ref = parse_pull_request_event(data)
    except MalformedEvent as e:
        logger.warning(
            "Dropping malformed pull_request event (delivery %s): %s", delivery_id, e
        )
        event_skipped_counter.labels(reason="malformed").inc()
        return None

    logger.info(
        "PR event delivery=%s action=%s installation=%d ref=%s head_ref=%s",
        delivery_id,
        action,
        context.installation_id,
        ref,
        ref.head_ref,
    )
    return context, ref
