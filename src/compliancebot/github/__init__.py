from gidgethub.routing import Router
from gidgethub.sansio import Event
from sanic.log import logger

from compliancebot.metric import event_skipped_counter


def create_router():
    router = Router()

    @router.register("pull_request")
    async def on_pr(event: Event, orchestrator, settings):
        repository = event.data.get("repository") or {}
        full_name = repository.get("full_name")
        if full_name is None:
            owner = (repository.get("owner") or {}).get("login")
            name = repository.get("name")
            if owner and name:
                full_name = f"{owner}/{name}"
        logger.debug(
            "Received pull_request event %s on %s", event.data.get("action"), full_name
        )

        if settings.repo_allowlist is not None and (
            full_name is None or not settings.is_repo_allowed(full_name)
        ):
            logger.warning("Webhook triggered on repository not in allowlist: %s", full_name)
            event_skipped_counter.labels(reason="allowlist").inc()
            return

        if settings.dry_run:
            logger.info("Dry run, not processing delivery %s", event.delivery_id)
            event_skipped_counter.labels(reason="dry_run").inc()
            return

        await orchestrator.on_pull_request_event(
            event.data, delivery_id=event.delivery_id
        )

    return router
