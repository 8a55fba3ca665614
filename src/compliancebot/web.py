import aiohttp
from gidgethub import BadRequest, ValidationFailure
from gidgethub import sansio
from prometheus_client import core
from prometheus_client.exposition import generate_latest
from sanic import Request, Sanic, response
from sanic.log import logger

from compliancebot.config import Settings
from compliancebot.github import create_router
from compliancebot.github.auth import InstallationAuthenticator
from compliancebot.metric import error_counter, request_counter, webhook_counter
from compliancebot.orchestrator import Orchestrator


async def process_github_event(app, event: sansio.Event) -> None:
    webhook_counter.labels(event=event.event).inc()

    if event.event != "pull_request":
        logger.debug("Ignoring event %s", event.event)
        return

    logger.debug("Dispatching event %s (delivery %s)", event.event, event.delivery_id)
    try:
        await app.ctx.github_router.dispatch(
            event, app.ctx.orchestrator, app.ctx.settings
        )
    except Exception:  # noqa: BLE001
        error_counter.labels(context="event_dispatch").inc()
        logger.error("Exception raised when dispatching event", exc_info=True)


def create_app(settings: Settings) -> Sanic:
    if settings.github_webhook_secret is None:
        logger.warning("GITHUB_WEBHOOK_SECRET is not set, signatures are not verified")

    app = Sanic("compliancebot")
    app.ctx.settings = settings
    app.ctx.github_router = create_router()

    @app.listener("before_server_start")
    async def init(app, loop):
        logger.debug("Creating aiohttp session")
        app.ctx.aiohttp_session = aiohttp.ClientSession()
        app.ctx.orchestrator = Orchestrator(
            settings,
            InstallationAuthenticator(app.ctx.aiohttp_session, settings),
        )

    @app.listener("after_server_stop")
    async def close(app, loop):
        logger.debug("Closing aiohttp session")
        await app.ctx.aiohttp_session.close()

    @app.on_request
    async def on_request(request: Request):
        if request.path == "/metrics":
            return
        request_counter.labels(path=request.path).inc()

    @app.get("/status")
    async def status(request):
        logger.debug("status check")
        return response.text("ok")

    @app.route("/events", methods=["POST"])
    async def github(request):
        logger.debug("Webhook received")

        try:
            event = sansio.Event.from_http(
                request.headers,
                request.body,
                secret=app.ctx.settings.github_webhook_secret,
            )
        except (ValidationFailure, BadRequest, KeyError) as e:
            logger.warning("Rejected webhook: %s", e)
            return response.text("invalid webhook", status=400)

        await process_github_event(app, event)

        return response.empty(200)

    @app.get("/metrics")
    async def metrics(request):
        return response.raw(generate_latest(core.REGISTRY))

    return app
