import logging

import notifiers.logging
import sanic.log

from compliancebot.config import Settings

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> logging.Logger:
    logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
    logging.getLogger().setLevel(settings.override_logging)
    logger = logging.getLogger("compliancebot")
    logger.setLevel(settings.override_logging)
    # the web layer, router and API wrapper log through sanic.log.logger
    for handler in get_log_handlers(logger, settings):
        sanic.log.logger.addHandler(handler)
    return logger


def get_log_handlers(logger, settings: Settings):
    if settings.telegram_token is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": settings.telegram_token,
            "chat_id": settings.telegram_chat_id,
        },
    )
    handler.setLevel(logging.WARNING)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return [handler]
