from __future__ import annotations

import logging
from logging import Logger

from .config import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def resolve_log_level(settings: Settings) -> int:
    """LOG_LEVEL when set, otherwise DEBUG for local runs and INFO elsewhere."""

    if settings.log_level:
        return logging.getLevelName(settings.log_level)
    return logging.DEBUG if settings.is_debug else logging.INFO


def configure_logging(settings: Settings | None = None) -> Logger:
    """
    Configure the root handler and the levels of the loggers this package
    produces or pulls in.

    httpx logs one INFO line per request, so it is only let through at
    DEBUG; httpcore connection tracing is always held at WARNING.
    APScheduler logs each job wakeup at DEBUG and each run at INFO.
    """

    settings = settings or get_settings()
    log_level = resolve_log_level(settings)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    logging.getLogger("httpx").setLevel(
        logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    )
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(max(log_level, logging.INFO))

    logger = logging.getLogger("turno_flash")
    logger.setLevel(log_level)
    return logger
