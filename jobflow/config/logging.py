import logging
import sys
from typing import Any

import structlog

from .settings import Settings, settings as default_settings

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("aiokafka", "kafka", "uvicorn.access")


def _shared_processors(settings: Settings) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if settings.debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
            )
        )
    return processors


def setup_logging(settings: Settings | None = None) -> None:
    """Configure stdlib logging and structlog for the API and worker processes.

    Consumers and services log through ``logging.getLogger(__name__)`` with
    ``extra=``; request handling logs through structlog so the bound
    request context is attached.
    """
    settings = settings or default_settings
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.debug
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[*_shared_processors(settings), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Replace the bound context with this request's fields."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)
