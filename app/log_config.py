"""
Structured logging for the allocation service.

`configure_logging()` runs once when the app module loads. Every event
carries the app name and environment so log lines from several deployments
can share one sink.
"""

import logging
import sys
from typing import Any, Callable, Dict

import structlog

from app.config import Settings, get_settings


def _static_context(settings: Settings) -> Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]:
    app_name = settings.APP_NAME
    env = settings.ENV

    def add_app_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("app", app_name)
        event_dict.setdefault("env", env)
        return event_dict

    return add_app_context


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if settings.ENV == "dev"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _static_context(settings),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    # SQL echo stays off unless explicitly debugging
    logging.getLogger("sqlalchemy.engine").setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
