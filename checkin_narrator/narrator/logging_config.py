"""Structured logging (structlog): console khi APP_ENV=local, JSON cho môi trường khác."""
import logging
import sys

import structlog

from narrator.config import get_settings

# Client HTTP của LLM SDK log mỗi request ở INFO; chỉ giữ WARNING trở lên.
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def configure_logging() -> None:
    """Gọi một lần lúc startup (lifespan)."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.app_env == "local"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger theo module; event name dạng dotted (job.failed, generation.persisted)."""
    return structlog.get_logger(name)
