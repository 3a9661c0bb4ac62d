"""structlog setup for stores and the service layer.

Stores log event names with key/value context (``node_created``,
``vote_recorded``). A request-scoped context (correlation id, acting
identity) can be bound with :func:`request_context` so every event emitted
while handling one command carries it.
"""

import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars
from structlog.processors import JSONRenderer

from citadel_engine.config.settings import settings


def _renderer(log_format: str):
    if sys.stderr.isatty() and log_format.lower() == "console":
        return structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    return JSONRenderer()


def configure_structured_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Install structlog processors; level and format default to settings."""
    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(log_format or settings.log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger((level or settings.log_level).upper()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_structured_logger(name: str, **context: Any) -> structlog.BoundLogger:
    """
    Structured logger with bound context.

    Example:
        >>> log = get_structured_logger("citadel.service", component="CitadelService")
        >>> log.info("claim_created", node_id="...")
    """
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger


def get_correlation_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def request_context(identity_id: Optional[str] = None, correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id (and acting identity) to every event in the block.

    Yields:
        The correlation id in effect
    """
    correlation_id = correlation_id or get_correlation_id()
    context = {"correlation_id": correlation_id}
    if identity_id:
        context["identity_id"] = identity_id
    with bound_contextvars(**context):
        yield correlation_id


configure_structured_logging()


__all__ = [
    "get_structured_logger",
    "get_correlation_id",
    "request_context",
    "configure_structured_logging",
]
