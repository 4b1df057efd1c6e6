"""
Logging setup for batch loader events.
"""

import logging
import typing as t
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def setup_logging(*, level: int = logging.DEBUG, colors: bool = True) -> None:
    """
    Route batchloader events through structlog's stdlib integration.

    Parameters
    ----------
    level : int, optional
        Level applied to the ``batchloader`` stdlib logger.
    colors : bool, optional
        Whether the console renderer colors its output.
    """
    logging.getLogger(name="batchloader").setLevel(level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def loader_context(**fields: t.Any) -> Iterator[None]:
    """
    Bind loader fields to every event emitted inside the block.

    Fields that are ``None`` or already bound by an outer block are skipped,
    so a fetch that triggers nested loads keeps the outermost loader name.
    """
    current = structlog.contextvars.get_contextvars()
    to_bind = {
        key: value for key, value in fields.items() if value is not None and key not in current
    }
    if not to_bind:
        yield
        return
    with structlog.contextvars.bound_contextvars(**to_bind):
        yield
