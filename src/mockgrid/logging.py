"""Structured logging for Mockgrid.

structlog renders every record, including stdlib records from the storage
modules, through one handler on the ``mockgrid`` logger. Output is JSON
lines by default or a console layout for local runs.

Per-delivery context (message ID, webhook ID) is carried in contextvars,
so it follows each dispatch task without being passed to every call.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

PACKAGE_LOGGER = "mockgrid"
HANDLER_NAME = "mockgrid-structlog"

_configured = False


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderer(format: str) -> list[Processor]:
    if format.lower() == "text":
        return [structlog.dev.ConsoleRenderer(colors=False)]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Install the Mockgrid handler and set the package log level.

    Safe to call again; the previous handler is replaced, never stacked.
    Unknown level names fall back to INFO.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format: "json" for log shippers, "text" for a terminal.
    """
    global _configured

    log_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderer(format),
            ],
        )
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(package_logger.handlers):
        if existing.get_name() == HANDLER_NAME:
            package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Attach key-value context to every record logged inside the block.

    Previous values of the same keys are restored on exit, so blocks nest.

    Example:
        ```python
        with log_context(msg_id=message.msg_id):
            logger.info("saved")  # carries msg_id
        ```
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
