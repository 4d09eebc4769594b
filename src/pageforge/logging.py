"""Structured build logs.

Pageforge modules log through stdlib ``logging``. ``configure_logging``
routes those records through structlog so every line carries the level,
logger name, timestamp and whatever build context is bound (``build_id``).
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from pageforge.config import get_settings

HANDLER_NAME = "pageforge"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging(
    level: str,
    json_output: bool | None = None,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Install the pageforge handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON lines. If None, JSON when PAGEFORGE_ENV=prod.
        stream: Destination, stderr by default.

    Calling it again replaces the previous pageforge handler and leaves any
    other root handlers alone.
    """
    if json_output is None:
        json_output = get_settings().pageforge_env == "prod"

    shared = _shared_processors()
    renderer_chain: list[structlog.types.Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ]
    if json_output:
        renderer_chain += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        renderer_chain.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(foreign_pre_chain=shared, processors=renderer_chain)
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler


def bind_context(**kwargs: object) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
