"""
Structured logging for the gateway.

Every event is one line carrying timestamp, level, event_type and the context
bound for the current request: request_id, identity and path from the HTTP
layer, mint from the scan pipeline. Context lives in structlog contextvars, so
upstream tasks spawned during a scan inherit it without passing loggers around.

stdlib loggers (uvicorn, httpx) are rendered through the same processor chain
by configure_stdlib_logging().

Uses only stdlib logging and structlog; no backend_shield imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Iterable, TextIO

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# json for aggregation; anything else renders for a terminal
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx")


def _context_processors() -> list[Any]:
    """Enrichment shared by structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _render_processors() -> list[Any]:
    if LOG_FORMAT == "json":
        return [
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("event_type"),
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_structlog() -> None:
    structlog.configure(
        processors=[
            *_context_processors(),
            structlog.processors.StackInfoRenderer(),
            *_render_processors(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def configure_stdlib_logging(
    level: int = LOG_LEVEL_VALUE,
    *,
    stream: TextIO | None = None,
    loggers: Iterable[str] = STDLIB_LOGGERS,
) -> logging.Handler:
    """
    Route the named stdlib loggers through the structlog renderer.

    Records pick up the same request context and keys as native events. Returns
    the installed handler.
    """
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*_context_processors(), structlog.stdlib.add_logger_name],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_render_processors(),
        ],
    )
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(formatter)
    for name in loggers:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [handler]
        stdlib_logger.setLevel(level)
        stdlib_logger.propagate = False
    return handler


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("upstream_settled", source="birdeye", status="ok", latency_ms=212)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_request_context(**context: Any) -> None:
    """Start a fresh per-request context; every later event in this task carries it."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def bind_mint(mint: str) -> structlog.BoundLogger:
    """Add mint to the request context and return a scan logger carrying it."""
    structlog.contextvars.bind_contextvars(mint=mint)
    return get_logger("backend_shield.scan").bind(mint=mint)
