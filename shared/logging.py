"""
Structured logging setup for the classifieds crawler.

All runtime logging goes through structlog, rendered as JSON lines by the
standard logging handlers. Context such as the session id, the page type and
the URL being processed is bound through contextvars, so each asyncio worker
task carries its own context without passing loggers around.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

import structlog


def _build_processors() -> list[structlog.types.Processor]:
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.EventRenamer("message"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def _plain_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_stdout: bool = True,
) -> None:
    """
    Configure structlog and the standard logging module.

    Call once at process startup (the CLI does this before running a
    command). Calling it again replaces the root handlers.

    - log_stdout=True adds a stdout handler.
    - log_file adds a file handler (parent directory created if needed).
    - With neither, stdout is used so the process never has zero handlers.
    """

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if log_stdout:
        root.addHandler(_plain_handler(logging.StreamHandler(sys.stdout), level))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_plain_handler(logging.FileHandler(log_file, encoding="utf-8"), level))

    if not root.handlers:
        root.addHandler(_plain_handler(logging.StreamHandler(sys.stdout), level))

    # httpx logs every request at INFO; the fetcher emits its own events.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_build_processors(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Obtain a structured logger.

    Usage:
        from shared.logging import get_logger, bind_request_context

        logger = get_logger(__name__)
        bind_request_context(session_id="...", page_type="olx_item")
        logger.info("crawl.job.completed")
    """

    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_request_context(
    *,
    session_id: Optional[str] = None,
    page_type: Optional[str] = None,
    url: Optional[str] = None,
    worker: Optional[str] = None,
    **extra: Any,
) -> Mapping[str, Any]:
    """
    Bind common context fields for crawl / extract logging.

    Convention: pipeline logs carry session_id, and while a unit of work is
    in flight also page_type and url. Worker pool tasks bind worker.
    None values are dropped.
    """

    context: dict[str, Any] = {
        "session_id": session_id,
        "page_type": page_type,
        "url": url,
        "worker": worker,
        **extra,
    }
    filtered_context = {k: v for k, v in context.items() if v is not None}

    structlog.contextvars.bind_contextvars(**filtered_context)
    return filtered_context


def unbind_request_context(*keys: str) -> None:
    """Drop per-unit-of-work fields (e.g. url, page_type) once it is resolved."""
    structlog.contextvars.unbind_contextvars(*keys)
