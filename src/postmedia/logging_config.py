# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Logging for the resolver: structlog rendering over stdlib loggers.

Every module logs through ``logging.getLogger(__name__)``; ``configure``
routes those records through structlog so one renderer handles them all
(console for development, JSON lines for production).  ``request_context``
tags every line emitted while one post URL is being resolved, including
lines from the browser fallback and the muxer.
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Chatty third-party loggers that drown out pipeline logs at DEBUG.
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _stderr_handler(json_output: bool) -> logging.Handler:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=_pre_chain(),
        )
    )
    return handler


def configure(*, json_output: bool = False, level: str = "INFO") -> None:
    """Install a single stderr handler on the root logger.

    Replaces any handlers already present, so calling it twice is harmless.
    Unknown level names fall back to INFO.
    """
    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stderr_handler(json_output))
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def request_context(post_url: object, *, request_id: str | None = None) -> Iterator[str]:
    """Tag log lines with ``request_id`` and ``post_url`` for the block.

    Yields the request id (generated when not given).  Fields left over from
    an earlier request in the same task are dropped first.
    """
    rid = request_id or uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    with structlog.contextvars.bound_contextvars(request_id=rid, post_url=post_url):
        yield rid
