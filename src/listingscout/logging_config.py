# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge for the scrape service.

JSON lines on stderr by default (container logs), ConsoleRenderer for local
runs. Every record, including uvicorn's and tracebacks, passes through
``redact_event`` so a BROWSER_WS token echoed by Playwright never reaches
the log sink.
"""

from __future__ import annotations

import logging
import sys

import structlog

from .errors import redact_secrets

# Loggers that install their own handlers; their records go through ours instead
ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_REDACTED_KEYS = ("event", "exception")


def redact_event(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor: scrub credentials from the message and traceback."""
    for key in _REDACTED_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = redact_secrets(value)
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_event,  # after format_exc_info so tracebacks are strings
    ]


def configure(*, json_output: bool = True, level: str = "INFO") -> None:
    """Install one stderr handler on the root logger.

    Idempotent: calling again replaces the handler instead of stacking.
    """
    shared = _shared_processors()
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers.clear()
        routed.propagate = True
