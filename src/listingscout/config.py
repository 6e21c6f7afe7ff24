# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Process-wide configuration, read once from the environment at startup.

The resulting ScraperConfig is frozen and shared read-only by every request.
A missing BROWSER_WS is *not* a startup error: it surfaces as
ConfigurationError on the first scrape.
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_LISTING_ORIGIN = "https://www.jamesedition.com"
DEFAULT_PORT = 4000
DEFAULT_HOST = "0.0.0.0"  # nosec B104: container service
DEFAULT_NAV_TIMEOUT_MS = 60_000
DEFAULT_CONNECT_TIMEOUT_MS = 30_000
DEFAULT_REQUEST_DEADLINE_S = 180.0
MAX_BODY_BYTES = 5 * 1024 * 1024

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True, slots=True)
class ScraperConfig:
    """Read-only service configuration."""

    browser_ws: str = ""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    listing_origin: str = DEFAULT_LISTING_ORIGIN
    nav_timeout_ms: int = DEFAULT_NAV_TIMEOUT_MS
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    request_deadline_s: float = DEFAULT_REQUEST_DEADLINE_S
    strict_block_detection: bool = False
    log_json: bool = True
    log_level: str = "INFO"
    max_body_bytes: int = MAX_BODY_BYTES

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ScraperConfig:
        """Build config from environment variables (``os.environ`` by default)."""
        env = os.environ if env is None else env
        return cls(
            browser_ws=env.get("BROWSER_WS", "").strip(),
            host=env.get("HOST", "").strip() or DEFAULT_HOST,
            port=_int_env(env, "PORT", DEFAULT_PORT),
            listing_origin=env.get("LISTINGSCOUT_LISTING_ORIGIN", "").strip().rstrip("/") or DEFAULT_LISTING_ORIGIN,
            nav_timeout_ms=_int_env(env, "LISTINGSCOUT_NAV_TIMEOUT_MS", DEFAULT_NAV_TIMEOUT_MS),
            connect_timeout_ms=_int_env(env, "LISTINGSCOUT_CONNECT_TIMEOUT_MS", DEFAULT_CONNECT_TIMEOUT_MS),
            request_deadline_s=_float_env(env, "LISTINGSCOUT_REQUEST_DEADLINE", DEFAULT_REQUEST_DEADLINE_S),
            strict_block_detection=_bool_env(env, "LISTINGSCOUT_STRICT_BLOCK_DETECTION", False),
            log_json=_bool_env(env, "LISTINGSCOUT_LOG_JSON", True),
            log_level=env.get("LISTINGSCOUT_LOG_LEVEL", "").strip().upper() or "INFO",
        )


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%d, using %d", name, value, default)
        return default
    return value


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %.1f", name, raw, default)
        return default
    if not math.isfinite(value) or value <= 0:
        logger.warning("Ignoring non-positive %s=%s, using %.1f", name, raw, default)
        return default
    return value


def _bool_env(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name, "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default
