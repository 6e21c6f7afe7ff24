# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing Scout exception hierarchy.

All scrape failures inherit from ListingScoutError, so the request boundary
can catch the base class and report ``str(exc)`` while tests and callers
still match specific subclasses.
"""

from __future__ import annotations

import re

MAX_MESSAGE_LENGTH = 300


class ListingScoutError(Exception):
    """Base exception for all Listing Scout errors."""

    default_message = "Scrape failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ConfigurationError(ListingScoutError):
    """Required configuration (remote browser endpoint) is missing."""

    default_message = "BROWSER_WS env missing"


class RemoteConnectionError(ListingScoutError):
    """Remote browser refused the connection or did not answer in time."""

    default_message = "Could not connect to remote browser"


class NavigationError(ListingScoutError):
    """Page load failed (DNS, TLS, HTTP-level failure surfaced by the browser)."""

    default_message = "Navigation failed"


class NavigationTimeoutError(NavigationError):
    """Page did not reach DOMContentLoaded within the navigation ceiling."""

    default_message = "Navigation timed out"


class BlockedError(ListingScoutError):
    """An anti-automation challenge page was served instead of content."""

    default_message = "Blocked by Cloudflare"

    def __init__(self, message: str | None = None, *, signal: str = "") -> None:
        super().__init__(message)
        self.signal = signal


class NoListingsFoundError(ListingScoutError):
    """Category page held no canonical listing links."""

    default_message = "No listings found"


class InvalidListingError(ListingScoutError):
    """Listing page lacked a mandatory field (title or price)."""

    default_message = "Invalid listing data"


class RequestTimeoutError(ListingScoutError):
    """Whole scrape exceeded its overall deadline."""

    default_message = "Scrape deadline exceeded"

    def __init__(self, message: str | None = None, *, stage: str = "", report: dict | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.report = report or {}


# ── Message sanitization ─────────────────────────────────────────────

_SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # ws://user:token@host
    (re.compile(r"://[^@\s/]+@"), "://<redacted>@"),
    # ?token=... / &apiKey=...
    (
        re.compile(r"([?&](?:token|api[_-]?key|key|secret|auth|password)=)[^&\s]+", re.IGNORECASE),
        r"\1<redacted>",
    ),
    (re.compile(r"Bearer\s+\S+"), "Bearer <redacted>"),
    (
        re.compile(r"(?<![?&\w])(?:API_KEY|SECRET|TOKEN|PASSWORD)\s*[=:]\s*\S+", re.IGNORECASE),
        "<redacted>",
    ),
]


def redact_secrets(text: str) -> str:
    """Replace endpoint credentials in *text* with ``<redacted>``.

    Playwright connection errors echo the full WebSocket endpoint, which for
    hosted browsers embeds an access token.
    """
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def sanitize_message(text: str) -> str:
    """Client-facing error text: secrets redacted, length capped."""
    text = redact_secrets(text)
    if len(text) > MAX_MESSAGE_LENGTH:
        text = text[:MAX_MESSAGE_LENGTH] + "..."
    return text
