# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Anti-automation challenge detection: pluggable multi-signal registry.

Each BlockSignal inspects one or more page signals (title, raw HTML, HTTP
status). The first signal that fires produces a BlockVerdict. The pipeline
only talks to BlockDetector, so signals can be added or swapped without
touching the scrape flow.

Title matching is a heuristic: a listing whose genuine title contains a
challenge marker is indistinguishable from a real block.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .errors import BlockedError

logger = logging.getLogger(__name__)

# Case-sensitive on purpose: "Verify" must not match "verified seller".
CHALLENGE_TITLE_MARKERS: tuple[str, ...] = (
    "Just a moment",
    "Cloudflare",
    "Verify",
)

CHALLENGE_DOM_MARKERS: tuple[str, ...] = (
    "cf-browser-verification",
    "challenge-platform",
    "cf-chl-bypass",
    "challenge-running",
    "cf-turnstile",
)

CHALLENGE_HTTP_STATUSES: frozenset[int] = frozenset({403, 429, 503})


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PageSignals:
    """Observable facts about a loaded page."""

    title: str
    html: str | None = None  # only fetched when a signal needs it
    http_status: int | None = None
    url: str = ""


@dataclass(frozen=True, slots=True)
class BlockSignal:
    """A single detection rule. Any non-None check that returns True fires it."""

    name: str
    check_title: Callable[[str], bool] | None = None
    check_html: Callable[[str], bool] | None = None
    check_status: Callable[[int | None, str], bool] | None = None  # (status, html)

    @property
    def needs_html(self) -> bool:
        return self.check_html is not None or self.check_status is not None

    def fires(self, signals: PageSignals) -> bool:
        if self.check_title is not None and self.check_title(signals.title):
            return True
        html = signals.html or ""
        if self.check_html is not None and html and self.check_html(html):
            return True
        return self.check_status is not None and self.check_status(signals.http_status, html)


@dataclass(frozen=True, slots=True)
class BlockVerdict:
    signal: str
    title: str


# ---------------------------------------------------------------------------
# Signal registry
# ---------------------------------------------------------------------------


def _title_has_marker(title: str) -> bool:
    return any(marker in title for marker in CHALLENGE_TITLE_MARKERS)


def _html_has_challenge_markup(html: str) -> bool:
    return any(marker in html for marker in CHALLENGE_DOM_MARKERS)


def _status_with_challenge(status: int | None, html: str) -> bool:
    # a bare 403 is common on legit pages; require challenge markup too
    return status in CHALLENGE_HTTP_STATUSES and "cf-" in html


TITLE_SIGNAL = BlockSignal("title_challenge_marker", check_title=_title_has_marker)
DOM_SIGNAL = BlockSignal("dom_challenge_markup", check_html=_html_has_challenge_markup)
STATUS_SIGNAL = BlockSignal("http_status_challenge", check_status=_status_with_challenge)

DEFAULT_SIGNALS: tuple[BlockSignal, ...] = (TITLE_SIGNAL,)
EXTENDED_SIGNALS: tuple[BlockSignal, ...] = (TITLE_SIGNAL, DOM_SIGNAL, STATUS_SIGNAL)


class BlockDetector:
    """Evaluate a sequence of BlockSignals against a page, first match wins."""

    def __init__(self, signals: Sequence[BlockSignal] = DEFAULT_SIGNALS) -> None:
        self.signals = tuple(signals)

    @classmethod
    def extended(cls) -> BlockDetector:
        return cls(EXTENDED_SIGNALS)

    @property
    def needs_html(self) -> bool:
        return any(s.needs_html for s in self.signals)

    def detect(self, signals: PageSignals) -> BlockVerdict | None:
        for signal in self.signals:
            if signal.fires(signals):
                return BlockVerdict(signal=signal.name, title=signals.title)
        return None


async def check_not_blocked(session, detector: BlockDetector | None = None, *, http_status: int | None = None) -> None:
    """Raise BlockedError if the session's current page is a challenge page.

    ``session`` is anything exposing ``get_page_title()`` / ``get_page_html()``
    and a ``page.url`` (RemoteBrowserSession in production).
    """
    detector = detector or BlockDetector()
    title = await session.get_page_title() or ""
    html = await session.get_page_html() if detector.needs_html else None
    signals = PageSignals(title=title, html=html, http_status=http_status, url=session.page.url)

    verdict = detector.detect(signals)
    if verdict is not None:
        logger.warning("Challenge page detected: signal=%s title=%.80s url=%s", verdict.signal, title, signals.url)
        raise BlockedError(signal=verdict.signal)
