# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""In-memory stand-ins for RemoteBrowserSession used by pipeline and server tests.

Underscore prefix prevents pytest collection.
A FakeSite maps URLs to FakePages; FakeSession "navigates" by switching the
current page and answers ``evaluate`` calls the way the real page scripts do.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from types import SimpleNamespace

from listingscout.browser_session import NavigationResult
from listingscout.errors import NavigationError

CATEGORY_URL = "https://www.jamesedition.com/real_estate/villas"
ORIGIN = "https://www.jamesedition.com"


@dataclass
class FakePage:
    title: str = "Listing"
    hrefs: list = field(default_factory=list)  # anchors for discovery
    sources: dict = field(default_factory=dict)  # source id -> value for extraction
    html: str = "<html></html>"
    http_status: int | None = 200
    delay: float = 0.0  # seconds navigate() takes


def listing_page(title: str | None = "Villa X", price: str | None = "€ 2,500,000", **meta) -> FakePage:
    """Build a listing page whose OG/price sources are keyed like the extractor expects."""
    sources: dict = {}
    if title is not None:
        sources["meta:og:title"] = title
    if price is not None:
        sources["text:.je2-listing-info__price span"] = price
    for key, value in meta.items():
        sources[key] = value
    return FakePage(title=title or "Listing", sources=sources)


class FakeSession:
    def __init__(self, site: dict[str, FakePage]) -> None:
        self.site = site
        self.current: FakePage | None = None
        self.page = SimpleNamespace(url="about:blank")
        self.visited: list[str] = []
        self.stopped = False

    async def navigate(self, url: str) -> NavigationResult:
        if url not in self.site:
            raise NavigationError(f"Navigation to {url} failed: net::ERR_NAME_NOT_RESOLVED")
        page = self.site[url]
        if page.delay:
            await asyncio.sleep(page.delay)
        self.current = page
        self.page.url = url
        self.visited.append(url)
        return NavigationResult(requested_url=url, final_url=url, http_status=page.http_status)

    async def evaluate(self, expression: str, arg=None):
        assert self.current is not None
        if arg is None:
            return list(self.current.hrefs)
        return {src["id"]: self.current.sources.get(src["id"]) for src in arg}

    async def get_page_title(self) -> str:
        return self.current.title if self.current else ""

    async def get_page_html(self) -> str:
        return self.current.html if self.current else ""


class FakeSessionFactory:
    """Callable matching ``create_session(config)``; records every session it opened."""

    def __init__(self, site: dict[str, FakePage]) -> None:
        self.site = site
        self.sessions: list[FakeSession] = []
        self.configs: list = []

    @asynccontextmanager
    async def __call__(self, config):
        self.configs.append(config)
        session = FakeSession(self.site)
        self.sessions.append(session)
        try:
            yield session
        finally:
            session.stopped = True

    @property
    def all_released(self) -> bool:
        return all(s.stopped for s in self.sessions)
