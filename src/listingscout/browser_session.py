# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Remote Playwright browser session for Listing Scout.

Connects to an externally hosted Chromium over its CDP WebSocket endpoint,
opens one isolated context with exactly one page, and releases everything
on exit without terminating the remote (shared) browser process.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import ConfigurationError, NavigationError, NavigationTimeoutError, RemoteConnectionError

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1366, "height": 768}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class BrowserConfig:
    """Remote browser connection configuration."""

    ws_endpoint: str = ""
    viewport_width: int = DEFAULT_VIEWPORT["width"]
    viewport_height: int = DEFAULT_VIEWPORT["height"]
    user_agent: str = DEFAULT_USER_AGENT
    ignore_https_errors: bool = True  # remote targets are trusted out-of-band
    connect_timeout_ms: int = 30000
    navigation_timeout_ms: int = 60000
    wait_until: str = "domcontentloaded"  # marketplace trackers never reach networkidle


@dataclass(frozen=True, slots=True)
class NavigationResult:
    """Result of a single page navigation."""

    requested_url: str
    final_url: str
    http_status: int | None = None  # None for same-document or cached loads


def _short_error(exc: Exception) -> str:
    """First line of a Playwright error (drops the multi-line call log)."""
    text = getattr(exc, "message", None) or str(exc)
    return text.strip().splitlines()[0] if text.strip() else type(exc).__name__


class RemoteBrowserSession:
    """Owns one CDP connection, one browser context and one page."""

    def __init__(self, config: BrowserConfig | None = None):
        self.config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session not started. Use create_session() or call start().")
        return self._page

    @property
    def is_started(self) -> bool:
        return self._page is not None

    async def start(self) -> None:
        """Connect to the remote browser and open the single working page.

        Raises:
            ConfigurationError: no endpoint configured (checked before any I/O).
            RemoteConnectionError: endpoint refused, unreachable or timed out.
        """
        endpoint = self.config.ws_endpoint
        if not endpoint:
            raise ConfigurationError()

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.connect_over_cdp(
                endpoint,
                timeout=self.config.connect_timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            raise RemoteConnectionError(
                f"Remote browser did not answer within {self.config.connect_timeout_ms} ms"
            ) from exc
        except (PlaywrightError, OSError) as exc:
            raise RemoteConnectionError(f"Could not connect to remote browser: {_short_error(exc)}") from exc

        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            user_agent=self.config.user_agent,
            ignore_https_errors=self.config.ignore_https_errors,
        )
        self._page = await self._context.new_page()
        logger.info(
            "Remote browser session started (viewport=%dx%d)",
            self.config.viewport_width,
            self.config.viewport_height,
        )

    async def stop(self) -> None:
        """Close page, then context, then release the connection.

        Safe to call on a half-started or already stopped session. Errors
        from each step are suppressed so they never mask the caller's error.
        A cancellation arriving mid-release is held until every step has run,
        then re-raised.
        """
        page, context, browser, pw = self._page, self._context, self._browser, self._playwright
        self._page = self._context = self._browser = self._playwright = None

        # close() on a CDP-connected browser only disconnects; the remote process keeps running
        steps = [
            page.close if page is not None else None,
            context.close if context is not None else None,
            browser.close if browser is not None else None,
            pw.stop if pw is not None else None,
        ]
        cancelled: asyncio.CancelledError | None = None
        for step in steps:
            if step is None:
                continue
            try:
                with suppress(Exception):
                    await step()
            except asyncio.CancelledError as exc:
                cancelled = exc

        logger.info("Remote browser session released")
        if cancelled is not None:
            raise cancelled

    async def navigate(self, url: str) -> NavigationResult:
        """Load *url*, waiting only for DOMContentLoaded. No retry.

        Raises:
            NavigationTimeoutError: ceiling exceeded.
            NavigationError: any other load failure.
        """
        timeout_ms = self.config.navigation_timeout_ms
        try:
            response = await self.page.goto(url, wait_until=self.config.wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(f"Navigation to {url} timed out after {timeout_ms} ms") from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Navigation to {url} failed: {_short_error(exc)}") from exc

        status = response.status if response else None
        logger.debug("Navigated: url=%s status=%s", url, status)
        return NavigationResult(requested_url=url, final_url=self.page.url, http_status=status)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Run a JS function in the page, mapping engine failures to NavigationError."""
        try:
            return await self.page.evaluate(expression, arg)
        except PlaywrightError as exc:
            raise NavigationError(f"Page evaluation failed: {_short_error(exc)}") from exc

    async def get_page_title(self) -> str:
        try:
            return await self.page.title()
        except PlaywrightError as exc:
            raise NavigationError(f"Could not read page title: {_short_error(exc)}") from exc

    async def get_page_html(self) -> str:
        try:
            return await self.page.content()
        except PlaywrightError as exc:
            raise NavigationError(f"Could not read page content: {_short_error(exc)}") from exc


@asynccontextmanager
async def create_session(
    config: BrowserConfig | None = None,
) -> AsyncGenerator[RemoteBrowserSession, None]:
    """Context manager yielding a started session; release is guaranteed.

    ``start()`` runs inside the ``try`` so a failure half-way through
    (connected but context creation failed) still releases the connection.
    """
    session = RemoteBrowserSession(config)
    try:
        await session.start()
        yield session
    finally:
        await session.stop()
