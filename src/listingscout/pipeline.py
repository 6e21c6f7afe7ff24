# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Scrape pipeline: one random listing from one category page.

    connect -> category navigation -> block check -> discovery
            -> listing navigation -> block check -> extraction -> normalize

Every step is sequential within a request. The whole flow runs under a
single deadline; when it fires, the step in progress is cancelled and the
session is still released by ``create_session``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from . import ScrapeResult
from .block_detector import BlockDetector, check_not_blocked
from .browser_session import BrowserConfig, RemoteBrowserSession, create_session
from .config import ScraperConfig
from .discovery import discover_listing
from .errors import RequestTimeoutError
from .extractor import extract_listing
from .normalizer import build_result
from .pipeline_timer import PipelineTimer

logger = logging.getLogger(__name__)

SessionFactory = Callable[[BrowserConfig], AbstractAsyncContextManager[RemoteBrowserSession]]


def browser_config_for(config: ScraperConfig) -> BrowserConfig:
    return BrowserConfig(
        ws_endpoint=config.browser_ws,
        connect_timeout_ms=config.connect_timeout_ms,
        navigation_timeout_ms=config.nav_timeout_ms,
    )


def detector_for(config: ScraperConfig) -> BlockDetector:
    return BlockDetector.extended() if config.strict_block_detection else BlockDetector()


async def scrape_listing(
    start_url: str,
    category: str,
    *,
    config: ScraperConfig,
    session_factory: SessionFactory | None = None,
    detector: BlockDetector | None = None,
    rng: random.Random | None = None,
) -> ScrapeResult:
    """Run the full scrape for one request.

    Raises:
        ListingScoutError: any pipeline failure (subclass names the step).
        RequestTimeoutError: overall deadline exceeded.
    """
    timer = PipelineTimer()
    detector = detector or detector_for(config)
    session_factory = session_factory or create_session
    try:
        async with asyncio.timeout(config.request_deadline_s) as deadline:
            result = await _run(
                start_url,
                category,
                config=config,
                session_factory=session_factory,
                detector=detector,
                rng=rng,
                timer=timer,
            )
    except TimeoutError as exc:
        if not deadline.expired():
            raise
        report = timer.timeout_report()
        timer.finalize()
        logger.error("Scrape deadline exceeded: %s", report)
        raise RequestTimeoutError(
            f"Scrape deadline of {config.request_deadline_s:g}s exceeded during {report['timed_out_at']}",
            stage=report["timed_out_at"],
            report=report,
        ) from exc
    except Exception:
        logger.info("Scrape failed at stage=%s", timer.current_stage)
        timer.finalize()
        raise

    timer.finalize()
    logger.info("Scrape complete: url=%s stages=%s", result.website_link, timer.elapsed_per_stage())
    return result


async def _run(
    start_url: str,
    category: str,
    *,
    config: ScraperConfig,
    session_factory: SessionFactory,
    detector: BlockDetector,
    rng: random.Random | None,
    timer: PipelineTimer,
) -> ScrapeResult:
    timer.stage("connect")
    async with session_factory(browser_config_for(config)) as session:
        timer.stage("category_navigation")
        nav = await session.navigate(start_url)

        timer.stage("category_block_check")
        await check_not_blocked(session, detector, http_status=nav.http_status)

        timer.stage("discovery")
        chosen = await discover_listing(session, config.listing_origin, rng)
        logger.info("Chosen listing: %s", chosen)

        timer.stage("listing_navigation")
        nav = await session.navigate(chosen)

        timer.stage("listing_block_check")
        await check_not_blocked(session, detector, http_status=nav.http_status)

        timer.stage("extraction")
        extraction = await extract_listing(session)

        timer.stage("normalize")
        result = build_result(extraction, chosen, category)

        timer.stage("release")
    return result
