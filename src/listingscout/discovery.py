# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing discovery: collect anchors on a category page and pick one listing."""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Iterable

from .errors import NoListingsFoundError

logger = logging.getLogger(__name__)

# ASCII digits at the very end; JS /\d+$/ matches neither other scripts' digits nor a trailing newline
_LISTING_ID_RE = re.compile(r"[0-9]+\Z")

# a.href is the resolved absolute URL, not the raw attribute
_COLLECT_HREFS_JS = """() => Array.from(document.querySelectorAll('a[href]'), a => a.href)"""


def is_listing_url(href: object, origin: str) -> bool:
    """Canonical listing URL: under *origin* and ending in a numeric id."""
    return isinstance(href, str) and bool(href) and href.startswith(origin) and bool(_LISTING_ID_RE.search(href))


def filter_listing_urls(hrefs: Iterable[object], origin: str) -> list[str]:
    """Keep canonical listing URLs, deduplicated by exact string, first-seen order."""
    seen: dict[str, None] = {}
    for href in hrefs:
        if is_listing_url(href, origin):
            seen.setdefault(href, None)
    return list(seen)


def choose_listing(candidates: list[str], rng: random.Random | None = None) -> str:
    """Uniform, unweighted pick. No state is carried between calls."""
    if not candidates:
        raise NoListingsFoundError()
    return (rng or random).choice(candidates)  # nosec B311: not security sensitive


async def collect_hrefs(session) -> list[str]:
    hrefs = await session.evaluate(_COLLECT_HREFS_JS)
    return list(hrefs or [])


async def discover_listing(session, origin: str, rng: random.Random | None = None) -> str:
    """Return one random canonical listing URL from the loaded category page."""
    hrefs = await collect_hrefs(session)
    candidates = filter_listing_urls(hrefs, origin)
    logger.info("Listing discovery: anchors=%d candidates=%d", len(hrefs), len(candidates))
    return choose_listing(candidates, rng)
