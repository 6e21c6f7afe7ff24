# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Validate an ExtractionResult and shape the response envelope."""

from __future__ import annotations

import re

from . import ExtractionResult, ScrapeResult
from .errors import InvalidListingError

_NON_DIGIT_RE = re.compile(r"[^0-9]")


def normalize_price(raw: str) -> str:
    """Strip everything but ASCII digits: "€ 2,500,000" -> "2500000".

    Returns text, not a number: leading zeros survive and no locale-specific
    decimal/thousands guessing happens.
    """
    return _NON_DIGIT_RE.sub("", str(raw))


def build_result(extraction: ExtractionResult, navigated_url: str, category: str) -> ScrapeResult:
    """Build the success envelope.

    Raises:
        InvalidListingError: title missing, price missing, or price has no digits.
    """
    if not extraction.title or not extraction.price:
        raise InvalidListingError()
    price = normalize_price(extraction.price)
    if not price:
        raise InvalidListingError()
    return ScrapeResult(
        category=category,
        website_link=extraction.url or navigated_url,
        caption=extraction.title,
        description=extraction.description,
        price=price,
        images=[extraction.image] if extraction.image else [],
    )
