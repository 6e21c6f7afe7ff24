# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing Scout: pick one random marketplace listing through a remote browser.

A category page is loaded in a remote headless Chromium, one canonical listing
link is chosen at random, and the listing page is reduced to a stable envelope:
- caption / description / images from structured metadata
- price as a digits-only string
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExtractionResult:
    """Raw field values read from a listing page, before validation."""

    title: str | None = None
    description: str | None = None
    image: str | None = None
    url: str | None = None
    price: str | None = None
    sources: dict[str, str] = field(default_factory=dict, compare=False)  # field -> source that answered


@dataclass(frozen=True)
class ScrapeResult:
    """Successful response envelope for one scraped listing."""

    category: str
    website_link: str
    caption: str
    description: str | None
    price: str  # ASCII digits only
    images: list[str] = field(default_factory=list)  # zero or one URL

    def to_dict(self) -> dict:
        return {
            "success": True,
            "category": self.category,
            "website_link": self.website_link,
            "caption": self.caption,
            "description": self.description,
            "price": self.price,
            "images": list(self.images),
        }
