# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing field extraction with ordered source fallback.

The target site renders listings under at least two layouts and fills OG
meta inconsistently, so each field is a priority chain of sources:

    title        og:title > h1
    description  og:description
    image        og:image
    url          og:url
    price        primary price element > alternate layout price >
                 product:price:amount > og:price:amount

All sources are read in one ``page.evaluate`` round-trip; the chain is
resolved in Python so it can be tested without a browser.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from . import ExtractionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Source:
    """One place a field value can come from."""

    kind: str  # "meta" | "text"
    key: str  # meta property/name, or CSS selector

    @property
    def id(self) -> str:
        return f"{self.kind}:{self.key}"


def meta(key: str) -> Source:
    return Source("meta", key)


def text(selector: str) -> Source:
    return Source("text", selector)


FIELD_SOURCES: dict[str, tuple[Source, ...]] = {
    "title": (meta("og:title"), text("h1")),
    "description": (meta("og:description"),),
    "image": (meta("og:image"),),
    "url": (meta("og:url"),),
    "price": (
        text(".je2-listing-info__price span"),
        text(".ListingCard__price"),
        meta("product:price:amount"),
        meta("og:price:amount"),
    ),
}

# Parameterized (no string interpolation): [{id, kind, key}] -> {id: value|null}
_READ_SOURCES_JS = """(sources) => {
  const metas = Array.from(document.querySelectorAll('meta'));
  const readMeta = (key) => {
    for (const attr of ['property', 'name']) {
      const el = metas.find(m => m.getAttribute(attr) === key);
      const content = el ? el.getAttribute('content') : null;
      if (content) return content;
    }
    return null;
  };
  const readText = (sel) => {
    let el = null;
    try { el = document.querySelector(sel); } catch (e) { return null; }
    if (!el) return null;
    const t = (el.innerText || '').trim();
    return t || null;
  };
  const out = {};
  for (const s of sources) {
    out[s.id] = s.kind === 'meta' ? readMeta(s.key) : readText(s.key);
  }
  return out;
}"""


def _all_sources(field_sources: Mapping[str, tuple[Source, ...]]) -> list[Source]:
    seen: dict[str, Source] = {}
    for chain in field_sources.values():
        for src in chain:
            seen.setdefault(src.id, src)
    return list(seen.values())


def _usable(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return value if value.strip() else None


def resolve_fields(
    raw: Mapping[str, object],
    field_sources: Mapping[str, tuple[Source, ...]] = FIELD_SOURCES,
) -> ExtractionResult:
    """Pick, per field, the first source with a non-null, non-blank value."""
    values: dict[str, str | None] = {}
    answered: dict[str, str] = {}
    for name, chain in field_sources.items():
        values[name] = None
        for src in chain:
            value = _usable(raw.get(src.id))
            if value is not None:
                values[name] = value
                answered[name] = src.id
                break
    return ExtractionResult(
        title=values.get("title"),
        description=values.get("description"),
        image=values.get("image"),
        url=values.get("url"),
        price=values.get("price"),
        sources=answered,
    )


async def extract_listing(session, field_sources: Mapping[str, tuple[Source, ...]] = FIELD_SOURCES) -> ExtractionResult:
    """Read every source on the loaded listing page and resolve the fields."""
    payload = [{"id": s.id, "kind": s.kind, "key": s.key} for s in _all_sources(field_sources)]
    raw = await session.evaluate(_READ_SOURCES_JS, payload) or {}
    result = resolve_fields(raw, field_sources)
    logger.info(
        "Extraction: title=%s price=%s sources=%s",
        result.title is not None,
        result.price is not None,
        result.sources,
    )
    return result
