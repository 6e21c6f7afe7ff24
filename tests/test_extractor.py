# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Field extraction: source priority chains and first-non-empty resolution."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from listingscout import ExtractionResult
from listingscout.extractor import (
    _READ_SOURCES_JS,
    FIELD_SOURCES,
    Source,
    extract_listing,
    meta,
    resolve_fields,
    text,
)

PRIMARY = "text:.je2-listing-info__price span"
SECONDARY = "text:.ListingCard__price"
PRODUCT_META = "meta:product:price:amount"
OG_PRICE = "meta:og:price:amount"


class TestFieldSources:
    def test_fields(self):
        assert set(FIELD_SOURCES) == {"title", "description", "image", "url", "price"}

    def test_title_chain(self):
        assert [s.id for s in FIELD_SOURCES["title"]] == ["meta:og:title", "text:h1"]

    def test_price_chain_order(self):
        assert [s.id for s in FIELD_SOURCES["price"]] == [PRIMARY, SECONDARY, PRODUCT_META, OG_PRICE]

    @pytest.mark.parametrize(
        ("field", "source_id"),
        [("description", "meta:og:description"), ("image", "meta:og:image"), ("url", "meta:og:url")],
    )
    def test_single_source_fields(self, field, source_id):
        assert [s.id for s in FIELD_SOURCES[field]] == [source_id]

    def test_source_helpers(self):
        assert meta("og:title") == Source("meta", "og:title")
        assert text("h1").id == "text:h1"


class TestResolveFields:
    def test_og_title_preferred_over_h1(self):
        result = resolve_fields({"meta:og:title": "OG Title", "text:h1": "Heading"})
        assert result.title == "OG Title"
        assert result.sources["title"] == "meta:og:title"

    def test_h1_fallback(self):
        result = resolve_fields({"meta:og:title": None, "text:h1": "Heading"})
        assert result.title == "Heading"
        assert result.sources["title"] == "text:h1"

    def test_blank_values_skipped(self):
        result = resolve_fields({"meta:og:title": "   ", "text:h1": "Heading"})
        assert result.title == "Heading"

    def test_value_kept_verbatim(self):
        result = resolve_fields({"meta:og:title": " Villa X "})
        assert result.title == " Villa X "

    @pytest.mark.parametrize(
        ("raw", "expected", "source"),
        [
            ({PRIMARY: "€1,000", SECONDARY: "€2,000", PRODUCT_META: "3000", OG_PRICE: "4000"}, "€1,000", PRIMARY),
            ({SECONDARY: "€2,000", PRODUCT_META: "3000", OG_PRICE: "4000"}, "€2,000", SECONDARY),
            ({PRODUCT_META: "3000", OG_PRICE: "4000"}, "3000", PRODUCT_META),
            ({OG_PRICE: "4000"}, "4000", OG_PRICE),
            ({PRIMARY: "", SECONDARY: None, PRODUCT_META: "", OG_PRICE: "4000"}, "4000", OG_PRICE),
        ],
    )
    def test_price_first_match_wins(self, raw, expected, source):
        result = resolve_fields(raw)
        assert result.price == expected
        assert result.sources["price"] == source

    def test_scenario_meta_price_only(self):
        result = resolve_fields({"meta:og:title": "Villa X", PRODUCT_META: "€ 2,500,000"})
        assert result.title == "Villa X"
        assert result.price == "€ 2,500,000"

    def test_all_missing(self):
        result = resolve_fields({})
        assert result == ExtractionResult()
        assert result.sources == {}

    def test_non_string_values_ignored(self):
        result = resolve_fields({"meta:og:title": 42, "text:h1": ["x"]})
        assert result.title is None

    def test_custom_chain(self):
        chains = {"title": (text(".name"),), "price": (meta("price"),)}
        result = resolve_fields({"text:.name": "N", "meta:price": "9"}, chains)
        assert (result.title, result.price) == ("N", "9")
        assert result.description is None


class TestExtractListing:
    async def test_single_round_trip_with_every_source(self):
        session = MagicMock()
        session.evaluate = AsyncMock(
            return_value={
                "meta:og:title": "Villa X",
                "meta:og:description": "Sea view",
                "meta:og:image": "https://img.example/x.jpg",
                "meta:og:url": "https://www.jamesedition.com/villa-x-1",
                PRIMARY: "€ 1,200,000",
            }
        )
        result = await extract_listing(session)

        session.evaluate.assert_awaited_once()
        payload = session.evaluate.call_args.args[1]
        ids = [p["id"] for p in payload]
        assert len(ids) == len(set(ids))
        assert set(ids) == {s.id for chain in FIELD_SOURCES.values() for s in chain}
        assert all(p["kind"] in ("meta", "text") for p in payload)

        assert result.title == "Villa X"
        assert result.description == "Sea view"
        assert result.image == "https://img.example/x.jpg"
        assert result.url == "https://www.jamesedition.com/villa-x-1"
        assert result.price == "€ 1,200,000"

    async def test_null_evaluation_result(self):
        session = MagicMock()
        session.evaluate = AsyncMock(return_value=None)
        assert await extract_listing(session) == ExtractionResult()

    async def test_hidden_primary_price_yields_to_visible_layout(self):
        # a display:none element has empty innerText, so the page script reports null
        session = MagicMock()
        session.evaluate = AsyncMock(
            return_value={"meta:og:title": "Villa X", PRIMARY: None, SECONDARY: "€ 2,500,000"}
        )
        result = await extract_listing(session)
        assert result.price == "€ 2,500,000"
        assert result.sources["price"] == SECONDARY

    def test_text_sources_read_rendered_text_only(self):
        assert "innerText" in _READ_SOURCES_JS
        assert "textContent" not in _READ_SOURCES_JS
