"""Tests for the extraction engine: query parsing and offer extraction."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from priceradar.core.exceptions import MalformedModelResponseError
from priceradar.extraction import prompts
from priceradar.extraction.engine import parse_json_payload, strip_code_fences, validate_offers
from priceradar.extraction.llm_client import LLMClient
from priceradar.models.offer import MAX_OFFER_PRICE
from priceradar.schemas.query import StructuredQuery

SOURCE_URL = "https://www.ebay.it/sch/i.html?_nkw=RTX%204080"

LISTINGS = [
    {
        "title": "RTX 4080 Founders Edition",
        "price": 750,
        "currency": "eur",
        "url": "https://www.ebay.it/itm/111?_trksid=abc",
        "condition": "Used",
        "location": "Milano",
        "imageUrl": "https://i.ebayimg.com/111.jpg",
    },
    {"title": "RTX 4080 Gaming OC", "price": "699,00 €", "url": "/itm/222"},
]


def _api_error() -> openai.APIConnectionError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.APIConnectionError(request=request)


class TestJsonPayload:
    """Tests for reply decoding."""

    def test_fenced_and_bare_replies_decode_the_same(self):
        bare = json.dumps(LISTINGS)
        fenced = f"```json\n{bare}\n```"
        assert parse_json_payload(fenced) == parse_json_payload(bare)

    def test_json_inside_prose(self):
        reply = 'Here are the listings:\n[{"title": "A", "price": 1}]\nHope this helps!'
        assert parse_json_payload(reply) == [{"title": "A", "price": 1}]

    def test_unterminated_fence(self):
        assert strip_code_fences('```json\n{"item": "x"}') == '{"item": "x"}'

    @pytest.mark.parametrize("reply", ["", "   ", "no json here", "[broken"])
    def test_undecodable_reply_raises(self, reply):
        with pytest.raises(MalformedModelResponseError):
            parse_json_payload(reply)


class TestValidateOffers:
    """Tests for offer validation."""

    def test_valid_listings(self):
        offers = validate_offers(LISTINGS, SOURCE_URL)

        assert len(offers) == 2
        first, second = offers
        assert first.url == "https://www.ebay.it/itm/111"
        assert first.price == Decimal("750")
        assert first.currency == "EUR"
        assert first.image_url == "https://i.ebayimg.com/111.jpg"
        assert second.url == "https://www.ebay.it/itm/222"
        assert second.price == Decimal("699.00")
        assert second.snippet == "RTX 4080 Gaming OC"

    def test_invalid_items_are_dropped(self):
        payload = [
            {"title": "", "price": 10},
            {"title": "No price"},
            {"title": "Zero", "price": 0},
            {"title": "Negative", "price": -5},
            {"title": "Bool", "price": True},
            "not an object",
            {"title": "Good", "price": 10},
        ]
        offers = validate_offers(payload, SOURCE_URL)
        assert [o.title for o in offers] == ["Good"]

    def test_price_beyond_store_range_is_dropped(self):
        payload = [
            {"title": "Typo", "price": 1e12},
            {"title": "Most expensive storable", "price": 9999999999.99},
        ]
        offers = validate_offers(payload, SOURCE_URL)
        assert [o.price for o in offers] == [MAX_OFFER_PRICE]

    def test_missing_url_defaults_to_source(self):
        offers = validate_offers([{"title": "A", "price": 5}], SOURCE_URL)
        assert offers[0].url == SOURCE_URL

    def test_wrapped_object(self):
        offers = validate_offers({"offers": LISTINGS}, SOURCE_URL)
        assert len(offers) == 2

    def test_relative_image_is_dropped_and_title_truncated(self):
        offers = validate_offers([{"title": "x" * 500, "price": 5, "imageUrl": "/img.png"}], SOURCE_URL)
        assert offers[0].image_url is None
        assert len(offers[0].title) == 200

    def test_scalar_payload_raises(self):
        with pytest.raises(MalformedModelResponseError):
            validate_offers("nope", SOURCE_URL)


class TestExtractOffers:
    """Tests for ExtractionEngine.extract_offers."""

    async def test_fenced_reply_gives_same_offers_as_bare(self, extraction_engine, fake_llm):
        query = StructuredQuery(item="RTX 4080")

        fake_llm.complete.return_value = json.dumps(LISTINGS)
        bare = await extraction_engine.extract_offers("# results", query, SOURCE_URL)

        fake_llm.complete.return_value = "```json\n" + json.dumps(LISTINGS) + "\n```"
        fenced = await extraction_engine.extract_offers("# results", query, SOURCE_URL)

        assert bare == fenced
        assert len(bare) == 2

    async def test_garbage_reply_returns_empty_list(self, extraction_engine, fake_llm):
        fake_llm.complete.return_value = "Sorry, I cannot help with that."
        offers = await extraction_engine.extract_offers("# results", StructuredQuery(item="x"), SOURCE_URL)
        assert offers == []

    async def test_content_is_truncated_with_marker(self, extraction_engine, fake_llm):
        content = "a" * 30001
        await extraction_engine.extract_offers(content, StructuredQuery(item="x"), SOURCE_URL)

        messages = fake_llm.complete.call_args.args[0]
        user_prompt = messages[1]["content"]
        assert ("a" * 30000) + prompts.TRUNCATION_MARKER in user_prompt
        assert "a" * 30001 not in user_prompt

    async def test_extraction_uses_bounded_reply_length(self, extraction_engine, fake_llm):
        await extraction_engine.extract_offers("# results", StructuredQuery(item="x"), SOURCE_URL)
        assert fake_llm.complete.call_args.kwargs["max_tokens"] == 4096

    async def test_prompt_lists_filters_and_images(self, extraction_engine, fake_llm):
        query = StructuredQuery(item="RTX 4080", price_max=800, condition="used")
        await extraction_engine.extract_offers(
            "# results", query, SOURCE_URL, image_hints=["https://img.example/1.jpg"]
        )

        user_prompt = fake_llm.complete.call_args.args[0][1]["content"]
        assert "- Maximum price: 800" in user_prompt
        assert "- Condition: used" in user_prompt
        assert "1. https://img.example/1.jpg" in user_prompt

    async def test_model_failure_propagates(self, extraction_engine, fake_llm):
        fake_llm.complete.side_effect = _api_error()
        with pytest.raises(openai.APIConnectionError):
            await extraction_engine.extract_offers("# results", StructuredQuery(item="x"), SOURCE_URL)


class TestParseQuery:
    """Tests for ExtractionEngine.parse_query."""

    async def test_parses_structured_reply(self, extraction_engine, fake_llm):
        fake_llm.complete.return_value = json.dumps({
            "item": "RTX 4080",
            "brand": "NVIDIA",
            "model": "4080",
            "condition": "Used",
            "price_max": "800",
            "shipping": "teleport",
            "keywords": ["RTX", " ", "4080"],
        })

        parsed = await extraction_engine.parse_query("RTX 4080 usata sotto 800 euro")

        assert parsed.item == "RTX 4080"
        assert parsed.condition == "used"
        assert parsed.price_max == 800
        assert parsed.shipping is None
        assert parsed.keywords == ["RTX", "4080"]
        assert fake_llm.complete.call_args.kwargs["max_tokens"] == 1024

    async def test_localized_condition_is_canonicalized(self, extraction_engine, fake_llm):
        fake_llm.complete.return_value = '{"item": "RTX 4080", "condition": "Usato"}'

        parsed = await extraction_engine.parse_query("RTX 4080 usata")

        assert parsed.condition == "used"

    async def test_malformed_reply_degrades_to_free_text(self, extraction_engine, fake_llm):
        fake_llm.complete.return_value = "I think you want a graphics card"

        parsed = await extraction_engine.parse_query("RTX 4080 usata")

        assert parsed == StructuredQuery(item="RTX 4080 usata", keywords=["RTX 4080 usata"])

    async def test_missing_item_falls_back_to_free_text(self, extraction_engine, fake_llm):
        fake_llm.complete.return_value = '{"brand": "Apple", "price_min": -3}'

        parsed = await extraction_engine.parse_query("iphone 13")

        assert parsed.item == "iphone 13"
        assert parsed.brand == "Apple"
        assert parsed.price_min is None

    async def test_model_failure_propagates(self, extraction_engine, fake_llm):
        fake_llm.complete.side_effect = _api_error()
        with pytest.raises(openai.APIConnectionError):
            await extraction_engine.parse_query("iphone 13")


class TestLLMClient:
    """Tests for the model client lifecycle."""

    async def test_aclose_closes_connection_pool(self):
        client = LLMClient(api_key="sk-test", model="gpt-4o-mini")
        client._client.close = AsyncMock()

        await client.aclose()

        client._client.close.assert_awaited_once()
