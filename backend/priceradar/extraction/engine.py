"""Extraction engine: turn free text into validated structured data via a model.

Query parsing and offer extraction are the same operation with different
prompts and validators. A reply that arrives but cannot be parsed degrades
(fallback query, empty offer list); a failed model call propagates.
"""

import json
import re
from typing import Any, Callable, List, Optional, Sequence, TypeVar
from urllib.parse import urljoin

import structlog
from pydantic import ValidationError

from priceradar.core.exceptions import MalformedModelResponseError
from priceradar.extraction import prompts
from priceradar.extraction.llm_client import LLMClient
from priceradar.models.offer import MAX_OFFER_PRICE
from priceradar.schemas.query import StructuredQuery
from priceradar.scrapers.base import ExtractedOffer
from priceradar.scrapers.utils.normalizer import PriceNormalizer, normalize_url

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)

MAX_TITLE_CHARS = 200
MAX_SNIPPET_CHARS = 300
DEFAULT_SNIPPET_CHARS = 150


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    # Unterminated opening fence
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = re.sub(r"^```(?:json|JSON)?\s*", "", stripped)
    return stripped.strip()


def parse_json_payload(text: str) -> Any:
    """Parse the JSON value contained in a model reply.

    Accepts bare JSON, fenced JSON, and JSON surrounded by prose (the first
    decodable array or object wins).

    Raises:
        MalformedModelResponseError: If no JSON value can be decoded
    """
    if not text or not text.strip():
        raise MalformedModelResponseError("empty model reply")

    body = strip_code_fences(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for idx, char in enumerate(body):
        if char not in "[{":
            continue
        try:
            value, _ = decoder.raw_decode(body, idx)
            return value
        except json.JSONDecodeError:
            continue

    raise MalformedModelResponseError(f"no JSON found in model reply: {text[:200]!r}")


def _clean_str(value: Any, limit: Optional[int] = None) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if not text:
        return None
    return text[:limit] if limit else text


def validate_structured_query(payload: Any, free_text: str) -> StructuredQuery:
    """Coerce a parsed model reply into a StructuredQuery.

    Raises:
        MalformedModelResponseError: If the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise MalformedModelResponseError("query reply is not a JSON object")

    prices = {}
    for key in ("price_min", "price_max"):
        amount = PriceNormalizer.to_decimal(payload.get(key))
        if amount is not None and amount > 0:
            prices[key] = float(amount)

    keywords = payload.get("keywords")
    if isinstance(keywords, list):
        keywords = [str(k).strip() for k in keywords if str(k).strip()] or None
    else:
        keywords = None

    try:
        return StructuredQuery(
            item=_clean_str(payload.get("item")) or free_text,
            brand=_clean_str(payload.get("brand")),
            model=_clean_str(payload.get("model")),
            condition=_clean_str(payload.get("condition")),
            location=_clean_str(payload.get("location")),
            shipping=_clean_str(payload.get("shipping")),
            keywords=keywords,
            **prices,
        )
    except ValidationError as e:
        raise MalformedModelResponseError(f"invalid query reply: {e}") from e


def validate_offers(payload: Any, source_url: str) -> List[ExtractedOffer]:
    """Coerce a parsed model reply into ExtractedOffers.

    Items without a non-empty title or a positive numeric price are dropped,
    as are prices too large for the offer store.

    Raises:
        MalformedModelResponseError: If the payload has no list of offers
    """
    if isinstance(payload, dict):
        items = payload.get("offers", payload.get("listings"))
        if not isinstance(items, list):
            items = [payload]
    elif isinstance(payload, list):
        items = payload
    else:
        raise MalformedModelResponseError("offer reply is neither an array nor an object")

    offers: List[ExtractedOffer] = []
    for item in items:
        if not isinstance(item, dict):
            continue

        title = _clean_str(item.get("title"), MAX_TITLE_CHARS)
        price = PriceNormalizer.to_decimal(item.get("price"))
        if not title or price is None or price <= 0 or price > MAX_OFFER_PRICE:
            continue

        raw_url = _clean_str(item.get("url"))
        url = normalize_url(urljoin(source_url, raw_url)) if raw_url else source_url

        image_url = _clean_str(item.get("imageUrl") or item.get("image_url"))
        if image_url and not image_url.startswith(("http://", "https://")):
            image_url = None

        currency = (_clean_str(item.get("currency")) or "EUR").upper()[:3]

        offers.append(ExtractedOffer(
            title=title,
            price=price,
            url=url,
            currency=currency,
            snippet=_clean_str(item.get("snippet"), MAX_SNIPPET_CHARS) or title[:DEFAULT_SNIPPET_CHARS],
            condition=_clean_str(item.get("condition"), 50),
            location=_clean_str(item.get("location"), 200),
            image_url=image_url,
        ))
    return offers


class ExtractionEngine:
    """Single entry point for every "text in, structured data out" model call."""

    def __init__(
        self,
        llm: LLMClient,
        max_content_chars: int = 30000,
        extraction_max_tokens: int = 4096,
        query_max_tokens: int = 1024,
    ):
        self.llm = llm
        self.max_content_chars = max_content_chars
        self.extraction_max_tokens = extraction_max_tokens
        self.query_max_tokens = query_max_tokens
        self.logger = logger.bind(service="extraction_engine")

    @classmethod
    def from_settings(cls, settings) -> "ExtractionEngine":
        """Wire an engine and its model client from configuration.

        Raises:
            ConfigurationMissingError: If LLM_API_KEY is absent
        """
        settings.require("LLM_API_KEY")
        llm = LLMClient(
            api_key=settings.LLM_API_KEY,
            model=settings.LLM_MODEL,
            base_url=settings.LLM_BASE_URL or None,
            temperature=settings.LLM_TEMPERATURE,
            timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        )
        return cls(
            llm,
            max_content_chars=settings.EXTRACTION_MAX_CONTENT_CHARS,
            extraction_max_tokens=settings.LLM_EXTRACTION_MAX_TOKENS,
            query_max_tokens=settings.LLM_QUERY_MAX_TOKENS,
        )

    async def aclose(self) -> None:
        """Release the model client's connections."""
        await self.llm.aclose()

    async def extract(
        self,
        system_prompt: str,
        user_prompt: str,
        validator: Callable[[Any], T],
        max_tokens: int = 1024,
        label: str = "",
    ) -> T:
        """Call the model and validate its reply.

        Args:
            system_prompt: Role/format instructions
            user_prompt: Task and content
            validator: Turns the decoded JSON value into the result type,
                raising MalformedModelResponseError if it cannot
            max_tokens: Reply length bound
            label: Name used in logs

        Raises:
            MalformedModelResponseError: Reply received but unusable
            openai.OpenAIError: The model call itself failed
        """
        reply = await self.llm.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            label=label,
        )
        payload = parse_json_payload(reply)
        return validator(payload)

    async def parse_query(self, free_text: str) -> StructuredQuery:
        """Parse a user's free-text request into a StructuredQuery.

        Never raises on a malformed reply: falls back to item=free_text.
        """
        self.logger.info("parsing_query", query=free_text[:100])
        try:
            parsed = await self.extract(
                prompts.QUERY_SYSTEM_PROMPT,
                prompts.build_query_prompt(free_text),
                lambda payload: validate_structured_query(payload, free_text),
                max_tokens=self.query_max_tokens,
                label="parse_query",
            )
        except MalformedModelResponseError as e:
            self.logger.warning("query_parse_degraded", error=e.message)
            return StructuredQuery.degraded(free_text)

        self.logger.info("query_parsed", parsed=parsed.model_dump(exclude_none=True))
        return parsed

    async def extract_offers(
        self,
        content: str,
        query: StructuredQuery,
        source_url: str,
        image_hints: Optional[Sequence[str]] = None,
    ) -> List[ExtractedOffer]:
        """Extract listings from fetched page content.

        Returns an empty list when the reply cannot be parsed.
        """
        truncated = prompts.truncate_content(content, self.max_content_chars)
        self.logger.info(
            "extracting_offers",
            source_url=source_url,
            chars=len(content),
            truncated=len(truncated) != len(content),
        )

        try:
            offers = await self.extract(
                prompts.EXTRACTION_SYSTEM_PROMPT,
                prompts.build_extraction_prompt(truncated, query, source_url, image_hints),
                lambda payload: validate_offers(payload, source_url),
                max_tokens=self.extraction_max_tokens,
                label="extract_offers",
            )
        except MalformedModelResponseError as e:
            self.logger.warning("offer_extraction_degraded", source_url=source_url, error=e.message)
            return []

        self.logger.info("offers_extracted", source_url=source_url, count=len(offers))
        return offers
