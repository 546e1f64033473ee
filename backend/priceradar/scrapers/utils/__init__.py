"""Scraper utilities for rate limiting, retries and data normalization."""

from .rate_limiter import TokenBucket, get_fetch_rate_limiter
from .normalizer import (
    CONDITION_SYNONYMS,
    PriceNormalizer,
    condition_matches,
    normalize_condition,
    normalize_url,
)
from .retry import llm_retry


__all__ = [
    # Rate limiting
    "TokenBucket",
    "get_fetch_rate_limiter",
    # Normalization
    "CONDITION_SYNONYMS",
    "PriceNormalizer",
    "condition_matches",
    "normalize_condition",
    "normalize_url",
    # Retry decorators
    "llm_retry",
]
