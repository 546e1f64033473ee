"""Data normalization utilities for conditions, prices and listing URLs."""

import re
from decimal import Decimal, InvalidOperation
from typing import Dict, FrozenSet, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


# Surface forms accepted for each canonical condition, across the locales
# the supported marketplaces publish in. Lowercase only.
CONDITION_SYNONYMS: Dict[str, FrozenSet[str]] = {
    "used": frozenset([
        "used", "usato", "usata", "usati", "usate",
        "usada", "usado",
        "occasion", "d'occasion",
        "gebraucht",
    ]),
    "new": frozenset([
        "new", "nuovo", "nuova", "nuovi", "nuove",
        "nueva", "nuevo",
        "neuf", "neuve",
        "neu",
    ]),
    "refurbished": frozenset([
        "refurbished", "ricondizionato", "ricondizionata",
        "recondicionado", "reacondicionado",
        "reconditionné", "reconditionne",
        "generalüberholt",
    ]),
}

# Common tracking parameters stripped from listing URLs
TRACKING_PARAMS = frozenset([
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "ref",
    "source",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
    "_trksid",
    "_trkparms",
])


def _surface(value: str) -> str:
    return value.strip().lower()


def normalize_condition(value: Optional[str]) -> Optional[str]:
    """Map a condition surface form to its canonical class.

    Args:
        value: Condition as written by a listing or a user (e.g., "Usato")

    Returns:
        "new", "used", "refurbished", or None if the form is unknown
    """
    if not value:
        return None
    surface = _surface(value)
    for canonical, synonyms in CONDITION_SYNONYMS.items():
        if surface in synonyms:
            return canonical
    return None


def condition_matches(required: str, offered: str) -> bool:
    """Check whether an offer's stated condition satisfies a required one.

    The required condition may itself be a surface form ("usato"); it is
    canonicalized first. Unknown required values only match themselves.
    """
    required_surface = _surface(required)
    canonical = normalize_condition(required_surface)
    allowed = CONDITION_SYNONYMS[canonical] if canonical else frozenset([required_surface])
    return _surface(offered) in allowed


class PriceNormalizer:
    """Price parsing utilities."""

    @staticmethod
    def clean_price_string(raw: str) -> Optional[Decimal]:
        """Parse a price string and extract numeric value.

        Handles various formats:
        - "€ 1.234,56" -> 1234.56
        - "$12.99" -> 12.99
        - "1,234" -> 1234
        - "799" -> 799

        Args:
            raw: Raw price string

        Returns:
            Decimal price value, or None if parsing fails
        """
        if not raw:
            return None

        cleaned = re.sub(r"[^\d.,]", "", raw)
        if not cleaned:
            return None

        if "," in cleaned and "." in cleaned:
            # The right-most separator is the decimal one
            if cleaned.rfind(",") > cleaned.rfind("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        elif "," in cleaned:
            head, _, tail = cleaned.rpartition(",")
            # "799,99" is a decimal comma, "1,234" a thousands separator
            if len(tail) == 2 and head.count(",") == 0:
                cleaned = f"{head}.{tail}"
            else:
                cleaned = cleaned.replace(",", "")
        elif cleaned.count(".") > 1:
            cleaned = cleaned.replace(".", "")

        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None

    @classmethod
    def to_decimal(cls, value) -> Optional[Decimal]:
        """Coerce a model-provided price (number or string) to Decimal.

        Booleans and non-finite numbers are rejected.
        """
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, float)):
            try:
                amount = Decimal(str(value))
            except InvalidOperation:
                return None
            return amount if amount.is_finite() else None
        if isinstance(value, str):
            return cls.clean_price_string(value)
        return None


def normalize_url(url: str) -> str:
    """Canonicalize a listing URL for deduplication.

    Lowercases scheme and host, drops tracking parameters and the fragment.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    if not url:
        return url

    parsed = urlparse(url.strip())

    filtered_params = [
        (k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if k.lower() not in TRACKING_PARAMS
    ]
    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), parsed.path, parsed.params, new_query, "")
    )
