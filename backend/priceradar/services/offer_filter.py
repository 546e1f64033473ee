"""Constraint filtering of extracted offers against a monitor's query."""

from decimal import Decimal
from typing import Iterable, List

from priceradar.schemas.query import StructuredQuery
from priceradar.scrapers.base import ExtractedOffer
from priceradar.scrapers.utils.normalizer import condition_matches


def offer_matches(offer: ExtractedOffer, query: StructuredQuery) -> bool:
    """Check one offer against every constraint the query sets.

    A constraint absent from the query never excludes an offer, and an offer
    that does not state a condition is not filtered on condition.
    """
    if query.price_max is not None and offer.price > Decimal(str(query.price_max)):
        return False
    if query.price_min is not None and offer.price < Decimal(str(query.price_min)):
        return False
    if query.condition and offer.condition:
        if not condition_matches(query.condition, offer.condition):
            return False
    return True


def filter_offers(offers: Iterable[ExtractedOffer], query: StructuredQuery) -> List[ExtractedOffer]:
    """Keep the offers that satisfy the query, preserving order."""
    return [offer for offer in offers if offer_matches(offer, query)]
