"""Store and filtering services used by the monitor pipeline."""

from priceradar.services.monitor_service import MonitorService
from priceradar.services.offer_service import BulkCreateResult, OfferService, PersistResult
from priceradar.services.offer_filter import filter_offers, offer_matches

__all__ = [
    "MonitorService",
    "OfferService",
    "PersistResult",
    "BulkCreateResult",
    "filter_offers",
    "offer_matches",
]
