"""SQLAlchemy models for Price Radar.

All models are imported here so metadata.create_all() sees every table.
"""

from priceradar.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from priceradar.models.user import User
from priceradar.models.monitor import Monitor, MONITOR_STATUSES
from priceradar.models.offer import Offer, OFFER_STATUSES, MAX_OFFER_PRICE
from priceradar.models.monitor_run import MonitorRun

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "Monitor",
    "MONITOR_STATUSES",
    "Offer",
    "OFFER_STATUSES",
    "MAX_OFFER_PRICE",
    "MonitorRun",
]
