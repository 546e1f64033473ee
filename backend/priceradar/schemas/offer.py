"""Offer Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class OfferResponse(BaseModel):
    """Standard offer response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    monitor_id: UUID
    title: str
    price: Decimal
    currency: str
    url: str
    site_name: str
    snippet: str
    image_url: Optional[str] = None
    condition: Optional[str] = None
    location: Optional[str] = None
    status: str
    is_fallback: bool
    found_at: datetime
