"""Transient data structures passed between pipeline stages.

FetchedContent is produced by the fetch gateway, ExtractedOffer by the
extraction engine. Neither is persisted as-is.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


@dataclass
class FetchedContent:
    """Simplified page content returned by the remote fetch service."""

    url: str
    markdown: str
    html: str = ""
    image_urls: List[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


@dataclass
class ExtractedOffer:
    """A candidate listing extracted from page content."""

    title: str
    price: Decimal
    url: str
    currency: str = "EUR"
    snippet: str = ""
    condition: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.title or not self.title.strip():
            raise ValueError("title is required")
        if self.price is None or self.price <= 0:
            raise ValueError("price must be a positive Decimal")
        if not self.url:
            raise ValueError("url is required")
