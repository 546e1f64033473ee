"""Offer model representing listings discovered for a monitor."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, ForeignKey, Boolean, Numeric, DateTime, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from priceradar.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from priceradar.models.monitor import Monitor
    from priceradar.models.user import User


OFFER_STATUSES = ("new", "archived", "clicked")

# Largest value the Numeric(12, 2) price column holds
MAX_OFFER_PRICE = Decimal("9999999999.99")


class Offer(UUIDPrimaryKeyMixin, Base):
    """A listing found by a monitor run.

    The URL column is globally unique and is the deduplication boundary:
    two runs that find the same canonical URL share a single row.
    """

    __tablename__ = "offers"

    # References
    monitor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Listing content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    url: Mapped[str] = mapped_column(String(2000), nullable=False, unique=True, comment="Canonical listing URL")
    site_name: Mapped[str] = mapped_column(String(200), nullable=False)
    snippet: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    condition: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="new",
        comment="Status: 'new', 'archived', 'clicked'"
    )
    is_fallback: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Diagnostic placeholder created when a run found nothing"
    )

    # Timestamps
    found_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    clicked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_offers_user_status", "user_id", "status"),
        Index("idx_offers_status_found_at", "status", "found_at"),
    )

    # Relationships
    monitor: Mapped["Monitor"] = relationship(back_populates="offers")
    user: Mapped["User"] = relationship(back_populates="offers")

    def __repr__(self) -> str:
        return f"<Offer(id={self.id}, title='{self.title[:50]}...', price={self.price} {self.currency})>"
