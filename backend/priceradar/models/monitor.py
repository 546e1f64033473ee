"""Monitor model: a saved, recurring search."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Text, ForeignKey, Integer, DateTime, Index
from sqlalchemy import JSON as JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from priceradar.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from priceradar.models.user import User
    from priceradar.models.offer import Offer
    from priceradar.models.monitor_run import MonitorRun


MONITOR_STATUSES = ("active", "paused", "error")


class Monitor(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A saved search with constraints and a run cadence.

    The pipeline only ever touches the run bookkeeping columns
    (last_run_at, last_error_at, last_error_message, status on failure).
    """

    __tablename__ = "monitors"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Query
    query_text: Mapped[str] = mapped_column(Text, nullable=False, comment="Original free-text request")
    query_json: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        comment="StructuredQuery as JSON"
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="Status: 'active', 'paused', 'error'"
    )
    sites: Mapped[List[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        comment="Target site identifiers (e.g., ['ebay', 'subito'])"
    )
    frequency_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=30,
        comment="How often the monitor runs"
    )

    # Run bookkeeping
    last_run_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_monitors_status_last_run", "status", "last_run_at"),
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="monitors")
    offers: Mapped[List["Offer"]] = relationship(
        back_populates="monitor", cascade="all, delete-orphan", passive_deletes=True
    )
    runs: Mapped[List["MonitorRun"]] = relationship(
        back_populates="monitor", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Monitor(id={self.id}, query='{self.query_text[:50]}', status='{self.status}')>"
