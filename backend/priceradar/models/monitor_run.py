"""Monitor run tracking."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, ForeignKey, Integer, Boolean, Numeric, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from priceradar.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from priceradar.models.monitor import Monitor


class MonitorRun(UUIDPrimaryKeyMixin, Base):
    """Tracks one execution of a monitor's pipeline.

    Each run records how many URLs were built and fetched and how many
    offers survived each stage, so an empty result can be traced back to
    the stage that produced it.
    """

    __tablename__ = "monitor_runs"

    monitor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    trigger: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="scheduled",
        comment="Trigger: 'scheduled' or 'manual'"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="running",
        index=True,
        comment="Status: 'running', 'completed', 'failed'"
    )

    # Timing
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)

    # Stage counters
    urls_built: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    urls_fetched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    offers_extracted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    offers_matched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    offers_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fallback_created: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    monitor: Mapped["Monitor"] = relationship(back_populates="runs")

    def __repr__(self) -> str:
        return f"<MonitorRun(id={self.id}, monitor_id={self.monitor_id}, status='{self.status}')>"
