"""Monitor store operations used by the pipeline.

The pipeline reads monitors and writes only run bookkeeping; creation,
editing and plan checks belong to the user-facing layer.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from priceradar.core.exceptions import PersistenceError
from priceradar.models.monitor import Monitor

logger = structlog.get_logger(__name__)


class MonitorService:
    """Service for reading monitors and recording run outcomes."""

    def __init__(self, db: AsyncSession):
        """Initialize monitor service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="monitor_service")

    async def get_due_monitors(
        self,
        frequency_minutes: int,
        now: Optional[datetime] = None,
    ) -> List[Monitor]:
        """Get active monitors not run within the last frequency_minutes.

        Monitors that never ran are always due.

        Args:
            frequency_minutes: Frequency tier being processed
            now: Reference time (defaults to current UTC time)

        Returns:
            Due monitors, oldest run first
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=frequency_minutes)

        query = (
            select(Monitor)
            .where(Monitor.status == "active")
            .where(or_(
                Monitor.last_run_at.is_(None),
                Monitor.last_run_at <= cutoff,
            ))
            .order_by(Monitor.last_run_at.asc().nullsfirst())
        )

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load due monitors: {e}") from e

        monitors = list(result.scalars().all())
        self.logger.info(
            "due_monitors_fetched",
            frequency_minutes=frequency_minutes,
            count=len(monitors),
        )
        return monitors

    async def get_monitor_by_id(self, monitor_id: UUID) -> Optional[Monitor]:
        """Get a single monitor.

        Args:
            monitor_id: Monitor UUID

        Returns:
            Monitor or None if not found
        """
        try:
            return await self.db.get(Monitor, monitor_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load monitor {monitor_id}: {e}") from e

    async def update_monitor_run_outcome(
        self,
        monitor_id: UUID,
        success: bool,
        error_message: Optional[str] = None,
    ) -> None:
        """Record the outcome of a run.

        Always stamps last_run_at. On failure also stamps last_error_at,
        stores the message and moves the monitor to status "error".

        Args:
            monitor_id: Monitor UUID
            success: Whether the run succeeded
            error_message: Failure description (defaults to "Unknown error")
        """
        now = datetime.now(timezone.utc)
        values = {"last_run_at": now, "updated_at": now}
        if not success:
            values.update(
                last_error_at=now,
                last_error_message=error_message or "Unknown error",
                status="error",
            )

        try:
            await self.db.execute(
                update(Monitor).where(Monitor.id == monitor_id).values(**values)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Failed to record run outcome for {monitor_id}: {e}") from e

        self.logger.info(
            "monitor_run_outcome_recorded",
            monitor_id=str(monitor_id),
            success=success,
            error=error_message if not success else None,
        )
