"""Health check endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from priceradar.config import settings
from priceradar.dependencies import get_db, get_scheduler
from priceradar.schemas import HealthCheckResponse
from priceradar.scrapers.scheduler import MonitorScheduler

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    scheduler: Optional[MonitorScheduler] = Depends(get_scheduler),
):
    """Return service health status.

    Checks database connectivity and whether the monitor scheduler runs.
    A disabled scheduler is reported but does not degrade the status.
    """
    services = {}

    # Check database connectivity
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    services["database"] = db_status

    scheduled_tiers = {}
    if scheduler is None:
        scheduler_status = "disabled"
    elif scheduler.is_running():
        scheduler_status = "ok"
        scheduled_tiers = {
            frequency: job["next_run"] for frequency, job in scheduler.get_jobs_status().items()
        }
    else:
        scheduler_status = "error: not running"

    services["scheduler"] = scheduler_status

    overall_status = "ok" if all(s in ("ok", "disabled") for s in services.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        environment=settings.ENVIRONMENT,
        database=db_status,
        scheduler=scheduler_status,
        scheduled_tiers=scheduled_tiers,
        services=services,
    )
