"""Monitor run endpoints."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from priceradar.core.exceptions import (
    MonitorRunFailedError,
    NotActiveError,
    NotFoundError,
)
from priceradar.dependencies import get_db, get_monitor_runner
from priceradar.schemas import ApiResponse, OfferResponse, RunMonitorRequest, RunMonitorResponse
from priceradar.scrapers.monitor_runner import MonitorRunner
from priceradar.services.monitor_service import MonitorService
from priceradar.services.offer_service import OfferService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/run", response_model=RunMonitorResponse)
async def run_monitor(
    body: RunMonitorRequest,
    runner: MonitorRunner = Depends(get_monitor_runner),
):
    """Run one monitor immediately, outside its schedule.

    Returns 404 for an unknown monitor and 409 for a paused or errored one.
    Any pipeline failure is recorded on the monitor and returned as 502.
    """
    try:
        result = await runner.run_one(body.monitor_id)
    except (NotFoundError, NotActiveError):
        raise
    except Exception as e:
        message = getattr(e, "message", None) or str(e) or e.__class__.__name__
        logger.warning("manual_run_failed", monitor_id=str(body.monitor_id), error=message)
        raise MonitorRunFailedError(str(body.monitor_id), message) from e

    if result.fallback_created:
        message = "No matching listings found; placeholder offer created"
    else:
        message = f"Found {result.offers_found} matching offers, {result.offers_created} new"

    return RunMonitorResponse(
        success=True,
        message=message,
        offers_found=result.offers_found,
        offers_created=result.offers_created,
        fallback_created=result.fallback_created,
    )


@router.get("/{monitor_id}/offers", response_model=ApiResponse)
async def list_monitor_offers(
    monitor_id: UUID,
    status: Optional[str] = Query(None, pattern="^(new|archived|clicked)$", description="Filter by offer status"),
    limit: int = Query(50, ge=1, le=200, description="Maximum offers to return"),
    db: AsyncSession = Depends(get_db),
):
    """List a monitor's stored offers, most recent first."""
    monitor = await MonitorService(db).get_monitor_by_id(monitor_id)
    if monitor is None:
        raise NotFoundError("Monitor", str(monitor_id))

    offers = await OfferService(db).get_by_monitor_id(monitor_id, status=status, limit=limit)
    data = [OfferResponse.model_validate(o) for o in offers]
    return ApiResponse(data=data, count=len(data))
