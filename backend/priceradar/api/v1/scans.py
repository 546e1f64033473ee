"""Manual trigger for the scheduled monitor batches."""

from fastapi import APIRouter, Depends, Query

from priceradar.dependencies import get_monitor_runner
from priceradar.schemas import BatchRunResponse
from priceradar.scrapers.monitor_runner import MonitorRunner

router = APIRouter()


@router.post("/trigger", response_model=BatchRunResponse)
async def trigger_scan(
    frequency: int = Query(..., ge=1, description="Frequency tier in minutes (e.g., 3 or 30)"),
    runner: MonitorRunner = Depends(get_monitor_runner),
):
    """Run every monitor due in a frequency tier now.

    Individual monitor failures are reported in the summary, never as an
    error response.
    """
    batch = await runner.run_batch(frequency)
    return BatchRunResponse(
        success=True,
        frequency_minutes=batch.frequency_minutes,
        monitors=len(batch.results),
        succeeded=batch.succeeded,
        failed=batch.failed,
        offers_created=batch.offers_created,
        failed_monitor_ids=batch.failed_monitor_ids,
    )
