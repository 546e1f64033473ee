"""Monitor run request/response schemas."""

from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class RunMonitorRequest(BaseModel):
    """Request body for POST /monitors/run."""

    monitor_id: UUID = Field(..., description="Monitor to run immediately")


class RunMonitorResponse(BaseModel):
    """Result of an on-demand monitor run."""

    success: bool = True
    message: str
    offers_found: int = Field(..., description="Offers that passed the monitor's filters")
    offers_created: int = Field(..., description="Offers that were new and got stored")
    fallback_created: bool = False


class BatchRunResponse(BaseModel):
    """Summary of a scheduled batch run."""

    success: bool = True
    frequency_minutes: int
    monitors: int
    succeeded: int
    failed: int
    offers_created: int
    failed_monitor_ids: List[UUID] = []
