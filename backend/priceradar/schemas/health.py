"""Health check schemas."""

from typing import Dict, Optional

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Overall status plus one entry per dependency.

    `scheduled_tiers` maps each frequency tier (minutes) to its next run time.
    """

    status: str
    environment: str
    database: str
    scheduler: str
    scheduled_tiers: Dict[int, Optional[str]] = {}
    services: Dict[str, str] = {}
