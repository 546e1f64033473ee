"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from priceradar.api.v1 import health, monitors, queries, scans

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(monitors.router, prefix="/monitors", tags=["monitors"])
api_v1_router.include_router(queries.router, prefix="/queries", tags=["queries"])
api_v1_router.include_router(scans.router, prefix="/scans", tags=["scans"])
