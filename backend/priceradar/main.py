"""Price Radar Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from priceradar.api.v1.router import api_v1_router
from priceradar.config import settings
from priceradar.core.exceptions import (
    ConfigurationMissingError,
    NotActiveError,
    NotFoundError,
    PriceRadarException,
)
from priceradar.core.logging import configure_logging
from priceradar.db.session import async_session_factory, engine
from priceradar.models import Base
from priceradar.schemas import ErrorDetail, ErrorResponse
from priceradar.scrapers.scheduler import MonitorScheduler

configure_logging(level=settings.LOG_LEVEL, json_logs=settings.ENVIRONMENT == "production")
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    app.state.scheduler = None

    # Startup
    logger.info("app_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    # Auto-create tables on startup (safe for fresh deployments)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_verified")
    except Exception as e:
        logger.error("database_init_failed", error=str(e), exc_info=True)

    # Start monitor scheduler (only in non-test environments)
    if settings.ENVIRONMENT != "test" and settings.SCHEDULER_ENABLED:
        scheduler = MonitorScheduler(async_session_factory)
        scheduler.start()
        jobs_count = scheduler.load_tier_jobs()
        app.state.scheduler = scheduler
        logger.info("scheduler_initialized", tier_jobs=jobs_count)
    else:
        logger.info("scheduler_disabled", environment=settings.ENVIRONMENT)

    yield

    # Shutdown
    logger.info("app_stopping")
    if app.state.scheduler:
        app.state.scheduler.stop()
    await engine.dispose()


app = FastAPI(
    title="Price Radar API",
    description="Marketplace monitor pipeline: search, extract, filter and store offers",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, code: str, exc: PriceRadarException) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=exc.message,
            monitor_id=getattr(exc, "monitor_id", None),
            setting=getattr(exc, "setting", None),
        )
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(PriceRadarException)
async def price_radar_exception_handler(request: Request, exc: PriceRadarException):
    """Map domain errors onto the error envelope."""
    if isinstance(exc, NotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, "NotFound", exc)
    if isinstance(exc, NotActiveError):
        return _error_response(status.HTTP_409_CONFLICT, "NotActive", exc)
    if isinstance(exc, ConfigurationMissingError):
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "ConfigurationMissing", exc)

    logger.error("request_failed", path=request.url.path, error=exc.message, error_type=exc.__class__.__name__)
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc.__class__.__name__.removesuffix("Error"), exc)


# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Price Radar API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
