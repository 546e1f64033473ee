"""FastAPI dependency injection providers."""

from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from priceradar.config import settings
from priceradar.db.session import async_session_factory
from priceradar.extraction.engine import ExtractionEngine
from priceradar.scrapers.monitor_runner import MonitorRunner
from priceradar.scrapers.scheduler import MonitorScheduler


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is committed on success or rolled back on error,
    and always closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_monitor_runner() -> AsyncGenerator[MonitorRunner, None]:
    """Yield a monitor runner wired from settings, closed after the request.

    Raises:
        ConfigurationMissingError: If the fetch or model credentials are absent
    """
    runner = MonitorRunner.from_settings(async_session_factory, settings)
    try:
        yield runner
    finally:
        await runner.aclose()


async def get_extraction_engine() -> AsyncGenerator[ExtractionEngine, None]:
    """Yield an extraction engine wired from settings, closed after the request.

    Raises:
        ConfigurationMissingError: If LLM_API_KEY is absent
    """
    engine = ExtractionEngine.from_settings(settings)
    try:
        yield engine
    finally:
        await engine.aclose()


def get_scheduler(request: Request) -> Optional[MonitorScheduler]:
    """Return the running scheduler, or None when it is disabled."""
    return getattr(request.app.state, "scheduler", None)
