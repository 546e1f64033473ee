"""Pytest configuration and shared fixtures."""

import os

# Must be set before priceradar.config is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from priceradar.extraction.engine import ExtractionEngine
from priceradar.models import Base, Monitor, User
from priceradar.scrapers.base import FetchedContent
from priceradar.scrapers.fetch_gateway import FetchGateway
from priceradar.scrapers.monitor_runner import MonitorRunner


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """File-backed SQLite database; every session gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'priceradar.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory):
    """A single session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def sample_user(test_db: AsyncSession) -> User:
    user = User(email="rossi@example.com", plan="pro")
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
def make_monitor(test_db: AsyncSession, sample_user: User):
    """Factory creating monitors owned by sample_user."""

    async def _make(
        query_text: str = "RTX 4080 usata sotto 800 euro",
        query_json: Optional[dict] = None,
        sites: Optional[List[str]] = None,
        status: str = "active",
        frequency_minutes: int = 30,
        **fields,
    ) -> Monitor:
        monitor = Monitor(
            user_id=sample_user.id,
            query_text=query_text,
            query_json=query_json if query_json is not None else {
                "item": "RTX 4080",
                "brand": "NVIDIA",
                "model": "RTX 4080",
                "condition": "used",
                "price_max": 800,
            },
            sites=sites if sites is not None else ["ebay"],
            status=status,
            frequency_minutes=frequency_minutes,
            **fields,
        )
        test_db.add(monitor)
        await test_db.commit()
        await test_db.refresh(monitor)
        return monitor

    return _make


# ============================================================================
# FAKE EXTERNAL SERVICES
# ============================================================================

class FakeFetcher:
    """Stands in for FirecrawlClient: serves canned pages, fails listed URLs."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, fail: Optional[set] = None, default: str = ""):
        self.pages = pages or {}
        self.fail = fail or set()
        self.default = default
        self.calls: List[str] = []

    async def scrape(self, url: str) -> FetchedContent:
        self.calls.append(url)
        if url in self.fail or (url not in self.pages and not self.default):
            raise RuntimeError(f"unreachable: {url}")
        return FetchedContent(url=url, markdown=self.pages.get(url, self.default))


@pytest.fixture
def fake_llm():
    """LLM client double; set .complete.return_value or .side_effect per test."""
    llm = AsyncMock()
    llm.complete.return_value = "[]"
    return llm


@pytest.fixture
def extraction_engine(fake_llm) -> ExtractionEngine:
    return ExtractionEngine(fake_llm)


@pytest.fixture
def make_runner(session_factory, extraction_engine):
    """Build a MonitorRunner around a fetcher, without delays or rate limits."""

    def _make(fetcher=None, fallback_enabled: bool = True) -> MonitorRunner:
        gateway = FetchGateway(fetcher or FakeFetcher(default="# results"), batch_delay_seconds=0)
        return MonitorRunner(
            session_factory,
            gateway,
            extraction_engine,
            max_concurrent_fetches=3,
            fallback_enabled=fallback_enabled,
        )

    return _make
