"""Monitor pipeline orchestration.

Connects the URL builder, fetch gateway, extraction engine, filter and
offer store. For each monitor: build URLs -> fetch -> extract -> filter ->
persist -> record the outcome. Monitors in a batch run concurrently and a
failing monitor never affects its siblings.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from priceradar.config import Settings
from priceradar.core.exceptions import NoContentFetchedError, NotActiveError, NotFoundError
from priceradar.extraction.engine import ExtractionEngine
from priceradar.models.monitor import Monitor
from priceradar.models.monitor_run import MonitorRun
from priceradar.schemas.query import StructuredQuery
from priceradar.scrapers.base import ExtractedOffer
from priceradar.scrapers.fetch_gateway import FetchGateway
from priceradar.scrapers.firecrawl import FirecrawlClient
from priceradar.scrapers.url_builder import build_search_urls
from priceradar.scrapers.utils.rate_limiter import get_fetch_rate_limiter
from priceradar.services.monitor_service import MonitorService
from priceradar.services.offer_filter import filter_offers
from priceradar.services.offer_service import OfferService

logger = structlog.get_logger(__name__)


@dataclass
class MonitorRunResult:
    """What one monitor run produced."""

    monitor_id: UUID
    success: bool = False
    urls_built: int = 0
    urls_fetched: int = 0
    offers_extracted: int = 0
    offers_found: int = 0  # Passed the filters
    offers_created: int = 0  # New rows after dedup
    fallback_created: bool = False
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Outcome of a scheduled batch."""

    frequency_minutes: int
    results: List[MonitorRunResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def offers_created(self) -> int:
        return sum(r.offers_created for r in self.results)

    @property
    def failed_monitor_ids(self) -> List[UUID]:
        return [r.monitor_id for r in self.results if not r.success]


def query_for_monitor(monitor: Monitor) -> StructuredQuery:
    """Load a monitor's StructuredQuery, using its free text when item is missing."""
    data: Dict = dict(monitor.query_json or {})
    if not data.get("item"):
        data["item"] = monitor.query_text
    return StructuredQuery.model_validate(data)


class MonitorRunner:
    """Runs monitor pipelines, one at a time or as a concurrent batch."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        fetch_gateway: FetchGateway,
        extraction_engine: ExtractionEngine,
        max_concurrent_fetches: int = 3,
        fallback_enabled: bool = True,
    ):
        """Initialize monitor runner.

        Args:
            session_factory: Async session factory; every monitor gets its own session
            fetch_gateway: Gateway used to fetch search result pages
            extraction_engine: Engine used to extract offers from page content
            max_concurrent_fetches: Fetch batch size per monitor
            fallback_enabled: Create a placeholder offer when a run finds nothing
        """
        self.session_factory = session_factory
        self.fetch_gateway = fetch_gateway
        self.extraction_engine = extraction_engine
        self.max_concurrent_fetches = max_concurrent_fetches
        self.fallback_enabled = fallback_enabled
        self.logger = logger.bind(service="monitor_runner")

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ) -> "MonitorRunner":
        """Wire a runner from configuration.

        Raises:
            ConfigurationMissingError: If the fetch or model credentials are absent
        """
        settings.require("FIRECRAWL_API_KEY", "LLM_API_KEY")

        fetcher = FirecrawlClient(
            api_key=settings.FIRECRAWL_API_KEY,
            base_url=settings.FIRECRAWL_API_URL,
            timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        )
        gateway = FetchGateway(
            fetcher,
            batch_delay_seconds=settings.FETCH_BATCH_DELAY_SECONDS,
            rate_limiter=get_fetch_rate_limiter(settings.FETCH_REQUESTS_PER_MINUTE),
        )
        return cls(
            session_factory,
            gateway,
            ExtractionEngine.from_settings(settings),
            max_concurrent_fetches=settings.FETCH_MAX_CONCURRENT,
            fallback_enabled=settings.FALLBACK_OFFER_ENABLED,
        )

    async def aclose(self) -> None:
        """Release the model client built by from_settings.

        Firecrawl requests open their own short-lived httpx client per call.
        """
        await self.extraction_engine.aclose()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_batch(self, frequency_minutes: int) -> BatchResult:
        """Run every due monitor for a frequency tier concurrently.

        Each monitor's failure is recorded against that monitor and does not
        cancel the others.

        Args:
            frequency_minutes: Frequency tier (e.g., 3 for pro, 30 for free)

        Returns:
            BatchResult with one entry per monitor
        """
        self.logger.info("batch_started", frequency_minutes=frequency_minutes)

        async with self.session_factory() as db:
            monitors = await MonitorService(db).get_due_monitors(frequency_minutes)
            monitor_ids = [m.id for m in monitors]

        batch = BatchResult(frequency_minutes=frequency_minutes)
        if not monitor_ids:
            self.logger.info("batch_empty", frequency_minutes=frequency_minutes)
            return batch

        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(self._run_isolated(monitor_id, trigger="scheduled"))
                for monitor_id in monitor_ids
            ]
        batch.results = [task.result() for task in tasks]

        self.logger.info(
            "batch_completed",
            frequency_minutes=frequency_minutes,
            monitors=len(batch.results),
            succeeded=batch.succeeded,
            failed=batch.failed,
            offers_created=batch.offers_created,
        )
        return batch

    async def run_one(self, monitor_id: UUID) -> MonitorRunResult:
        """Run a single monitor on demand.

        Raises:
            NotFoundError: If the monitor does not exist
            NotActiveError: If the monitor is paused or in error
            Exception: Whatever made the pipeline fail, after it was recorded
        """
        async with self.session_factory() as db:
            monitor = await MonitorService(db).get_monitor_by_id(monitor_id)
            if monitor is None:
                raise NotFoundError("Monitor", str(monitor_id))
            if monitor.status != "active":
                raise NotActiveError(str(monitor_id), monitor.status)

        return await self._execute(monitor_id, trigger="manual")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_isolated(self, monitor_id: UUID, trigger: str) -> MonitorRunResult:
        """Run a monitor, converting any failure into a failed result."""
        try:
            return await self._execute(monitor_id, trigger=trigger)
        except Exception as e:
            self.logger.error(
                "monitor_run_failed",
                monitor_id=str(monitor_id),
                error=str(e),
                error_type=e.__class__.__name__,
            )
            return MonitorRunResult(monitor_id=monitor_id, success=False, error=str(e) or e.__class__.__name__)

    async def _execute(self, monitor_id: UUID, trigger: str) -> MonitorRunResult:
        """Run the pipeline for one monitor and record its outcome."""
        log = self.logger.bind(monitor_id=str(monitor_id), trigger=trigger)
        result = MonitorRunResult(monitor_id=monitor_id)

        async with self.session_factory() as db:
            monitor_service = MonitorService(db)
            monitor = await monitor_service.get_monitor_by_id(monitor_id)
            if monitor is None:
                raise NotFoundError("Monitor", str(monitor_id))

            start_time = datetime.now(timezone.utc)
            run_record = MonitorRun(
                monitor_id=monitor_id,
                trigger=trigger,
                status="running",
                started_at=start_time,
            )
            db.add(run_record)
            await db.commit()
            run_id = run_record.id

            log.info("monitor_run_started", query=monitor.query_text[:100])

            try:
                await self._run_pipeline(db, monitor, result, log)
            except Exception as e:
                await db.rollback()
                result.success = False
                result.error = str(e) or e.__class__.__name__
                log.error(
                    "monitor_pipeline_failed",
                    error=result.error,
                    error_type=e.__class__.__name__,
                    exc_info=True,
                )
                await self._finish_run(db, run_id, result, start_time)
                await monitor_service.update_monitor_run_outcome(monitor_id, False, result.error)
                raise

            result.success = True
            await self._finish_run(db, run_id, result, start_time)
            await monitor_service.update_monitor_run_outcome(monitor_id, True)

        log.info(
            "monitor_run_completed",
            urls_built=result.urls_built,
            urls_fetched=result.urls_fetched,
            offers_extracted=result.offers_extracted,
            offers_found=result.offers_found,
            offers_created=result.offers_created,
            fallback_created=result.fallback_created,
        )
        return result

    async def _run_pipeline(
        self,
        db: AsyncSession,
        monitor: Monitor,
        result: MonitorRunResult,
        log,
    ) -> None:
        offer_service = OfferService(db)
        query = query_for_monitor(monitor)

        urls = build_search_urls(monitor.sites or [], query)
        result.urls_built = len(urls)
        log.info("search_urls_built", count=len(urls), sites=monitor.sites)

        had_offers = await offer_service.count_for_monitor(monitor.id) > 0

        extracted: List[ExtractedOffer] = []
        if urls:
            contents = await self.fetch_gateway.fetch_many(urls, self.max_concurrent_fetches)
            result.urls_fetched = len(contents)
            if not contents:
                raise NoContentFetchedError(str(monitor.id), len(urls))

            for url in urls:
                content = contents.get(url)
                if content is None:
                    continue
                extracted.extend(await self.extraction_engine.extract_offers(
                    content.markdown,
                    query,
                    source_url=url,
                    image_hints=content.image_urls,
                ))

        # Several result pages can list the same item
        unique: Dict[str, ExtractedOffer] = {}
        for offer in extracted:
            unique.setdefault(offer.url, offer)
        result.offers_extracted = len(unique)

        matched = filter_offers(unique.values(), query)
        result.offers_found = len(matched)
        log.info("offers_filtered", extracted=result.offers_extracted, matched=len(matched))

        if matched:
            bulk = await offer_service.create_offer_bulk(monitor, matched)
            result.offers_created = bulk.created
        elif self.fallback_enabled and not had_offers:
            fallback = await offer_service.create_fallback_offer(monitor, query)
            result.fallback_created = fallback.created

    async def _finish_run(
        self,
        db: AsyncSession,
        run_id: UUID,
        result: MonitorRunResult,
        start_time: datetime,
    ) -> None:
        end_time = datetime.now(timezone.utc)
        duration = (end_time - start_time).total_seconds()
        await db.execute(
            update(MonitorRun)
            .where(MonitorRun.id == run_id)
            .values(
                status="completed" if result.success else "failed",
                completed_at=end_time,
                duration_seconds=Decimal(str(round(duration, 2))),
                urls_built=result.urls_built,
                urls_fetched=result.urls_fetched,
                offers_extracted=result.offers_extracted,
                offers_matched=result.offers_found,
                offers_created=result.offers_created,
                fallback_created=result.fallback_created,
                error_message=result.error,
            )
        )
        await db.commit()
