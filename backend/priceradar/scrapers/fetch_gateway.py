"""Batched, rate-limited fetching of search result pages."""

import asyncio
from typing import Dict, List, Optional, Protocol, Sequence

import structlog

from priceradar.scrapers.base import FetchedContent
from priceradar.scrapers.utils.rate_limiter import TokenBucket

logger = structlog.get_logger(__name__)


class ContentFetcher(Protocol):
    """Anything that can turn a URL into FetchedContent (e.g. FirecrawlClient)."""

    async def scrape(self, url: str) -> FetchedContent: ...


class FetchGateway:
    """Fetches URLs in fixed-size concurrent batches.

    Within a batch all fetches run concurrently; between batches the
    gateway sleeps for batch_delay_seconds. A failing URL is logged and
    left out of the result. The gateway never retries.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        batch_delay_seconds: float = 1.0,
        rate_limiter: Optional[TokenBucket] = None,
    ):
        """Initialize fetch gateway.

        Args:
            fetcher: Remote fetch service client
            batch_delay_seconds: Pause between consecutive batches
            rate_limiter: Optional shared bucket acquired before each fetch
        """
        self.fetcher = fetcher
        self.batch_delay_seconds = batch_delay_seconds
        self.rate_limiter = rate_limiter
        self.logger = logger.bind(service="fetch_gateway")

    async def fetch_many(
        self,
        urls: Sequence[str],
        max_concurrent: int = 3,
    ) -> Dict[str, FetchedContent]:
        """Fetch every URL, batch by batch.

        Args:
            urls: URLs to fetch (duplicates are fetched once)
            max_concurrent: Batch size

        Returns:
            Map of URL -> content for the URLs that succeeded; empty if none did
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        unique_urls: List[str] = list(dict.fromkeys(urls))
        results: Dict[str, FetchedContent] = {}
        failed = 0

        self.logger.info(
            "fetch_started",
            urls=len(unique_urls),
            max_concurrent=max_concurrent,
        )

        for start in range(0, len(unique_urls), max_concurrent):
            batch = unique_urls[start:start + max_concurrent]
            self.logger.debug(
                "fetch_batch",
                batch=start // max_concurrent + 1,
                size=len(batch),
            )

            outcomes = await asyncio.gather(
                *(self._fetch_one(url) for url in batch),
                return_exceptions=True,
            )

            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    failed += 1
                    self.logger.warning("fetch_failed", url=url, error=str(outcome))
                else:
                    results[url] = outcome

            if start + max_concurrent < len(unique_urls):
                await asyncio.sleep(self.batch_delay_seconds)

        self.logger.info(
            "fetch_completed",
            succeeded=len(results),
            failed=failed,
        )
        return results

    async def _fetch_one(self, url: str) -> FetchedContent:
        if self.rate_limiter:
            await self.rate_limiter.acquire()
        return await self.fetcher.scrape(url)
