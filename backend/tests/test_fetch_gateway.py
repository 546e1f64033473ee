"""Tests for batched fetching and the Firecrawl client."""

import asyncio
import json
from typing import List, Tuple

import httpx
import pytest

from priceradar.core.exceptions import FetchError
from priceradar.scrapers.base import FetchedContent
from priceradar.scrapers.fetch_gateway import FetchGateway
from priceradar.scrapers.firecrawl import FirecrawlClient, extract_image_urls
from priceradar.scrapers.utils.rate_limiter import TokenBucket, get_fetch_rate_limiter

from conftest import FakeFetcher


class TimedFetcher:
    """Records when each fetch starts and how many run at once."""

    def __init__(self, fail: set = frozenset(), duration: float = 0.01):
        self.fail = fail
        self.duration = duration
        self.started: List[Tuple[str, float]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def scrape(self, url: str) -> FetchedContent:
        loop = asyncio.get_running_loop()
        self.started.append((url, loop.time()))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.duration)
            if url in self.fail:
                raise RuntimeError("HTTP 503")
            return FetchedContent(url=url, markdown=f"# {url}")
        finally:
            self.in_flight -= 1


URLS = ["https://a.example/1", "https://a.example/2", "https://a.example/3"]


class TestFetchGateway:
    """Tests for FetchGateway.fetch_many."""

    async def test_failed_url_is_omitted_and_batches_are_spaced(self):
        fetcher = TimedFetcher(fail={URLS[1]})
        gateway = FetchGateway(fetcher, batch_delay_seconds=0.2)

        results = await gateway.fetch_many(URLS, max_concurrent=2)

        assert set(results) == {URLS[0], URLS[2]}
        assert results[URLS[0]].markdown == f"# {URLS[0]}"
        assert fetcher.max_in_flight == 2

        starts = dict(fetcher.started)
        # Second batch starts only after the first finished plus the delay
        assert starts[URLS[2]] - starts[URLS[0]] >= 0.2

    async def test_no_delay_after_last_batch(self):
        gateway = FetchGateway(TimedFetcher(duration=0), batch_delay_seconds=5)
        loop = asyncio.get_running_loop()

        start = loop.time()
        await gateway.fetch_many(URLS, max_concurrent=3)

        assert loop.time() - start < 1

    async def test_all_failures_return_empty(self):
        gateway = FetchGateway(FakeFetcher(fail=set(URLS)), batch_delay_seconds=0)
        assert await gateway.fetch_many(URLS, max_concurrent=2) == {}

    async def test_duplicate_urls_fetched_once(self):
        fetcher = FakeFetcher(default="# ok")
        gateway = FetchGateway(fetcher, batch_delay_seconds=0)

        results = await gateway.fetch_many([URLS[0], URLS[0], URLS[1]], max_concurrent=3)

        assert fetcher.calls == [URLS[0], URLS[1]]
        assert len(results) == 2

    async def test_invalid_batch_size(self):
        gateway = FetchGateway(FakeFetcher(), batch_delay_seconds=0)
        with pytest.raises(ValueError):
            await gateway.fetch_many(URLS, max_concurrent=0)

    async def test_rate_limiter_is_acquired_per_fetch(self):
        bucket = TokenBucket(rate=1000, capacity=10)
        gateway = FetchGateway(FakeFetcher(default="# ok"), batch_delay_seconds=0, rate_limiter=bucket)

        await gateway.fetch_many(URLS, max_concurrent=3)

        assert bucket.tokens < 10


class TestTokenBucket:
    """Tests for the token bucket."""

    def test_per_minute(self):
        bucket = TokenBucket.per_minute(30)
        assert bucket.rate == pytest.approx(0.5)
        assert bucket.capacity == 3.0

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0, capacity=1)

    async def test_waits_when_empty(self):
        bucket = TokenBucket(rate=20, capacity=1)
        loop = asyncio.get_running_loop()

        start = loop.time()
        await bucket.acquire()
        await bucket.acquire()

        assert loop.time() - start >= 0.04


async def _bucket_used_in_fresh_loop() -> TokenBucket:
    bucket = get_fetch_rate_limiter(600)
    await bucket.acquire()
    await bucket.acquire()
    return bucket


class TestFetchRateLimiter:
    """Tests for the shared fetch bucket."""

    async def test_shared_within_a_loop(self):
        assert get_fetch_rate_limiter(600) is get_fetch_rate_limiter(600)

    def test_disabled_when_rpm_not_positive(self):
        assert get_fetch_rate_limiter(0) is None

    async def test_each_loop_gets_its_own_bucket(self):
        here = get_fetch_rate_limiter(600)
        await here.acquire()

        elsewhere = await asyncio.to_thread(asyncio.run, _bucket_used_in_fresh_loop())

        assert elsewhere is not here
        await here.acquire()


def _firecrawl(handler) -> FirecrawlClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FirecrawlClient(api_key="fc-test", base_url="https://firecrawl.test/", http_client=client)


class TestFirecrawlClient:
    """Tests for FirecrawlClient.scrape."""

    async def test_scrape_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "success": True,
                "data": {
                    "markdown": "# Results\n![gpu](https://img.example/gpu.jpg)\n![logo](/logo.png)",
                    "html": "<h1>Results</h1>",
                    "metadata": {"ogImage": "https://img.example/og.jpg"},
                },
            })

        content = await _firecrawl(handler).scrape("https://www.ebay.it/sch/i.html?_nkw=gpu")

        assert seen["url"] == "https://firecrawl.test/v1/scrape"
        assert seen["auth"] == "Bearer fc-test"
        assert seen["body"]["formats"] == ["markdown", "html"]
        assert seen["body"]["onlyMainContent"] is True
        assert content.markdown.startswith("# Results")
        assert content.image_urls == [
            "https://img.example/og.jpg",
            "https://img.example/gpu.jpg",
            "https://www.ebay.it/logo.png",
        ]

    async def test_http_error_raises_fetch_error(self):
        client = _firecrawl(lambda request: httpx.Response(429, json={"error": "rate limited"}))
        with pytest.raises(FetchError, match="HTTP 429"):
            await client.scrape("https://www.ebay.it/sch/i.html")

    async def test_missing_markdown_raises_fetch_error(self):
        client = _firecrawl(lambda request: httpx.Response(200, json={"success": True, "data": {}}))
        with pytest.raises(FetchError, match="no markdown"):
            await client.scrape("https://www.ebay.it/sch/i.html")


def test_extract_image_urls_deduplicates_and_skips_non_http():
    markdown = "![a](https://x.example/1.jpg) ![b](https://x.example/1.jpg) ![c](data:image/png;base64,AAA)"
    assert extract_image_urls(markdown) == ["https://x.example/1.jpg"]
