"""Firecrawl scrape API client.

Turns a marketplace URL into cleaned markdown plus the image URLs found
on the page. Documentation: https://docs.firecrawl.dev/api-reference/endpoint/scrape
"""

import re
from typing import List, Optional
from urllib.parse import urljoin

import httpx
import structlog

from priceradar.core.exceptions import FetchError
from priceradar.scrapers.base import FetchedContent

logger = structlog.get_logger(__name__)

# ![alt](url) or ![alt](url "title")
_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")


def extract_image_urls(markdown: str, base_url: str = "", metadata: Optional[dict] = None) -> List[str]:
    """Collect absolute http(s) image URLs from markdown and page metadata.

    Order of first appearance is preserved; duplicates are dropped.
    """
    candidates: List[str] = []
    if metadata:
        og_image = metadata.get("ogImage") or metadata.get("og:image")
        if isinstance(og_image, str):
            candidates.append(og_image)

    candidates.extend(_MARKDOWN_IMAGE.findall(markdown or ""))

    seen = set()
    images: List[str] = []
    for raw in candidates:
        url = urljoin(base_url, raw.strip()) if base_url else raw.strip()
        if not url.startswith(("http://", "https://")) or url in seen:
            continue
        seen.add(url)
        images.append(url)
    return images


class FirecrawlClient:
    """Async client for the Firecrawl scrape endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.firecrawl.dev",
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Firecrawl client.

        Args:
            api_key: Firecrawl API key
            base_url: API root, overridable for self-hosted deployments
            timeout: Per-request timeout in seconds
            http_client: Optional shared client (tests inject a mock transport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = http_client
        self.logger = logger.bind(service="firecrawl")

    async def scrape(self, url: str) -> FetchedContent:
        """Scrape a single URL.

        Args:
            url: Page to scrape

        Returns:
            FetchedContent with markdown, html and discovered image URLs

        Raises:
            FetchError: On HTTP errors or when no markdown is returned
        """
        payload = {
            "url": url,
            "formats": ["markdown", "html"],
            "onlyMainContent": True,  # skip nav/footer/ads
            "waitFor": 2000,  # ms, lets dynamic listings render
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        self.logger.info("scraping_url", url=url)

        try:
            if self._client is not None:
                response = await self._client.post(
                    f"{self.base_url}/v1/scrape", json=payload, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(
                        f"{self.base_url}/v1/scrape", json=payload, headers=headers
                    )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or e.__class__.__name__) from e
        except ValueError as e:
            raise FetchError(url, "invalid JSON response") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not data.get("markdown"):
            raise FetchError(url, "no markdown content returned")

        metadata = data.get("metadata") or {}
        markdown = data["markdown"]
        content = FetchedContent(
            url=url,
            markdown=markdown,
            html=data.get("html") or "",
            image_urls=extract_image_urls(markdown, base_url=url, metadata=metadata),
            metadata=metadata,
        )

        self.logger.info(
            "url_scraped",
            url=url,
            chars=len(markdown),
            images=len(content.image_urls),
        )
        return content
