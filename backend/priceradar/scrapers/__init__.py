"""Search URL building and remote page fetching for monitor runs."""

from priceradar.scrapers.base import ExtractedOffer, FetchedContent
from priceradar.scrapers.sites import SUPPORTED_SITES, SiteConfig, get_site, register_site
from priceradar.scrapers.url_builder import build_search_urls, build_url, site_name_for_url

__all__ = [
    "ExtractedOffer",
    "FetchedContent",
    "SUPPORTED_SITES",
    "SiteConfig",
    "get_site",
    "register_site",
    "build_url",
    "build_search_urls",
    "site_name_for_url",
]
