"""Search URL construction for supported marketplace sites.

Pure functions only: no I/O, no logging side effects beyond debug output.
"""

from typing import TYPE_CHECKING, Iterable, List, Optional
from urllib.parse import quote, urlencode, urlparse

import structlog

from priceradar.scrapers.sites import SUPPORTED_SITES, get_site

if TYPE_CHECKING:
    from priceradar.schemas.query import StructuredQuery

logger = structlog.get_logger(__name__)


def build_url(site: str, query: "StructuredQuery") -> Optional[str]:
    """Build the search results URL for one site.

    Args:
        site: Site identifier (e.g., "ebay"), case-insensitive
        query: Monitor's structured query

    Returns:
        Fully encoded URL, or None when the site is not supported
    """
    config = get_site(site)
    if not config:
        logger.debug("unknown_site_skipped", site=site)
        return None

    params = {config.query_param: query.search_terms()}

    if config.price_range_param and (query.price_min or query.price_max):
        low = config.price_format(query.price_min) if query.price_min else ""
        high = config.price_format(query.price_max) if query.price_max else ""
        params[config.price_range_param] = config.price_range_template.format(min=low, max=high)
    else:
        if query.price_min and config.price_min_param:
            params[config.price_min_param] = config.price_format(query.price_min)
        if query.price_max and config.price_max_param:
            params[config.price_max_param] = config.price_format(query.price_max)

    if query.condition and config.supports_condition:
        code = config.condition_codes.get(query.condition)
        if code:
            params[config.condition_param] = code

    params.update(config.extra_params)

    return f"{config.search_url}?{urlencode(params, quote_via=quote)}"


def build_search_urls(sites: Iterable[str], query: "StructuredQuery") -> List[str]:
    """Build URLs for every supported site, skipping unknown ones.

    Duplicate sites produce a single URL.
    """
    urls: List[str] = []
    for site in sites:
        url = build_url(site, query)
        if url and url not in urls:
            urls.append(url)
    return urls


def site_name_for_url(url: str) -> str:
    """Display name of the marketplace a listing URL belongs to.

    Falls back to the URL's host for sites outside the registry.
    """
    host = (urlparse(url).hostname or "").lower()
    for config in SUPPORTED_SITES.values():
        if host == config.domain or host.endswith("." + config.domain):
            return config.name
    return host or "unknown"
