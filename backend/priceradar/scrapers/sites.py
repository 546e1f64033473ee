"""Supported marketplace sites.

Each entry describes how a site spells its search parameters. Adding a
site means adding a SiteConfig here; the URL builder has no per-site code.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Optional


def _plain_price(value: float) -> str:
    """Format a price as the site expects it in a query string (e.g. 800, 12.5)."""
    amount = Decimal(str(value)).normalize()
    return format(amount, "f")


def _cents(value: float) -> str:
    return str(int((Decimal(str(value)) * 100).to_integral_value()))


@dataclass(frozen=True)
class SiteConfig:
    """Search URL convention for one marketplace.

    Attributes:
        site_id: Identifier stored on monitors (e.g., "ebay")
        name: Display name used as the offer's site_name
        domain: Registrable domain used to recognise listing URLs
        search_url: Base URL of the search results page
        query_param: Parameter carrying the search text
        price_min_param: Native lower price bound parameter, if any
        price_max_param: Native upper price bound parameter, if any
        price_range_param: Single parameter carrying "min-max" (Amazon style)
        price_range_template: Format string for price_range_param
        price_format: Converts a price into the site's representation
        condition_param: Native condition filter parameter, if any
        condition_codes: Canonical condition -> site code
        extra_params: Parameters always appended
    """

    site_id: str
    name: str
    domain: str
    search_url: str
    query_param: str
    price_min_param: Optional[str] = None
    price_max_param: Optional[str] = None
    price_range_param: Optional[str] = None
    price_range_template: str = "{min}-{max}"
    price_format: Callable[[float], str] = _plain_price
    condition_param: Optional[str] = None
    condition_codes: Dict[str, str] = field(default_factory=dict)
    extra_params: Dict[str, str] = field(default_factory=dict)

    @property
    def supports_condition(self) -> bool:
        return bool(self.condition_param and self.condition_codes)


SUPPORTED_SITES: Dict[str, SiteConfig] = {
    "ebay": SiteConfig(
        site_id="ebay",
        name="eBay",
        domain="ebay.it",
        search_url="https://www.ebay.it/sch/i.html",
        query_param="_nkw",
        price_min_param="_udlo",
        price_max_param="_udhi",
        condition_param="LH_ItemCondition",
        condition_codes={
            "new": "1000",
            "used": "3000",
            "refurbished": "2500",
        },
    ),
    "subito": SiteConfig(
        site_id="subito",
        name="Subito.it",
        domain="subito.it",
        search_url="https://www.subito.it/annunci-italia/vendita/usato/",
        query_param="q",
        price_min_param="ps",
        price_max_param="pe",
    ),
    "amazon": SiteConfig(
        site_id="amazon",
        name="Amazon",
        domain="amazon.it",
        search_url="https://www.amazon.it/s",
        query_param="k",
        price_range_param="rh",
        price_range_template="p_36:{min}-{max}",
        price_format=_cents,
    ),
}


def get_site(site_id: str) -> Optional[SiteConfig]:
    """Look up a site by identifier (case-insensitive)."""
    if not site_id:
        return None
    return SUPPORTED_SITES.get(site_id.strip().lower())


def register_site(config: SiteConfig) -> None:
    """Add or replace a site in the registry."""
    SUPPORTED_SITES[config.site_id.lower()] = config
