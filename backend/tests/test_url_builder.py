"""Tests for search URL construction and the site registry."""

from urllib.parse import parse_qs, urlparse

import pytest

from priceradar.schemas.query import StructuredQuery
from priceradar.scrapers.sites import SUPPORTED_SITES, SiteConfig, get_site, register_site
from priceradar.scrapers.url_builder import build_search_urls, build_url, site_name_for_url


def _params(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TestBuildUrl:
    """Tests for build_url."""

    def test_ebay_carries_item_price_ceiling_and_condition(self):
        query = StructuredQuery(item="RTX 4080", price_max=800, condition="used")

        url = build_url("ebay", query)

        assert url.startswith("https://www.ebay.it/sch/i.html?")
        assert "_nkw=RTX%204080" in url
        params = _params(url)
        assert params["_nkw"] == "RTX 4080"
        assert params["_udhi"] == "800"
        assert params["LH_ItemCondition"] == "3000"
        assert "_udlo" not in params

    def test_unknown_site_returns_none(self):
        query = StructuredQuery(item="RTX 4080")
        assert build_url("unknown-site", query) is None

    def test_site_id_is_case_insensitive(self):
        query = StructuredQuery(item="iPhone 13")
        assert build_url("EBAY", query) == build_url("ebay", query)

    def test_brand_and_model_replace_item(self):
        query = StructuredQuery(item="graphics card", brand="NVIDIA", model="RTX 4080")
        assert _params(build_url("subito", query))["q"] == "NVIDIA RTX 4080"

    def test_brand_alone_is_used(self):
        query = StructuredQuery(item="laptop", brand="Lenovo")
        assert _params(build_url("ebay", query))["_nkw"] == "Lenovo"

    def test_subito_price_range_without_condition(self):
        query = StructuredQuery(item="bici", price_min=100, price_max=250.5, condition="used")

        url = build_url("subito", query)

        assert url.startswith("https://www.subito.it/annunci-italia/vendita/usato/?")
        params = _params(url)
        assert params == {"q": "bici", "ps": "100", "pe": "250.5"}

    def test_amazon_price_range_in_cents(self):
        query = StructuredQuery(item="kindle", price_min=50, price_max=120)
        assert _params(build_url("amazon", query))["rh"] == "p_36:5000-12000"

    def test_amazon_open_ended_range(self):
        query = StructuredQuery(item="kindle", price_max=99.99)
        assert _params(build_url("amazon", query))["rh"] == "p_36:-9999"

    @pytest.mark.parametrize("condition,code", [("new", "1000"), ("refurbished", "2500")])
    def test_ebay_condition_codes(self, condition, code):
        query = StructuredQuery(item="ps5", condition=condition)
        assert _params(build_url("ebay", query))["LH_ItemCondition"] == code


class TestBuildSearchUrls:
    """Tests for build_search_urls."""

    def test_skips_unknown_sites(self):
        query = StructuredQuery(item="ps5")
        urls = build_search_urls(["ebay", "craigslist", "amazon"], query)
        assert len(urls) == 2
        assert urls[0].startswith("https://www.ebay.it/")
        assert urls[1].startswith("https://www.amazon.it/")

    def test_duplicate_sites_build_one_url(self):
        query = StructuredQuery(item="ps5")
        assert len(build_search_urls(["ebay", "EBAY"], query)) == 1

    def test_no_supported_sites(self):
        assert build_search_urls(["nope"], StructuredQuery(item="ps5")) == []


class TestSiteRegistry:
    """Tests for the site registry."""

    def test_registered_site_is_used_without_builder_changes(self):
        register_site(SiteConfig(
            site_id="wallapop",
            name="Wallapop",
            domain="wallapop.com",
            search_url="https://it.wallapop.com/app/search",
            query_param="keywords",
            price_max_param="max_sale_price",
        ))
        try:
            url = build_url("wallapop", StructuredQuery(item="bici", price_max=300))
            assert _params(url) == {"keywords": "bici", "max_sale_price": "300"}
        finally:
            SUPPORTED_SITES.pop("wallapop")

    def test_get_site_unknown(self):
        assert get_site("") is None
        assert get_site("nope") is None

    def test_site_name_for_url(self):
        assert site_name_for_url("https://www.ebay.it/itm/123") == "eBay"
        assert site_name_for_url("https://www.subito.it/annunci/1.htm") == "Subito.it"
        assert site_name_for_url("https://shop.example.com/x") == "shop.example.com"
        assert site_name_for_url("not a url") == "unknown"
