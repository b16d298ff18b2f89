"""
Tests for fixture dataset resolution and loading.
"""
import json

import pytest

from shopsync.config import DEFAULT_FIXTURE_PATH
from shopsync.connectors.fixtures import FixtureDataset, FixtureProvider, load_fixture_provider
from shopsync.services.normalization import ResourceKind


@pytest.fixture(scope="module")
def provider():
    return load_fixture_provider(DEFAULT_FIXTURE_PATH)


def test_packaged_fixtures_load(provider):
    assert len(provider) > 0
    dataset = provider.for_domain("luxe-living-interiors.myshopify.com")
    assert dataset is not None
    assert len(dataset.records(ResourceKind.CUSTOMERS)) == 3
    assert len(dataset.records(ResourceKind.ORDERS)) == 3
    assert len(dataset.records(ResourceKind.PRODUCTS)) == 3


def test_exact_match_is_case_and_whitespace_insensitive(provider):
    dataset = provider.for_domain("  Circuit-Supply-Co.MyShopify.com ")
    assert dataset is not None
    assert dataset.shop_domain == "circuit-supply-co.myshopify.com"


def test_alias_matches(provider):
    assert provider.for_domain("luxe-living").shop_domain == "luxe-living-interiors.myshopify.com"


def test_keyword_fallback_home_decor(provider):
    dataset = provider.for_domain("home-decor-demo.myshopify.com")
    assert dataset is not None
    assert dataset.shop_domain == "luxe-living-interiors.myshopify.com"


def test_keyword_fallback_tech(provider):
    dataset = provider.for_domain("best-gadget-store.myshopify.com")
    assert dataset is not None
    assert dataset.shop_domain == "circuit-supply-co.myshopify.com"


def test_real_shop_has_no_fixture(provider):
    assert provider.for_domain("actual-store.myshopify.com") is None
    assert provider.records_for("actual-store.myshopify.com", ResourceKind.ORDERS) is None


def test_empty_domain_has_no_fixture(provider):
    assert provider.for_domain("") is None
    assert provider.for_domain(None) is None


def test_registry_is_read_only(provider):
    with pytest.raises(TypeError):
        provider.registry["new-shop.myshopify.com"] = FixtureDataset(shop_domain="new-shop.myshopify.com")


def test_records_are_copies(provider):
    records = provider.records_for("luxe-living", ResourceKind.PRODUCTS)
    records.clear()
    assert len(provider.records_for("luxe-living", ResourceKind.PRODUCTS)) == 3


def test_bare_list_sections_are_accepted():
    provider = FixtureProvider.from_document({
        "tenants": [{
            "shopDomain": "bare.myshopify.com",
            "customers": [{"id": 1}, "not-a-record"],
            "orders": {"orders": [{"id": 2}]},
        }]
    })
    dataset = provider.for_domain("bare.myshopify.com")
    assert dataset.records(ResourceKind.CUSTOMERS) == [{"id": 1}]
    assert dataset.records(ResourceKind.ORDERS) == [{"id": 2}]
    assert dataset.records(ResourceKind.PRODUCTS) == []


def test_keyword_fallback_needs_target_dataset():
    provider = FixtureProvider.from_document({"tenants": [{"shopDomain": "only.myshopify.com"}]})
    assert provider.for_domain("home-decor-demo.myshopify.com") is None


def test_missing_file_gives_empty_provider(tmp_path):
    provider = load_fixture_provider(str(tmp_path / "missing.json"))
    assert len(provider) == 0
    assert provider.for_domain("home-decor-demo.myshopify.com") is None


def test_invalid_file_gives_empty_provider(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    assert len(load_fixture_provider(str(path))) == 0


def test_loads_custom_file(tmp_path):
    path = tmp_path / "fixtures.json"
    path.write_text(json.dumps({
        "tenants": [{"shopDomain": "Demo.myshopify.com", "aliases": ["demo"], "products": {"products": [{"id": 5}]}}]
    }), encoding="utf-8")

    provider = load_fixture_provider(str(path))

    assert len(provider) == 2
    assert provider.records_for("demo", ResourceKind.PRODUCTS) == [{"id": 5}]
