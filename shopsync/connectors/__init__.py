"""Upstream data sources for shopsync"""

from shopsync.connectors.fixtures import FixtureDataset, FixtureProvider, load_fixture_provider
from shopsync.connectors.shopify import (
    ShopifyClient,
    ShopifyClientError,
    ShopifyRateLimitError,
    ShopifyTransportError,
)

__all__ = [
    "FixtureDataset",
    "FixtureProvider",
    "load_fixture_provider",
    "ShopifyClient",
    "ShopifyClientError",
    "ShopifyRateLimitError",
    "ShopifyTransportError",
]
