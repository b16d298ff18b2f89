"""
Fixture Provider

Serves canned Shopify datasets for demo and test shops instead of calling
the live API. The registry is built once at load time and never mutated,
so concurrent tenant syncs can read it without locking.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from shopsync.services.normalization import ResourceKind
from shopsync.utils.logger import log

HOME_DECOR_KEY = "home-decor"
TECH_GADGETS_KEY = "tech-gadgets"

# (keywords, dataset key) checked in order when no exact domain matches
KEYWORD_FALLBACKS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("decor", "home"), HOME_DECOR_KEY),
    (("tech", "gadget"), TECH_GADGETS_KEY),
)


def normalize_domain(value: Optional[str]) -> str:
    return value.strip().lower() if value else ""


def _records(section: Any, kind: ResourceKind) -> Tuple[Dict[str, Any], ...]:
    """Accept either {"customers": [...]} or a bare list."""
    if isinstance(section, dict):
        section = section.get(kind.collection_key)
    if not isinstance(section, list):
        return ()
    return tuple(item for item in section if isinstance(item, dict))


@dataclass(frozen=True)
class FixtureDataset:
    """One canned shop: its records for each resource kind."""
    shop_domain: str
    aliases: Tuple[str, ...] = ()
    customers: Tuple[Dict[str, Any], ...] = ()
    orders: Tuple[Dict[str, Any], ...] = ()
    products: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FixtureDataset":
        aliases = data.get("aliases") or []
        return cls(
            shop_domain=data.get("shopDomain") or "",
            aliases=tuple(a for a in aliases if isinstance(a, str)),
            customers=_records(data.get("customers"), ResourceKind.CUSTOMERS),
            orders=_records(data.get("orders"), ResourceKind.ORDERS),
            products=_records(data.get("products"), ResourceKind.PRODUCTS),
        )

    def records(self, kind: ResourceKind) -> List[Dict[str, Any]]:
        return list(getattr(self, kind.value))


@dataclass(frozen=True)
class FixtureProvider:
    """Immutable domain -> dataset lookup table."""
    registry: Mapping[str, FixtureDataset] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_datasets(cls, datasets: Iterable[FixtureDataset]) -> "FixtureProvider":
        registry: Dict[str, FixtureDataset] = {}
        for dataset in datasets:
            for key in (dataset.shop_domain, *dataset.aliases):
                normalized = normalize_domain(key)
                if normalized:
                    registry[normalized] = dataset
        return cls(registry=MappingProxyType(registry))

    @classmethod
    def from_document(cls, document: Any) -> "FixtureProvider":
        """Build from a parsed {"tenants": [...]} document."""
        tenants = document.get("tenants") if isinstance(document, dict) else None
        if not isinstance(tenants, list):
            return cls()
        return cls.from_datasets(
            FixtureDataset.from_dict(t) for t in tenants if isinstance(t, dict)
        )

    def __len__(self) -> int:
        return len(self.registry)

    def for_domain(self, shop_domain: Optional[str]) -> Optional[FixtureDataset]:
        """
        Resolve a shop domain to a dataset.

        Exact match on the primary domain or an alias wins; otherwise the
        keyword fallbacks apply. None means "call the live API".
        """
        normalized = normalize_domain(shop_domain)
        if not normalized or not self.registry:
            return None

        direct = self.registry.get(normalized)
        if direct is not None:
            return direct

        for keywords, dataset_key in KEYWORD_FALLBACKS:
            if any(keyword in normalized for keyword in keywords):
                return self.registry.get(dataset_key)

        return None

    def records_for(self, shop_domain: Optional[str], kind: ResourceKind) -> Optional[List[Dict[str, Any]]]:
        dataset = self.for_domain(shop_domain)
        return dataset.records(kind) if dataset is not None else None


def load_fixture_provider(path: Optional[str]) -> FixtureProvider:
    """
    Load fixture datasets from a JSON file.

    A missing or unreadable file yields an empty provider; every tenant then
    syncs from the live API.
    """
    if not path:
        return FixtureProvider()

    fixture_path = Path(path)
    if not fixture_path.exists():
        log.info(f"No fixture Shopify data found at {fixture_path}")
        return FixtureProvider()

    try:
        document = json.loads(fixture_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning(f"Failed to load fixture Shopify data from {fixture_path}: {str(e)}")
        return FixtureProvider()

    provider = FixtureProvider.from_document(document)
    log.info(f"Loaded {len(provider)} fixture Shopify domain key(s) from {fixture_path}")
    return provider
