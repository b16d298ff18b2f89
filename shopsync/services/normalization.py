"""
Normalization of Shopify payloads

Bulk sync and webhooks both turn raw Shopify JSON into the same normalized
records before reconciliation. Coercion never fails on a bad field: money
falls back to zero and timestamps fall back to the arrival time. Only a
record without a usable Shopify id is rejected.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Union

from shopsync.models.base import utcnow

ZERO = Decimal("0")
DEFAULT_CURRENCY = "USD"


class MalformedRecordError(ValueError):
    """Raised when a payload cannot be identified (no usable Shopify id)."""


class ResourceKind(str, Enum):
    """The three mirrored Shopify collections."""
    CUSTOMERS = "customers"
    ORDERS = "orders"
    PRODUCTS = "products"

    @property
    def singular(self) -> str:
        """Key a webhook body may wrap the record under ("customer", ...)"""
        return self.value[:-1]

    @property
    def collection_key(self) -> str:
        """Key of the list in a REST collection response"""
        return self.value


# =============================================================================
# Field coercion
# =============================================================================

def parse_decimal(value: Any) -> Decimal:
    """Parse a Shopify money value ("19.99", 19.99, None) to Decimal, 0 on failure."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp to a naive UTC datetime.

    Returns None when the value is missing or unparsable.
    """
    if not value:
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is not None:
        try:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        except (OverflowError, ValueError):
            # Parses, but the UTC instant is outside datetime's range
            return None
    return dt


def parse_shopify_id(value: Any) -> int:
    """
    Parse a Shopify resource id.

    Accepts ints, numeric strings and GraphQL GIDs
    ("gid://shopify/Customer/123").
    """
    if isinstance(value, bool):
        raise MalformedRecordError(f"Invalid Shopify id: {value!r}")
    if isinstance(value, int):
        shopify_id = value
    elif isinstance(value, str) and value.strip():
        text = value.strip().rsplit("/", 1)[-1]
        try:
            shopify_id = int(text)
        except ValueError:
            raise MalformedRecordError(f"Invalid Shopify id: {value!r}")
    else:
        raise MalformedRecordError(f"Missing Shopify id: {value!r}")

    if shopify_id <= 0:
        raise MalformedRecordError(f"Invalid Shopify id: {value!r}")
    return shopify_id


def _text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    return str(value)


# =============================================================================
# Normalized records
# =============================================================================

@dataclass(frozen=True)
class NormalizedCustomer:
    shopify_id: int
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    total_spent: Decimal
    created_at: datetime
    updated_at: datetime

    kind = ResourceKind.CUSTOMERS

    def mutable_fields(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "total_spent": self.total_spent,
        }


@dataclass(frozen=True)
class NormalizedOrder:
    shopify_id: int
    order_number: str
    total_price: Decimal
    currency: str
    created_at: datetime
    updated_at: datetime

    kind = ResourceKind.ORDERS

    def mutable_fields(self) -> Dict[str, Any]:
        return {
            "order_number": self.order_number,
            "total_price": self.total_price,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class NormalizedProduct:
    shopify_id: int
    title: str
    price: Decimal
    created_at: datetime
    updated_at: datetime

    kind = ResourceKind.PRODUCTS

    def mutable_fields(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "price": self.price,
        }


NormalizedRecord = Union[NormalizedCustomer, NormalizedOrder, NormalizedProduct]


def normalize_customer(data: Dict[str, Any], received_at: Optional[datetime] = None) -> NormalizedCustomer:
    received_at = received_at or utcnow()
    return NormalizedCustomer(
        shopify_id=parse_shopify_id(data.get("id")),
        email=_text(data, "email"),
        first_name=_text(data, "first_name"),
        last_name=_text(data, "last_name"),
        total_spent=parse_decimal(data.get("total_spent")),
        created_at=parse_timestamp(data.get("created_at")) or received_at,
        updated_at=parse_timestamp(data.get("updated_at")) or received_at,
    )


def normalize_order(
    data: Dict[str, Any],
    received_at: Optional[datetime] = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> NormalizedOrder:
    received_at = received_at or utcnow()

    # "name" is the display number ("#1001"); fall back to the bare order_number
    order_number = _text(data, "name")
    if not order_number and data.get("order_number") is not None:
        order_number = f"#{data['order_number']}"

    return NormalizedOrder(
        shopify_id=parse_shopify_id(data.get("id")),
        order_number=order_number or "",
        total_price=parse_decimal(data.get("total_price")),
        currency=(_text(data, "currency") or default_currency).upper(),
        created_at=parse_timestamp(data.get("created_at")) or received_at,
        updated_at=parse_timestamp(data.get("updated_at")) or received_at,
    )


def _first_variant_price(data: Dict[str, Any]) -> Decimal:
    variants = data.get("variants")
    if not isinstance(variants, list) or not variants:
        return ZERO
    first = variants[0]
    if not isinstance(first, dict):
        return ZERO
    return parse_decimal(first.get("price"))


def normalize_product(data: Dict[str, Any], received_at: Optional[datetime] = None) -> NormalizedProduct:
    received_at = received_at or utcnow()
    return NormalizedProduct(
        shopify_id=parse_shopify_id(data.get("id")),
        title=_text(data, "title") or "",
        price=_first_variant_price(data),
        created_at=parse_timestamp(data.get("created_at")) or received_at,
        updated_at=parse_timestamp(data.get("updated_at")) or received_at,
    )


def normalize_record(
    kind: ResourceKind,
    data: Any,
    received_at: Optional[datetime] = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> NormalizedRecord:
    """Normalize one raw Shopify record of the given kind."""
    if not isinstance(data, dict):
        raise MalformedRecordError(f"Expected a JSON object for {kind.singular}, got {type(data).__name__}")

    if kind is ResourceKind.CUSTOMERS:
        return normalize_customer(data, received_at)
    if kind is ResourceKind.ORDERS:
        return normalize_order(data, received_at, default_currency)
    if kind is ResourceKind.PRODUCTS:
        return normalize_product(data, received_at)
    raise ValueError(f"Unknown resource kind: {kind}")
