"""
Shopify Data Models

Mirrors of customers, orders and products pulled from the Shopify Admin API
or pushed by webhooks. Each row is identified by (tenant_id, Shopify id).
"""
from sqlalchemy import Column, Integer, String, DateTime, BigInteger, ForeignKey, Numeric, UniqueConstraint, Uuid
from decimal import Decimal

from shopsync.models.base import Base, utcnow


class Customer(Base):
    """
    Shopify customers

    Synced from Shopify Admin API: GET /admin/api/{version}/customers.json
    """
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "shopify_customer_id", name="uq_customers_tenant_shopify_id"),
    )
    __natural_key__ = "shopify_customer_id"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)

    # Shopify ID
    shopify_customer_id = Column(BigInteger, index=True, nullable=False)

    # Customer info
    email = Column(String, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)

    # Customer metrics
    total_spent = Column(Numeric(19, 4), nullable=False, default=Decimal("0"))

    # Timestamps
    created_at = Column(DateTime, index=True, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class Order(Base):
    """
    Shopify orders

    Synced from Shopify Admin API: GET /admin/api/{version}/orders.json?status=any
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "shopify_order_id", name="uq_orders_tenant_shopify_id"),
    )
    __natural_key__ = "shopify_order_id"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)

    # Shopify IDs
    shopify_order_id = Column(BigInteger, index=True, nullable=False)
    order_number = Column(String, nullable=False, default="")  # Human-readable, e.g. "#1001"

    # Amounts (store currency)
    total_price = Column(Numeric(19, 4), nullable=False, default=Decimal("0"))
    currency = Column(String(3), nullable=False, default="USD")

    # Timestamps
    created_at = Column(DateTime, index=True, nullable=False, default=utcnow)  # When order was placed
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class Product(Base):
    """
    Shopify products catalog

    Synced from Shopify Admin API: GET /admin/api/{version}/products.json
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("tenant_id", "shopify_product_id", name="uq_products_tenant_shopify_id"),
    )
    __natural_key__ = "shopify_product_id"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)

    # Shopify IDs
    shopify_product_id = Column(BigInteger, index=True, nullable=False)

    # Product info
    title = Column(String, nullable=False, default="")
    price = Column(Numeric(19, 4), nullable=False, default=Decimal("0"))  # First variant price

    # Timestamps
    created_at = Column(DateTime, index=True, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
