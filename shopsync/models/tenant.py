"""
Tenant model

One onboarded Shopify shop. Every mirrored record is scoped by tenant_id.
"""
import uuid
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship

from shopsync.models.base import Base, utcnow


class Tenant(Base):
    """
    Onboarded merchant shop

    Tenant CRUD lives outside the ingestion engine; the engine reads the shop
    domain and access token, and advances last_sync_at after a full sync.
    """
    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    shop_domain = Column(String, unique=True, index=True, nullable=False)  # e.g. "acme.myshopify.com"
    access_token = Column(String, nullable=False)
    contact_email = Column(String, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_sync_at = Column(DateTime, nullable=True)  # Last successful full sync

    # Deleting a tenant removes everything mirrored for it
    customers = relationship("Customer", cascade="all, delete-orphan", passive_deletes=True)
    orders = relationship("Order", cascade="all, delete-orphan", passive_deletes=True)
    products = relationship("Product", cascade="all, delete-orphan", passive_deletes=True)
    sync_status = relationship("TenantSyncStatus", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Tenant {self.shop_domain}>"
