"""
Tenant lookups
"""
from typing import List
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from shopsync.connectors.fixtures import normalize_domain
from shopsync.models.tenant import Tenant


class TenantNotFoundError(LookupError):
    """No tenant matches the given id or shop domain."""


def get_tenant(db: Session, tenant_id: UUID) -> Tenant:
    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantNotFoundError(f"Tenant not found: {tenant_id}")
    return tenant


def get_tenant_by_domain(db: Session, shop_domain: str) -> Tenant:
    """Case-insensitive match on the shop's myshopify domain"""
    normalized = normalize_domain(shop_domain)
    if not normalized:
        raise TenantNotFoundError("Tenant not found: empty shop domain")

    tenant = db.query(Tenant).filter(func.lower(Tenant.shop_domain) == normalized).first()
    if tenant is None:
        raise TenantNotFoundError(f"Tenant not found for shop domain {shop_domain}")
    return tenant


def list_tenants(db: Session) -> List[Tenant]:
    return db.query(Tenant).order_by(Tenant.created_at, Tenant.shop_domain).all()
