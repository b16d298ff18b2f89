"""Database models for shopsync"""

from shopsync.models.tenant import Tenant

from shopsync.models.shopify import (
    Customer,
    Order,
    Product
)

from shopsync.models.sync_status import TenantSyncStatus

__all__ = [
    "Tenant",
    "Customer",
    "Order",
    "Product",
    "TenantSyncStatus"
]
