"""
Reconciler

Merges normalized Shopify records into the local mirror. The same routine
serves bulk sync and webhooks, so both channels converge on one row per
(tenant_id, Shopify id).
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopsync.models.base import SessionLocal, utcnow
from shopsync.models.shopify import Customer, Order, Product
from shopsync.services.normalization import (
    NormalizedCustomer,
    NormalizedOrder,
    NormalizedProduct,
    NormalizedRecord,
    ResourceKind,
)
from shopsync.utils.logger import log


MODEL_FOR_KIND: Dict[ResourceKind, Type] = {
    ResourceKind.CUSTOMERS: Customer,
    ResourceKind.ORDERS: Order,
    ResourceKind.PRODUCTS: Product,
}


@dataclass(frozen=True)
class UpsertOutcome:
    """Result of reconciling one record."""
    kind: ResourceKind
    shopify_id: int
    created: bool


class Reconciler:
    """
    Insert-or-update keyed by natural key

    Every upsert runs in its own transaction so two writers racing on the
    same key end with a single row. The loser of an insert race hits the
    unique constraint, rolls back and retries once as an update.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def upsert(self, tenant_id: UUID, record: NormalizedRecord) -> UpsertOutcome:
        """Insert or update one normalized record for a tenant."""
        model = MODEL_FOR_KIND[record.kind]

        for attempt in (1, 2):
            db = self.session_factory()
            try:
                created = self._apply(db, model, tenant_id, record)
                db.commit()
                return UpsertOutcome(kind=record.kind, shopify_id=record.shopify_id, created=created)
            except IntegrityError:
                db.rollback()
                if attempt == 2:
                    raise
                log.warning(
                    f"Concurrent insert for {record.kind.singular} {record.shopify_id} "
                    f"(tenant {tenant_id}), retrying as update"
                )
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        # Both attempts either return or raise
        raise RuntimeError("unreachable")

    def upsert_customer(self, tenant_id: UUID, record: NormalizedCustomer) -> UpsertOutcome:
        return self.upsert(tenant_id, record)

    def upsert_order(self, tenant_id: UUID, record: NormalizedOrder) -> UpsertOutcome:
        return self.upsert(tenant_id, record)

    def upsert_product(self, tenant_id: UUID, record: NormalizedProduct) -> UpsertOutcome:
        return self.upsert(tenant_id, record)

    def _find_existing(self, db: Session, model: Type, tenant_id: UUID, shopify_id: int) -> Optional[object]:
        natural_key = getattr(model, model.__natural_key__)
        return db.query(model).filter(
            model.tenant_id == tenant_id,
            natural_key == shopify_id
        ).with_for_update().first()

    def _apply(self, db: Session, model: Type, tenant_id: UUID, record: NormalizedRecord) -> bool:
        """
        Stage the write; returns True if a new row was added.

        Inserts keep the payload's created_at and updated_at. Updates leave
        created_at alone and stamp updated_at with the local write time, not
        the payload's updated_at.
        """
        existing = self._find_existing(db, model, tenant_id, record.shopify_id)

        if existing is not None:
            # created_at and identity stay as first written
            for field_name, value in record.mutable_fields().items():
                setattr(existing, field_name, value)
            existing.updated_at = utcnow()
            db.flush()
            return False

        row = model(
            tenant_id=tenant_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
            **{model.__natural_key__: record.shopify_id},
            **record.mutable_fields()
        )
        db.add(row)
        db.flush()
        return True
