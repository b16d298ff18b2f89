"""
Tenant sync status recording

Keeps one tenant_sync_status row per tenant up to date with the outcome of
each full sync. Consumed by GET /sync/tenants/{id}/status.
"""
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from shopsync.models.base import SessionLocal, utcnow
from shopsync.models.sync_status import TenantSyncStatus
from shopsync.utils.logger import log

MAX_ERROR_LENGTH = 500

STATUS_IN_PROGRESS = "in_progress"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


def health_score_for(error_count: int) -> int:
    """Degrade health based on consecutive failures"""
    if error_count >= 5:
        return 0
    if error_count >= 3:
        return 30
    return max(0, 100 - error_count * 20)


class SyncStatusService:
    """
    Writes sync outcomes to tenant_sync_status

    Status bookkeeping must never abort a sync: every write is committed in
    its own session, and a failure is logged and rolled back.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def record_start(self, tenant_id: UUID) -> None:
        def apply(status: TenantSyncStatus) -> None:
            status.last_sync_attempt = utcnow()
            status.sync_status = STATUS_IN_PROGRESS

        self._write(tenant_id, apply, "start")

    def record_success(
        self,
        tenant_id: UUID,
        customers: int,
        orders: int,
        products: int,
        skipped: int,
        duration_seconds: float,
    ) -> None:
        def apply(status: TenantSyncStatus) -> None:
            now = utcnow()
            status.last_successful_sync = now
            status.sync_status = STATUS_SUCCESS
            status.customers_synced = customers
            status.orders_synced = orders
            status.products_synced = products
            status.records_skipped = skipped
            status.sync_duration_seconds = duration_seconds
            status.error_count = 0
            status.first_error_at = None
            status.last_error = None
            status.is_healthy = True
            status.health_score = 100
            status.health_issues = [f"{skipped} malformed record(s) skipped"] if skipped else None

        self._write(tenant_id, apply, "success")

    def record_failure(self, tenant_id: UUID, error: BaseException, duration_seconds: Optional[float] = None) -> None:
        message = f"{type(error).__name__}: {error}"[:MAX_ERROR_LENGTH]

        def apply(status: TenantSyncStatus) -> None:
            status.sync_status = STATUS_FAILED
            status.sync_duration_seconds = duration_seconds
            status.last_error = message
            status.error_count = (status.error_count or 0) + 1
            if not status.first_error_at:
                status.first_error_at = utcnow()
            status.health_score = health_score_for(status.error_count)
            status.is_healthy = status.health_score >= 50
            status.health_issues = [message]

        self._write(tenant_id, apply, "failure")

    def _write(self, tenant_id: UUID, apply: Callable[[TenantSyncStatus], None], event: str) -> None:
        db = self.session_factory()
        try:
            status = db.query(TenantSyncStatus).filter(TenantSyncStatus.tenant_id == tenant_id).first()
            if not status:
                status = TenantSyncStatus(tenant_id=tenant_id, error_count=0)
                db.add(status)

            apply(status)
            status.updated_at = utcnow()
            db.commit()
        except Exception as e:
            db.rollback()
            log.error(f"Failed to record sync {event} for tenant {tenant_id}: {e}")
        finally:
            db.close()
