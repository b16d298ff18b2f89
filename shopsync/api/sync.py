"""
Tenant synchronization endpoints
"""
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from shopsync.connectors.shopify import ShopifyClientError
from shopsync.models.base import get_db
from shopsync.models.sync_status import TenantSyncStatus
from shopsync.services.ingestion_service import IngestionService, get_ingestion_service
from shopsync.services.tenant_service import TenantNotFoundError, get_tenant
from shopsync.utils.logger import log

router = APIRouter(prefix="/sync", tags=["sync"])


def _run_sweep(service: IngestionService):
    """Background task: sync all tenants."""
    try:
        states = service.sync_all_tenants()
        log.info(f"Background sweep completed for {len(states)} tenant(s)")
    except Exception as e:
        log.error(f"Background sweep error: {str(e)}")


def _get_tenant_or_404(db: Session, tenant_id: UUID):
    try:
        return get_tenant(db, tenant_id)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/all")
def sync_all_tenants(
    background_tasks: BackgroundTasks,
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Sync every tenant (runs in background to avoid timeout).
    """
    background_tasks.add_task(_run_sweep, service)
    return {"message": "Sync started in background"}


@router.post("/tenants/{tenant_id}")
def sync_tenant(
    tenant_id: UUID,
    db: Session = Depends(get_db),
    service: IngestionService = Depends(get_ingestion_service),
):
    """Run a full sync for one tenant and return its counts."""
    tenant = _get_tenant_or_404(db, tenant_id)

    try:
        result = service.sync_tenant(tenant)
    except ShopifyClientError as e:
        raise HTTPException(status_code=502, detail=f"Shopify request failed: {str(e)}")
    except Exception as e:
        log.error(f"Manual sync failed for tenant {tenant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Sync failed: {type(e).__name__}")

    return result.to_dict()


@router.get("/tenants/{tenant_id}/status")
def get_sync_status(tenant_id: UUID, db: Session = Depends(get_db)):
    """Last sync outcome and health for one tenant."""
    tenant = _get_tenant_or_404(db, tenant_id)

    status = db.query(TenantSyncStatus).filter(TenantSyncStatus.tenant_id == tenant.id).first()
    if not status:
        return {
            "tenant_id": str(tenant.id),
            "shop_domain": tenant.shop_domain,
            "sync_status": "never_synced",
            "last_sync_at": None,
        }

    return {
        "tenant_id": str(tenant.id),
        "shop_domain": tenant.shop_domain,
        "sync_status": status.sync_status,
        "last_sync_at": tenant.last_sync_at.isoformat() if tenant.last_sync_at else None,
        "last_sync_attempt": status.last_sync_attempt.isoformat() if status.last_sync_attempt else None,
        "last_successful_sync": status.last_successful_sync.isoformat() if status.last_successful_sync else None,
        "records": {
            "customers": status.customers_synced,
            "orders": status.orders_synced,
            "products": status.products_synced,
            "skipped": status.records_skipped,
        },
        "duration_seconds": status.sync_duration_seconds,
        "last_error": status.last_error,
        "error_count": status.error_count,
        "is_healthy": status.is_healthy,
        "health_score": status.health_score,
        "health_issues": status.health_issues,
    }
