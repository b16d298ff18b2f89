"""
Ingestion Service
Orchestrates full syncs of customers, orders and products for every tenant
"""
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from shopsync.config import get_settings
from shopsync.connectors.fixtures import FixtureProvider, load_fixture_provider
from shopsync.connectors.shopify import ShopifyClient
from shopsync.models.base import SessionLocal, utcnow
from shopsync.models.tenant import Tenant
from shopsync.services.normalization import MalformedRecordError, ResourceKind, normalize_record
from shopsync.services.reconciler import Reconciler
from shopsync.services.sync_metrics import SyncMetrics, get_sync_metrics
from shopsync.services.sync_status_service import SyncStatusService
from shopsync.services.tenant_service import list_tenants
from shopsync.utils.logger import log


class SyncState(str, Enum):
    STARTED = "started"
    CUSTOMERS_SYNCED = "customers_synced"
    ORDERS_SYNCED = "orders_synced"
    PRODUCTS_SYNCED = "products_synced"
    FINALIZED = "finalized"
    FAILED = "failed"


# Collections are synced in this order; each step advances the state
SYNC_STEPS: Tuple[Tuple[ResourceKind, SyncState], ...] = (
    (ResourceKind.CUSTOMERS, SyncState.CUSTOMERS_SYNCED),
    (ResourceKind.ORDERS, SyncState.ORDERS_SYNCED),
    (ResourceKind.PRODUCTS, SyncState.PRODUCTS_SYNCED),
)

SOURCE_LIVE = "live"
SOURCE_FIXTURE = "fixture"


@dataclass
class SyncResult:
    """Outcome of one tenant sync"""
    tenant_id: UUID
    shop_domain: str
    state: SyncState = SyncState.STARTED
    source: str = SOURCE_LIVE
    customers: int = 0
    orders: int = 0
    products: int = 0
    skipped: int = 0
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def total_records(self) -> int:
        return self.customers + self.orders + self.products

    def add_counts(self, kind: ResourceKind, synced: int, skipped: int) -> None:
        setattr(self, kind.value, getattr(self, kind.value) + synced)
        self.skipped += skipped

    def to_dict(self) -> Dict:
        return {
            "tenant_id": str(self.tenant_id),
            "shop_domain": self.shop_domain,
            "state": self.state.value,
            "source": self.source,
            "customers": self.customers,
            "orders": self.orders,
            "products": self.products,
            "skipped": self.skipped,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


class IngestionService:
    """
    Full-sync orchestrator

    For each tenant: pull customers, then orders, then products (from the
    fixture registry when the shop has a canned dataset, else the live API),
    normalize and reconcile every record, then stamp the tenant's
    last_sync_at. One tenant failing never stops the sweep.
    """

    def __init__(
        self,
        client: Optional[ShopifyClient] = None,
        fixtures: Optional[FixtureProvider] = None,
        reconciler: Optional[Reconciler] = None,
        metrics: Optional[SyncMetrics] = None,
        status_service: Optional[SyncStatusService] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        max_workers: Optional[int] = None,
        default_currency: Optional[str] = None,
    ):
        settings = get_settings()

        self.client = client or ShopifyClient()
        self.fixtures = fixtures if fixtures is not None else FixtureProvider()
        self.session_factory = session_factory
        self.reconciler = reconciler or Reconciler(session_factory)
        self.metrics = metrics or get_sync_metrics()
        self.status_service = status_service or SyncStatusService(session_factory)
        self.max_workers = max(max_workers if max_workers is not None else settings.sync_max_workers, 1)
        self.default_currency = default_currency or settings.default_currency

    # =========================================================================
    # SWEEP
    # =========================================================================

    def sync_all_tenants(self) -> Dict[UUID, SyncState]:
        """
        Sync every registered tenant.

        Returns:
            Final state per tenant id (FINALIZED or FAILED)
        """
        db = self.session_factory()
        try:
            tenants = list_tenants(db)
        finally:
            db.close()

        if not tenants:
            log.info("No tenants registered, nothing to sync")
            return {}

        log.info(f"Starting sync sweep for {len(tenants)} tenant(s)")
        start = time.monotonic()

        if self.max_workers > 1 and len(tenants) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="tenant-sync") as pool:
                states = list(pool.map(self._sync_isolated, tenants))
        else:
            states = [self._sync_isolated(tenant) for tenant in tenants]

        results = {tenant.id: state for tenant, state in zip(tenants, states)}

        failed = sum(1 for state in states if state is SyncState.FAILED)
        log.info(
            f"Sync sweep finished in {time.monotonic() - start:.1f}s: "
            f"{len(tenants) - failed} succeeded, {failed} failed"
        )
        return results

    def _sync_isolated(self, tenant: Tenant) -> SyncState:
        try:
            return self.sync_tenant(tenant).state
        except Exception as e:
            log.error(f"Failed to sync tenant {tenant.shop_domain} ({tenant.id}): {type(e).__name__}: {e}")
            return SyncState.FAILED

    # =========================================================================
    # SINGLE TENANT
    # =========================================================================

    def sync_tenant(self, tenant: Tenant) -> SyncResult:
        """
        Run a full sync for one tenant.

        Raises:
            Whatever aborted the sync, after recording the failure. The
            tenant's last_sync_at is left untouched in that case.
        """
        result = SyncResult(tenant_id=tenant.id, shop_domain=tenant.shop_domain)
        dataset = self.fixtures.for_domain(tenant.shop_domain)
        if dataset is not None:
            result.source = SOURCE_FIXTURE

        log.info(f"Syncing tenant {tenant.shop_domain} ({tenant.id}) from {result.source} data")
        self.status_service.record_start(tenant.id)
        start = time.monotonic()

        try:
            for kind, next_state in SYNC_STEPS:
                if dataset is not None:
                    raw_records = dataset.records(kind)
                else:
                    raw_records = self.client.fetch(kind, tenant.shop_domain, tenant.access_token)

                synced, skipped = self._reconcile(tenant, kind, raw_records)
                result.add_counts(kind, synced, skipped)
                result.state = next_state

            result.finished_at = utcnow()
            self._mark_synced(tenant, result.finished_at)

        except Exception as e:
            result.state = SyncState.FAILED
            result.error = f"{type(e).__name__}: {e}"
            result.finished_at = utcnow()
            result.duration_seconds = time.monotonic() - start

            self.metrics.record_sync_failure(tenant.id, e)
            self.status_service.record_failure(tenant.id, e, result.duration_seconds)
            log.error(f"Sync failed for tenant {tenant.shop_domain} after {result.duration_seconds:.1f}s: {result.error}")
            raise

        result.state = SyncState.FINALIZED
        result.duration_seconds = time.monotonic() - start

        self.metrics.record_sync_success(
            tenant.id, result.customers, result.orders, result.products, result.duration_seconds
        )
        self.status_service.record_success(
            tenant.id, result.customers, result.orders, result.products, result.skipped, result.duration_seconds
        )

        log.info(
            f"Synced tenant {tenant.shop_domain}: {result.customers} customers, "
            f"{result.orders} orders, {result.products} products "
            f"({result.skipped} skipped) in {result.duration_seconds:.1f}s"
        )
        return result

    def _reconcile(self, tenant: Tenant, kind: ResourceKind, raw_records: List) -> Tuple[int, int]:
        """Normalize and upsert a fetched collection; returns (synced, skipped)."""
        received_at = utcnow()
        synced = 0
        skipped = 0

        for raw in raw_records:
            try:
                record = normalize_record(kind, raw, received_at, self.default_currency)
            except MalformedRecordError as e:
                skipped += 1
                log.warning(f"Skipping malformed {kind.singular} for {tenant.shop_domain}: {e}")
                continue

            self.reconciler.upsert(tenant.id, record)
            synced += 1

        return synced, skipped

    def _mark_synced(self, tenant: Tenant, finished_at: datetime) -> None:
        """Advance last_sync_at; never move it backwards."""
        db = self.session_factory()
        try:
            row = db.get(Tenant, tenant.id)
            if row is None:
                raise LookupError(f"Tenant {tenant.id} was removed during sync")
            if row.last_sync_at is None or finished_at > row.last_sync_at:
                row.last_sync_at = finished_at
            db.commit()
            tenant.last_sync_at = row.last_sync_at
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


@lru_cache()
def get_ingestion_service() -> IngestionService:
    """Process-wide ingestion service wired from settings"""
    settings = get_settings()
    fixtures = load_fixture_provider(settings.fixture_data_path) if settings.fixtures_enabled else FixtureProvider()
    return IngestionService(fixtures=fixtures)
