"""
Sync telemetry

Prometheus counters and histograms for tenant syncs and webhook events.
Scraped from GET /metrics.
"""
import threading
from typing import Optional
from uuid import UUID

from prometheus_client import CollectorRegistry, Counter, Histogram, REGISTRY

from shopsync.services.normalization import ResourceKind

WEBHOOK_SUCCESS = "success"
WEBHOOK_FAILED = "failed"

RECORD_BUCKETS = (0, 1, 10, 50, 100, 250, 1000, 5000, 25000, float("inf"))


class SyncMetrics:
    """
    Telemetry sink for the sync pipeline

    Pass a fresh CollectorRegistry to isolate instances (tests do this);
    the default registers on the process-wide prometheus registry.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

        self.sync_success = Counter(
            "shopify_sync_success", "Completed tenant syncs",
            ["tenant_id"], registry=self.registry,
        )
        self.sync_failure = Counter(
            "shopify_sync_failure", "Failed tenant syncs",
            ["tenant_id", "exception"], registry=self.registry,
        )
        self.sync_records = Histogram(
            "shopify_sync_records", "Records reconciled per sync",
            ["kind"], buckets=RECORD_BUCKETS, registry=self.registry,
        )
        self.sync_duration = Histogram(
            "shopify_sync_duration_seconds", "Wall time of a tenant sync",
            registry=self.registry,
        )
        self.webhook_events = Counter(
            "shopify_webhook_events", "Webhook events handled",
            ["topic", "status"], registry=self.registry,
        )

    def record_sync_success(
        self,
        tenant_id: UUID,
        customers: int,
        orders: int,
        products: int,
        duration_seconds: float,
    ) -> None:
        self.sync_success.labels(tenant_id=str(tenant_id)).inc()
        self.sync_records.labels(kind=ResourceKind.CUSTOMERS.value).observe(customers)
        self.sync_records.labels(kind=ResourceKind.ORDERS.value).observe(orders)
        self.sync_records.labels(kind=ResourceKind.PRODUCTS.value).observe(products)
        self.sync_duration.observe(max(duration_seconds, 0.0))

    def record_sync_failure(self, tenant_id: UUID, error: BaseException) -> None:
        self.sync_failure.labels(tenant_id=str(tenant_id), exception=type(error).__name__).inc()

    def record_webhook_event(self, topic: str, success: bool) -> None:
        status = WEBHOOK_SUCCESS if success else WEBHOOK_FAILED
        self.webhook_events.labels(topic=topic or "unknown", status=status).inc()


_default_metrics: Optional[SyncMetrics] = None
_default_lock = threading.Lock()


def get_sync_metrics() -> SyncMetrics:
    """Process-wide metrics sink, created on first use."""
    global _default_metrics
    with _default_lock:
        if _default_metrics is None:
            _default_metrics = SyncMetrics()
    return _default_metrics
