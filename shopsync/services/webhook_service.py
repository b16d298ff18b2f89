"""
Webhook ingestion

Turns verified Shopify webhook deliveries into single-record upserts through
the same reconciler the bulk sync uses.
"""
import json
from functools import lru_cache
from typing import Any, Optional, Union

from shopsync.config import get_settings
from shopsync.models.base import utcnow
from shopsync.models.tenant import Tenant
from shopsync.services.normalization import ResourceKind, normalize_record
from shopsync.services.reconciler import Reconciler
from shopsync.services.sync_metrics import SyncMetrics, get_sync_metrics
from shopsync.utils.logger import log

RawBody = Union[bytes, str]


def resource_kind_for_topic(topic: Optional[str]) -> Optional[ResourceKind]:
    """Route "customers/create", "orders/paid", ... by topic prefix"""
    if not topic:
        return None
    normalized = topic.strip().lower()
    for kind in ResourceKind:
        if normalized.startswith(kind.value):
            return kind
    return None


class WebhookService:
    """
    Applies one webhook event to the mirror

    Malformed or failing events are logged and dropped; Shopify still gets
    a 2xx so it does not redeliver a payload that can never succeed. The
    next full sync repairs anything missed.
    """

    def __init__(
        self,
        reconciler: Optional[Reconciler] = None,
        metrics: Optional[SyncMetrics] = None,
        default_currency: Optional[str] = None,
    ):
        self.reconciler = reconciler or Reconciler()
        self.metrics = metrics or get_sync_metrics()
        self.default_currency = default_currency or get_settings().default_currency

    def dispatch(self, topic: Optional[str], tenant: Tenant, raw_body: RawBody) -> Optional[bool]:
        """
        Route an event by topic.

        Returns:
            True if applied, False if dropped, None if the topic is not handled
        """
        kind = resource_kind_for_topic(topic)
        if kind is None:
            log.info(f"Ignoring webhook topic {topic!r} for {tenant.shop_domain}")
            return None
        return self._handle(kind, tenant, raw_body, topic)

    def on_customer_event(self, tenant: Tenant, raw_body: RawBody, topic: str = "customers/update") -> bool:
        return self._handle(ResourceKind.CUSTOMERS, tenant, raw_body, topic)

    def on_order_event(self, tenant: Tenant, raw_body: RawBody, topic: str = "orders/updated") -> bool:
        return self._handle(ResourceKind.ORDERS, tenant, raw_body, topic)

    def on_product_event(self, tenant: Tenant, raw_body: RawBody, topic: str = "products/update") -> bool:
        return self._handle(ResourceKind.PRODUCTS, tenant, raw_body, topic)

    def _handle(self, kind: ResourceKind, tenant: Tenant, raw_body: RawBody, topic: str) -> bool:
        try:
            payload = self._unwrap(kind, json.loads(raw_body))
            record = normalize_record(kind, payload, utcnow(), self.default_currency)
            outcome = self.reconciler.upsert(tenant.id, record)
        except ValueError as e:
            # JSON decode errors and MalformedRecordError both land here
            log.warning(f"Dropping malformed {topic} webhook for {tenant.shop_domain}: {e}")
            self.metrics.record_webhook_event(topic, success=False)
            return False
        except Exception as e:
            log.error(f"Failed to process {topic} webhook for {tenant.shop_domain}: {type(e).__name__}: {e}")
            self.metrics.record_webhook_event(topic, success=False)
            return False

        action = "created" if outcome.created else "updated"
        log.info(f"Webhook {topic} {action} {kind.singular} {outcome.shopify_id} for {tenant.shop_domain}")
        self.metrics.record_webhook_event(topic, success=True)
        return True

    @staticmethod
    def _unwrap(kind: ResourceKind, payload: Any) -> Any:
        """Accept both {"customer": {...}} and the bare record"""
        if isinstance(payload, dict) and isinstance(payload.get(kind.singular), dict):
            return payload[kind.singular]
        return payload


@lru_cache()
def get_webhook_service() -> WebhookService:
    return WebhookService()
