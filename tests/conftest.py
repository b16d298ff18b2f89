"""
Shared fixtures: an isolated in-memory database, tenants, a private metrics
registry and a fake Shopify client.
"""
import os

# Must be set before shopsync reads its settings
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SHOPIFY_REQUESTS_PER_SECOND", "0")
os.environ.setdefault("SHOPIFY_WEBHOOK_SECRET", "test-webhook-secret")

import pytest
from prometheus_client import CollectorRegistry
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopsync.connectors.fixtures import FixtureProvider
from shopsync.models.base import init_db
from shopsync.models.tenant import Tenant
from shopsync.services.ingestion_service import IngestionService
from shopsync.services.reconciler import Reconciler
from shopsync.services.sync_metrics import SyncMetrics


class FakeShopifyClient:
    """Stands in for ShopifyClient: serves canned records per shop domain."""

    def __init__(self, data=None, failures=None, fail_on=None):
        self.data = data or {}  # domain -> {ResourceKind: [raw records]}
        self.failures = failures or {}  # domain -> exception to raise
        self.fail_on = fail_on  # only raise for this ResourceKind
        self.calls = []

    def fetch(self, kind, shop_domain, access_token):
        self.calls.append((shop_domain, kind))
        error = self.failures.get(shop_domain)
        if error is not None and (self.fail_on is None or self.fail_on is kind):
            raise error
        return [dict(r) for r in self.data.get(shop_domain, {}).get(kind, [])]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_tenant(session_factory):
    def _make(shop_domain="acme.myshopify.com", access_token="shpat_test_token"):
        session = session_factory()
        try:
            tenant = Tenant(
                shop_domain=shop_domain,
                access_token=access_token,
                contact_email=f"ops@{shop_domain}",
            )
            session.add(tenant)
            session.commit()
            return tenant
        finally:
            session.close()

    return _make


@pytest.fixture
def metrics():
    return SyncMetrics(registry=CollectorRegistry())


@pytest.fixture
def reconciler(session_factory):
    return Reconciler(session_factory)


@pytest.fixture
def fake_client():
    return FakeShopifyClient()


@pytest.fixture
def make_service(session_factory, metrics):
    def _make(client, fixtures=None, max_workers=1):
        return IngestionService(
            client=client,
            fixtures=fixtures if fixtures is not None else FixtureProvider(),
            metrics=metrics,
            session_factory=session_factory,
            max_workers=max_workers,
            default_currency="USD",
        )

    return _make
