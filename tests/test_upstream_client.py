"""
Tests for the Shopify Admin API client.

The live API is replaced by httpx.MockTransport and sleeps are recorded
instead of slept, so retry timing is asserted without waiting.
"""
import httpx
import pytest

from shopsync.connectors.shopify import (
    ShopifyClient,
    ShopifyClientError,
    ShopifyRateLimitError,
    ShopifyTransportError,
)
from shopsync.services.normalization import ResourceKind

SHOP = "acme.myshopify.com"
TOKEN = "shpat_test_token"


def _client(handler, sleeps, **kwargs):
    kwargs.setdefault("max_retries", 3)
    kwargs.setdefault("rate_limit_backoff_seconds", 2)
    kwargs.setdefault("requests_per_second", 0)
    return ShopifyClient(
        api_version="2024-01",
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
        **kwargs,
    )


def _scripted(responses, calls):
    """Handler replaying a list of responses (or exceptions), last one repeating."""
    def handler(request):
        calls.append(request)
        item = responses[min(len(calls) - 1, len(responses) - 1)]
        if isinstance(item, Exception):
            raise item
        return item
    return handler


# ────────────────────────────────────────────
# RATE LIMITING
# ────────────────────────────────────────────


class TestRateLimit:

    def test_retry_after_then_success(self):
        """429 with Retry-After: 2 then 200 succeeds after waiting at least 2s."""
        calls, sleeps = [], []
        handler = _scripted([
            httpx.Response(429, headers={"Retry-After": "2"}, text="Exceeded 2 calls per second"),
            httpx.Response(200, json={"customers": [{"id": 1}, {"id": 2}]}),
        ], calls)

        records = _client(handler, sleeps).fetch_customers(SHOP, TOKEN)

        assert [r["id"] for r in records] == [1, 2]
        assert len(calls) == 2
        assert sleeps == [2.0]
        assert sum(sleeps) >= 2

    def test_always_rate_limited_makes_max_retries_plus_one_attempts(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(429, headers={"Retry-After": "1"})], calls)

        with pytest.raises(ShopifyRateLimitError) as exc_info:
            _client(handler, sleeps, max_retries=3).fetch_products(SHOP, TOKEN)

        assert len(calls) == 4
        assert len(sleeps) == 3
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 1.0

    def test_zero_retries_makes_a_single_attempt(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(429)], calls)

        with pytest.raises(ShopifyRateLimitError):
            _client(handler, sleeps, max_retries=0).fetch_orders(SHOP, TOKEN)

        assert len(calls) == 1
        assert sleeps == []

    def test_missing_retry_after_uses_configured_backoff(self):
        calls, sleeps = [], []
        handler = _scripted([
            httpx.Response(429),
            httpx.Response(200, json={"orders": []}),
        ], calls)

        _client(handler, sleeps, rate_limit_backoff_seconds=5).fetch_orders(SHOP, TOKEN)

        assert sleeps == [5.0]

    @pytest.mark.parametrize("header", ["nan", "inf", "-inf", "-3"])
    def test_non_finite_or_negative_retry_after_uses_backoff(self, header):
        calls, sleeps = [], []
        handler = _scripted([
            httpx.Response(429, headers={"Retry-After": header}),
            httpx.Response(200, json={"orders": []}),
        ], calls)

        _client(handler, sleeps, rate_limit_backoff_seconds=2).fetch_orders(SHOP, TOKEN)

        assert sleeps == [2.0]

    def test_huge_retry_after_is_capped(self):
        calls, sleeps = [], []
        handler = _scripted([
            httpx.Response(429, headers={"Retry-After": "1e9"}),
            httpx.Response(200, json={"orders": []}),
        ], calls)

        _client(handler, sleeps).fetch_orders(SHOP, TOKEN)

        assert sleeps == [60.0]

    def test_backoff_is_floored_at_one_second(self):
        calls, sleeps = [], []
        handler = _scripted([
            httpx.Response(429, headers={"Retry-After": "soon"}),
            httpx.Response(200, json={"orders": []}),
        ], calls)

        _client(handler, sleeps, rate_limit_backoff_seconds=0).fetch_orders(SHOP, TOKEN)

        assert sleeps == [1.0]


# ────────────────────────────────────────────
# ERROR CLASSIFICATION
# ────────────────────────────────────────────


class TestErrorClassification:

    def test_server_error_is_retried(self):
        calls, sleeps = [], []
        handler = _scripted([
            httpx.Response(503, text="Service Unavailable"),
            httpx.Response(200, json={"products": [{"id": 9}]}),
        ], calls)

        records = _client(handler, sleeps).fetch_products(SHOP, TOKEN)

        assert records == [{"id": 9}]
        assert len(sleeps) == 1
        # Exponential backoff from a 2s base, attempt 1, up to 25% jitter
        assert 2.0 <= sleeps[0] <= 2.5

    def test_server_error_exhaustion_raises_last_failure(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(500, text="boom")], calls)

        with pytest.raises(ShopifyClientError) as exc_info:
            _client(handler, sleeps, max_retries=2).fetch_products(SHOP, TOKEN)

        assert len(calls) == 3
        assert exc_info.value.status_code == 500
        assert exc_info.value.retryable is True

    def test_client_error_is_not_retried(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(401, text='{"errors":"Invalid API key"}')], calls)

        with pytest.raises(ShopifyClientError) as exc_info:
            _client(handler, sleeps).fetch_customers(SHOP, TOKEN)

        error = exc_info.value
        assert len(calls) == 1
        assert sleeps == []
        assert error.status_code == 401
        assert error.retryable is False
        assert error.path == "/admin/api/2024-01/customers.json"
        assert "Invalid API key" in error.body

    def test_transport_error_is_retried(self):
        calls, sleeps = [], []
        handler = _scripted([
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json={"customers": []}),
        ], calls)

        assert _client(handler, sleeps).fetch_customers(SHOP, TOKEN) == []
        assert len(calls) == 2
        assert len(sleeps) == 1

    def test_timeout_exhaustion_raises_transport_error(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.ReadTimeout("timed out")], calls)

        with pytest.raises(ShopifyTransportError):
            _client(handler, sleeps, max_retries=1).fetch_customers(SHOP, TOKEN)

        assert len(calls) == 2

    def test_invalid_json_is_not_retried(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(200, text="<html>maintenance</html>")], calls)

        with pytest.raises(ShopifyClientError) as exc_info:
            _client(handler, sleeps).fetch_customers(SHOP, TOKEN)

        assert len(calls) == 1
        assert exc_info.value.retryable is False

    def test_error_body_is_truncated(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(422, text="x" * 600)], calls)

        with pytest.raises(ShopifyClientError) as exc_info:
            _client(handler, sleeps).fetch_customers(SHOP, TOKEN)

        assert exc_info.value.body == "x" * 500 + "..."

    def test_missing_collection_key_yields_no_records(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(200, json={"unexpected": True})], calls)

        assert _client(handler, sleeps).fetch_customers(SHOP, TOKEN) == []


# ────────────────────────────────────────────
# REQUEST SHAPE
# ────────────────────────────────────────────


class TestRequests:

    def test_orders_request_shape(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(200, json={"orders": []})], calls)

        _client(handler, sleeps).fetch_orders(SHOP, TOKEN)

        request = calls[0]
        assert request.url.host == SHOP
        assert request.url.path == "/admin/api/2024-01/orders.json"
        assert request.url.params["status"] == "any"
        assert request.url.params["limit"] == "250"
        assert request.headers["Authorization"] == f"Bearer {TOKEN}"
        assert request.headers["X-Shopify-Access-Token"] == TOKEN

    def test_customers_request_has_no_status_filter(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(200, json={"customers": []})], calls)

        _client(handler, sleeps).fetch(ResourceKind.CUSTOMERS, f"https://{SHOP}/", TOKEN)

        assert calls[0].url.host == SHOP
        assert "status" not in calls[0].url.params

    def test_follows_link_header_pagination(self):
        calls, sleeps = [], []
        next_url = f"https://{SHOP}/admin/api/2024-01/products.json?limit=250&page_info=abc123"
        handler = _scripted([
            httpx.Response(200, json={"products": [{"id": 1}]},
                           headers={"Link": f'<{next_url}>; rel="next"'}),
            httpx.Response(200, json={"products": [{"id": 2}]},
                           headers={"Link": f'<https://{SHOP}/prev>; rel="previous"'}),
        ], calls)

        records = _client(handler, sleeps).fetch_products(SHOP, TOKEN)

        assert [r["id"] for r in records] == [1, 2]
        assert len(calls) == 2
        assert calls[1].url.params["page_info"] == "abc123"

    def test_timeout_is_floored_at_one_second(self):
        assert ShopifyClient(request_timeout_ms=10).timeout_seconds == 1.0
        assert ShopifyClient(request_timeout_ms=2500).timeout_seconds == 2.5

    def test_requests_to_same_shop_are_paced(self):
        calls, sleeps = [], []
        handler = _scripted([httpx.Response(200, json={"customers": []})], calls)
        client = _client(handler, sleeps, requests_per_second=2)

        client.fetch_customers(SHOP, TOKEN)
        client.fetch_customers(SHOP, TOKEN)

        assert len(calls) == 2
        assert len(sleeps) == 1
        assert 0 < sleeps[0] <= 0.5

    def test_next_page_url_parsing(self):
        header = '<https://a/prev>; rel="previous", <https://a/next?page_info=x>; rel="next"'
        assert ShopifyClient._get_next_page_url(header) == "https://a/next?page_info=x"
        assert ShopifyClient._get_next_page_url(None) is None
        assert ShopifyClient._get_next_page_url('<https://a/prev>; rel="previous"') is None
