"""
Shopify Admin REST API client

Fetches the customers, orders and products collections for one shop.
Handles timeouts, 429 rate limiting (Retry-After), transient 5xx errors and
Link-header pagination. Every failure surfaces as a ShopifyClientError.
"""
import math
import threading
import time
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from shopsync.config import get_settings
from shopsync.services.normalization import ResourceKind
from shopsync.utils.logger import log
from shopsync.utils.retry import RetryStats, calculate_backoff, call_with_retry

MIN_TIMEOUT_MS = 1000
MIN_BACKOFF_SECONDS = 1
MAX_BACKOFF_SECONDS = 60.0
MAX_LOGGED_BODY = 500


def truncate_body(body: Optional[str]) -> str:
    """Keep error payloads short enough for logs."""
    if not body:
        return ""
    return body[:MAX_LOGGED_BODY] + "..." if len(body) > MAX_LOGGED_BODY else body


class ShopifyClientError(Exception):
    """Shopify request failed."""

    def __init__(
        self,
        message: str,
        path: str,
        status_code: Optional[int] = None,
        body: str = "",
        retryable: bool = False,
    ):
        super().__init__(message)
        self.path = path
        self.status_code = status_code
        self.body = truncate_body(body)
        self.retryable = retryable


class ShopifyRateLimitError(ShopifyClientError):
    """Shopify answered 429; wait retry_after seconds before trying again."""

    def __init__(self, message: str, path: str, retry_after: float, body: str = ""):
        super().__init__(message, path, status_code=429, body=body, retryable=True)
        self.retry_after = retry_after


class ShopifyTransportError(ShopifyClientError):
    """Timeout or connection failure before a response arrived."""

    def __init__(self, message: str, path: str):
        super().__init__(message, path, status_code=None, retryable=True)


def is_retryable_error(error: Exception) -> bool:
    """Rate limits, 5xx responses and transport failures are transient."""
    return isinstance(error, ShopifyClientError) and error.retryable


class ShopifyClient:
    """
    Client for the Shopify Admin REST API

    Usage:
        client = ShopifyClient()
        customers = client.fetch_customers("mystore.myshopify.com", "shpat_xxx")
    """

    def __init__(
        self,
        api_version: Optional[str] = None,
        request_timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
        rate_limit_backoff_seconds: Optional[int] = None,
        page_size: Optional[int] = None,
        requests_per_second: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize Shopify client

        Args:
            api_version: Admin API version (e.g., "2024-01")
            request_timeout_ms: Per-request timeout, never below 1000ms
            max_retries: Retries after the first attempt for transient failures
            rate_limit_backoff_seconds: Wait used when Retry-After is missing,
                and the base of the exponential backoff for 5xx/timeouts
            page_size: Records requested per page
            requests_per_second: Pacing per shop (0 disables)
            transport: Optional httpx transport (tests inject a MockTransport)
            sleep: Blocking sleep used between attempts
        """
        settings = get_settings()

        self.api_version = api_version or settings.shopify_api_version
        timeout_ms = request_timeout_ms if request_timeout_ms is not None else settings.shopify_request_timeout_ms
        self.timeout_seconds = max(timeout_ms, MIN_TIMEOUT_MS) / 1000.0
        self.max_retries = max(max_retries if max_retries is not None else settings.shopify_max_retries, 0)
        backoff = rate_limit_backoff_seconds if rate_limit_backoff_seconds is not None else settings.shopify_rate_limit_backoff_seconds
        self.backoff_seconds = max(backoff, MIN_BACKOFF_SECONDS)
        self.page_size = page_size or settings.shopify_page_size
        self.requests_per_second = (
            requests_per_second if requests_per_second is not None else settings.shopify_requests_per_second
        )

        self._transport = transport
        self._sleep = sleep
        self._pacing_lock = threading.Lock()
        self._last_request_time: Dict[str, float] = {}

        self.last_retry_stats: Optional[RetryStats] = None

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def fetch_customers(self, shop_domain: str, access_token: str) -> List[Dict]:
        return self.fetch(ResourceKind.CUSTOMERS, shop_domain, access_token)

    def fetch_orders(self, shop_domain: str, access_token: str) -> List[Dict]:
        return self.fetch(ResourceKind.ORDERS, shop_domain, access_token)

    def fetch_products(self, shop_domain: str, access_token: str) -> List[Dict]:
        return self.fetch(ResourceKind.PRODUCTS, shop_domain, access_token)

    def fetch(self, kind: ResourceKind, shop_domain: str, access_token: str) -> List[Dict]:
        """
        Fetch every record of one collection, following pagination.

        Args:
            kind: Which collection to fetch
            shop_domain: Shop domain (e.g., "mystore.myshopify.com")
            access_token: Admin API access token

        Returns:
            Raw Shopify records

        Raises:
            ShopifyClientError: Non-retryable failure, or retries exhausted
        """
        shop_domain = self._clean_domain(shop_domain)
        path = self._build_path(kind)
        url: Optional[str] = f"https://{shop_domain}{path}"
        params: Optional[Dict[str, object]] = {"limit": self.page_size}
        if kind is ResourceKind.ORDERS:
            params["status"] = "any"  # open, closed and cancelled

        stats = RetryStats()
        self.last_retry_stats = stats
        records: List[Dict] = []

        with httpx.Client(transport=self._transport, timeout=self.timeout_seconds) as client:
            while url:
                attempt = partial(self._get_page, client, url, params, path, kind, shop_domain, access_token)
                page, url = call_with_retry(
                    attempt,
                    max_attempts=self.max_retries + 1,
                    is_retryable=is_retryable_error,
                    delay_for=self._delay_for,
                    sleep=self._sleep,
                    stats=stats,
                    label=f"Shopify GET {path} for {shop_domain}",
                )
                records.extend(page)
                params = None  # Params are in the URL for subsequent pages

        if stats.errors:
            log.info(f"Retries while fetching {kind.value} from {shop_domain}: {stats.to_dict()}")
        log.info(f"Fetched {len(records)} {kind.value} from {shop_domain}")
        return records

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _get_page(
        self,
        client: httpx.Client,
        url: str,
        params: Optional[Dict[str, object]],
        path: str,
        kind: ResourceKind,
        shop_domain: str,
        access_token: str,
    ) -> Tuple[List[Dict], Optional[str]]:
        """One GET attempt, classified into records or a typed error."""
        self._pace(shop_domain)

        try:
            response = client.get(url, params=params, headers=self._get_headers(access_token))
        except httpx.TimeoutException as e:
            raise ShopifyTransportError(f"Shopify request timed out for {path}: {e}", path) from e
        except httpx.TransportError as e:
            raise ShopifyTransportError(f"Shopify request failed for {path}: {e}", path) from e

        status = response.status_code

        if status == 429:
            retry_after = self._parse_retry_after(response.headers.get("Retry-After"))
            log.warning(
                f"Shopify rate limit hit for {path}. Retry after {retry_after}s. "
                f"Payload: {truncate_body(response.text)}"
            )
            raise ShopifyRateLimitError(
                f"Shopify rate limit hit for {path}", path, retry_after=retry_after, body=response.text
            )

        if status >= 500:
            log.warning(f"Shopify API {status} error for {path}: {truncate_body(response.text)}")
            raise ShopifyClientError(
                f"Shopify responded with {status} for {path}", path,
                status_code=status, body=response.text, retryable=True,
            )

        if status >= 400:
            log.warning(f"Shopify API {status} error for {path}: {truncate_body(response.text)}")
            raise ShopifyClientError(
                f"Shopify responded with {status} for {path}", path,
                status_code=status, body=response.text, retryable=False,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ShopifyClientError(
                f"Shopify returned invalid JSON for {path}", path,
                status_code=status, body=response.text,
            ) from e

        records = data.get(kind.collection_key) if isinstance(data, dict) else None
        if not isinstance(records, list):
            records = []

        return records, self._get_next_page_url(response.headers.get("Link"))

    def _delay_for(self, attempt: int, error: Exception) -> float:
        if isinstance(error, ShopifyRateLimitError):
            return error.retry_after
        return calculate_backoff(attempt, base_delay=self.backoff_seconds, max_delay=MAX_BACKOFF_SECONDS)

    def _parse_retry_after(self, header_value: Optional[str]) -> float:
        """Seconds from a Retry-After header, falling back to the configured backoff."""
        if header_value is None:
            return float(self.backoff_seconds)
        try:
            seconds = float(header_value.strip())
        except ValueError:
            return float(self.backoff_seconds)
        if not math.isfinite(seconds) or seconds < 0:
            return float(self.backoff_seconds)
        return min(seconds, MAX_BACKOFF_SECONDS)

    def _pace(self, shop_domain: str) -> None:
        """Space requests to the same shop (Shopify REST allows 2 req/sec)."""
        if not self.requests_per_second or self.requests_per_second <= 0:
            return

        min_interval = 1.0 / self.requests_per_second
        with self._pacing_lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time.get(shop_domain, 0.0)
            wait = min_interval - elapsed if elapsed < min_interval else 0.0
            self._last_request_time[shop_domain] = now + wait

        if wait > 0:
            log.debug(f"Pacing Shopify requests for {shop_domain}: waiting {wait:.3f}s")
            self._sleep(wait)

    def _build_path(self, kind: ResourceKind) -> str:
        return f"/admin/api/{self.api_version}/{kind.value}.json"

    @staticmethod
    def _clean_domain(shop_domain: str) -> str:
        return shop_domain.strip().replace("https://", "").replace("http://", "").rstrip("/")

    @staticmethod
    def _get_headers(access_token: str) -> Dict[str, str]:
        """Get HTTP headers for Shopify API requests"""
        return {
            "Authorization": f"Bearer {access_token}",
            "X-Shopify-Access-Token": access_token,
            "Accept": "application/json",
        }

    @staticmethod
    def _get_next_page_url(link_header: Optional[str]) -> Optional[str]:
        """
        Parse next page URL from Link header

        Shopify uses cursor-based pagination with Link headers:
        <url>; rel="next"
        """
        if not link_header:
            return None

        for link in link_header.split(","):
            parts = link.split(";")
            if len(parts) == 2 and 'rel="next"' in parts[1]:
                return parts[0].strip().strip("<>")

        return None
