"""
WooCommerce REST client used as the item source of the feeds.
"""

import time
import random
import logging
from typing import Optional, Dict, List, Any, Tuple
import httpx
from urllib.parse import urljoin

from feedsync.core.security import sanitize_string_for_logging


logger = logging.getLogger(__name__)


RETRYABLE_STATUS = (429, 500, 502, 503, 504)
MAX_RETRY_DELAY = 60.0


class WooCommerceError(Exception):
    """Raised when the store API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WooClient:
    """
    Read-only client for WooCommerce and WordPress REST collections.

    Requests are authenticated with a WooCommerce consumer key pair,
    throttled to ``rate_limit_rps`` and retried with exponential backoff on
    throttling, server errors and network failures.
    """

    def __init__(
        self,
        store_url: str,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        rate_limit_rps: float = 5.0,
        timeout: float = 30.0,
        max_retries: int = 5,
        initial_delay: float = 2.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize client.

        Args:
            store_url: Store base URL (e.g., https://example.com)
            consumer_key: WooCommerce consumer key
            consumer_secret: WooCommerce consumer secret
            rate_limit_rps: Max requests per second, 0 disables throttling
            timeout: Request timeout in seconds
            max_retries: Retries for retryable responses and network errors
            initial_delay: First retry delay in seconds, doubled per attempt
            transport: Optional httpx transport (used by tests)
        """
        if not (consumer_key and consumer_secret):
            raise ValueError("consumer_key and consumer_secret are required")

        self.store_url = store_url.rstrip('/')
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._min_interval = 1.0 / rate_limit_rps if rate_limit_rps > 0 else 0
        self._last_request_time = 0.0
        self.client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            auth=httpx.BasicAuth(consumer_key, consumer_secret),
            transport=transport
        )

    def _throttle(self):
        wait = self._min_interval - (time.time() - self._last_request_time)
        if wait > 0:
            time.sleep(wait)
        self._last_request_time = time.time()

    def _backoff(self, attempt: int) -> float:
        return min(self.initial_delay * (2 ** attempt), MAX_RETRY_DELAY) + random.uniform(0, 0.4)

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        max_retries: Optional[int] = None
    ) -> httpx.Response:
        """
        Make a request, retrying throttled, failed and unreachable calls.

        Raises:
            WooCommerceError: On a non-retryable error or exhausted retries
        """
        url = urljoin(self.store_url + '/', endpoint.lstrip('/'))
        retries = self.max_retries if max_retries is None else max_retries

        for attempt in range(retries + 1):
            self._throttle()
            try:
                response = self.client.request(method, url, params=params)
            except httpx.RequestError as e:
                error = sanitize_string_for_logging(str(e))
                if attempt >= retries:
                    raise WooCommerceError(f"{method} {endpoint} failed after {retries} retries: {error}")
                logger.warning(f"{method} {endpoint} -> {error}, retrying")
                time.sleep(self._backoff(attempt))
                continue

            if response.status_code < 400:
                return response

            message = f"HTTP {response.status_code}: {sanitize_string_for_logging(response.text[:200])}"
            if response.status_code not in RETRYABLE_STATUS or attempt >= retries:
                raise WooCommerceError(message, status_code=response.status_code)

            delay = self._backoff(attempt)
            logger.warning(f"{method} {endpoint} -> HTTP {response.status_code}, retrying in {delay:.1f}s")
            time.sleep(delay)

        raise WooCommerceError(f"{method} {endpoint} failed")

    def get_collection(
        self,
        endpoint: str,
        page: int = 1,
        per_page: int = 50,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Read one page of a REST collection (coupons, reviews, menu items).

        Args:
            endpoint: Collection endpoint, e.g. /wp-json/wc/v3/coupons
            page: 1-based page number
            per_page: Items per page
            params: Extra query parameters

        Returns:
            Dict with 'items' and the X-WP-Total / X-WP-TotalPages counters
        """
        query = {**(params or {}), "page": page, "per_page": per_page}
        response = self._request("GET", endpoint, params=query)
        items = response.json()
        return {
            "items": items if isinstance(items, list) else [],
            "page": page,
            "per_page": per_page,
            "total": int(response.headers.get("X-WP-Total", 0)),
            "total_pages": int(response.headers.get("X-WP-TotalPages", 1))
        }

    def get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", endpoint, params=params).json()

    def get_shipping_zones(self) -> List[Dict[str, Any]]:
        """Shipping zones, each with its 'locations' and 'methods' attached."""
        zones = self.get_json("/wp-json/wc/v3/shipping/zones")
        result = []
        for zone in zones if isinstance(zones, list) else []:
            base = f"/wp-json/wc/v3/shipping/zones/{zone.get('id')}"
            result.append({
                **zone,
                "locations": self.get_json(f"{base}/locations"),
                "methods": self.get_json(f"{base}/methods"),
            })
        return result

    def test_connection(self) -> Tuple[bool, str]:
        """
        Check that the store answers with the configured credentials.

        Returns:
            (success, message)
        """
        try:
            self._request("GET", "/wp-json/wc/v3/system_status", max_retries=0)
        except WooCommerceError as e:
            if e.status_code == 401:
                return False, "Authentication failed: check consumer key and secret"
            if e.status_code == 404:
                return False, "API endpoint not found: check store_url"
            return False, f"Connection error: {str(e)[:200]}"
        return True, "Connection successful"

    def close(self):
        """Close HTTP client."""
        self.client.close()
