"""
Remote catalog (Graph API) client used to register feeds and request uploads.
"""

import time
import random
import logging
from typing import Any, Dict, List, Optional

import httpx

from feedsync.core.security import sanitize_dict_for_logging, sanitize_string_for_logging


logger = logging.getLogger(__name__)


class RemoteApiError(Exception):
    """Raised when the catalog API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CatalogApiClient:
    """Graph API client for product feeds and feed uploads."""

    def __init__(
        self,
        access_token: Optional[str],
        base_url: str = "https://graph.facebook.com",
        api_version: str = "v21.0",
        timeout: float = 30.0,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize catalog client.

        Args:
            access_token: Graph API access token
            base_url: Graph API host
            api_version: Graph API version segment
            timeout: Request timeout in seconds
            max_retries: Retries for 429/5xx and network errors
            initial_delay: First retry delay in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token
        self.base_url = f"{base_url.rstrip('/')}/{api_version}"
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make a Graph API request with retry on throttling and server errors.

        Raises:
            RemoteApiError: On API error responses or exhausted retries
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = dict(params or {})
        if self.access_token:
            query["access_token"] = self.access_token
        logger.debug(f"{method} {path} | params={sanitize_dict_for_logging(query)}")

        last_error = ""
        for attempt in range(self.max_retries + 1):
            try:
                response = self.client.request(method, url, params=query, json=json_data)
            except httpx.RequestError as e:
                last_error = sanitize_string_for_logging(str(e))
                if attempt < self.max_retries:
                    time.sleep(self.initial_delay * (2 ** attempt))
                    continue
                raise RemoteApiError(f"{method} {path} failed: {last_error}")

            if response.status_code in (429, 500, 502, 503, 504) and attempt < self.max_retries:
                last_error = f"HTTP {response.status_code}"
                delay = self.initial_delay * (2 ** attempt) + random.uniform(0, 0.4)
                logger.warning(f"{method} {path} -> {last_error}, retrying in {delay:.1f}s")
                time.sleep(delay)
                continue

            if response.status_code >= 400:
                raise RemoteApiError(self._error_message(response), status_code=response.status_code)

            try:
                return response.json()
            except ValueError:
                raise RemoteApiError(
                    f"{method} {path} returned invalid JSON", status_code=response.status_code
                )

        raise RemoteApiError(f"{method} {path} failed after {self.max_retries} retries: {last_error}")

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json().get("error", {})
            message = error.get("message") or response.text[:200]
        except ValueError:
            message = response.text[:200]
        return sanitize_string_for_logging(f"HTTP {response.status_code}: {message}")

    def read_feeds(self, catalog_id: str) -> List[Dict[str, Any]]:
        """
        List the product feeds of a catalog, following pagination.

        Args:
            catalog_id: Product catalog ID

        Returns:
            List of feed nodes (at least 'id')
        """
        feeds: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {}
        while True:
            body = self._request("GET", f"{catalog_id}/product_feeds", params=params)
            feeds.extend(body.get("data") or [])
            paging = body.get("paging") or {}
            after = (paging.get("cursors") or {}).get("after")
            if not paging.get("next") or not after:
                return feeds
            params = {"after": after}

    def read_feed(self, feed_id: str) -> Dict[str, Any]:
        """Read one feed node with its name."""
        return self._request("GET", feed_id, params={"fields": "id,name,file_name"})

    def create_feed(self, catalog_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a product feed in a catalog.

        Returns:
            Response body containing the new feed 'id'
        """
        return self._request("POST", f"{catalog_id}/product_feeds", json_data=data)

    def delete_feed(self, feed_id: str) -> Dict[str, Any]:
        """Delete a product feed."""
        return self._request("DELETE", feed_id)

    def create_upload(self, feed_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Ask the catalog to fetch a feed file from ``data['url']``."""
        return self._request("POST", f"{feed_id}/uploads", json_data=data)

    def create_common_data_feed_upload(self, integration_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Ask the commerce partner integration to fetch a data feed file.

        Args:
            integration_id: Commerce partner integration ID
            data: 'url', 'feed_type' and 'update_type'
        """
        return self._request("POST", f"{integration_id}/file_update", json_data=data)

    def close(self):
        """Close HTTP client."""
        self.client.close()
