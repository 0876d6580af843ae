"""
Item sources feeding the batch generators.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from feedsync.core.woo_client import WooClient


logger = logging.getLogger(__name__)


class ItemSource(ABC):
    """
    Paginated collection of domain items.

    ``get_items`` returns the slice for a 1-based batch number; an empty
    list means there is nothing more to read.
    """

    @abstractmethod
    def get_items(self, batch_number: int, batch_size: int, filters: Dict[str, Any]) -> List[Any]:
        """Return the items of one batch."""

    def get_all_items(self, filters: Dict[str, Any], page_size: int = 100) -> List[Any]:
        """Read every page until an empty one is returned."""
        items: List[Any] = []
        batch_number = 1
        while True:
            page = self.get_items(batch_number, page_size, filters)
            if not page:
                return items
            items.extend(page)
            if len(page) < page_size:
                return items
            batch_number += 1


class ListItemSource(ItemSource):
    """Serves batches from an in-memory list."""

    def __init__(self, items: Optional[List[Any]] = None):
        self.items = list(items or [])

    def get_items(self, batch_number: int, batch_size: int, filters: Dict[str, Any]) -> List[Any]:
        batch_number = max(1, batch_number)
        offset = (batch_number - 1) * batch_size
        return self.items[offset:offset + batch_size]


class WooItemSource(ItemSource):
    """
    Serves batches from a WooCommerce REST collection.

    The batch number maps to the REST page, the batch size to per_page.
    """

    def __init__(
        self,
        client: WooClient,
        endpoint: str,
        mapper: Callable[[Dict[str, Any]], Any],
        params: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize source.

        Args:
            client: WooCommerce client
            endpoint: Collection endpoint
            mapper: Converts one REST record into a feed item
            params: Fixed query parameters (e.g. status filters)
        """
        self.client = client
        self.endpoint = endpoint
        self.mapper = mapper
        self.params = params or {}

    def get_items(self, batch_number: int, batch_size: int, filters: Dict[str, Any]) -> List[Any]:
        batch_number = max(1, batch_number)
        params = {**self.params, **(filters or {})}
        result = self.client.get_collection(
            self.endpoint,
            page=batch_number,
            per_page=batch_size,
            params=params
        )
        if batch_number > result["total_pages"]:
            return []
        records = result["items"]
        logger.debug(f"Fetched {len(records)} record(s) from {self.endpoint} page {batch_number}")
        return [self.mapper(record) for record in records]


class WooShippingZoneSource(ItemSource):
    """Serves shipping zones, sliced into batches locally."""

    def __init__(self, client: WooClient, mapper: Callable[[Dict[str, Any]], Any]):
        self.client = client
        self.mapper = mapper

    def get_items(self, batch_number: int, batch_size: int, filters: Dict[str, Any]) -> List[Any]:
        batch_number = max(1, batch_number)
        offset = (batch_number - 1) * batch_size
        zones = self.client.get_shipping_zones()
        return [self.mapper(zone) for zone in zones[offset:offset + batch_size]]
