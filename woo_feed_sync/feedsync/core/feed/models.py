"""
Feed data models.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from feedsync.config import Settings
from feedsync.core.catalog_client import CatalogApiClient
from feedsync.core.events import FeedEventEmitter
from feedsync.core.jobs import JobScheduler
from feedsync.core.options import OptionStore

from .sources import ItemSource


OPTION_PRODUCT_CATALOG_ID = "product_catalog_id"
OPTION_INTEGRATION_ID = "commerce_partner_integration_id"


@dataclass
class FeedContext:
    """Shared collaborators handed to every feed."""
    settings: Settings
    options: OptionStore
    events: FeedEventEmitter
    scheduler: JobScheduler

    # Builds the catalog API client on first use
    api_factory: Optional[Callable[[], CatalogApiClient]] = None

    # Feed type key -> item source
    sources: Dict[str, ItemSource] = field(default_factory=dict)

    def get_product_catalog_id(self) -> str:
        """Stored catalog ID, falling back to configuration."""
        return self.options.get(OPTION_PRODUCT_CATALOG_ID) or self.settings.product_catalog_id or ""

    def get_integration_id(self) -> str:
        """Stored commerce partner integration ID, falling back to configuration."""
        return self.options.get(OPTION_INTEGRATION_ID) or self.settings.commerce_partner_integration_id or ""
