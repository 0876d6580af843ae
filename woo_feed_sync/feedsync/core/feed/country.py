"""
Country override feeds.

One CSV file per selling country carries the local price of each product
(``id,override,price``). Every country maps to its own remote feed; the
mapping is kept in the option store and checked against the catalog
before it is reused.
"""

import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from feedsync.core.catalog_client import CatalogApiClient, RemoteApiError
from feedsync.core.events import FeedEventEmitter
from feedsync.core.jobs import JobScheduler

from .base import WEEK_IN_SECONDS, FeedSchedule, get_or_create_feed_secret
from .generator import FeedGenerator, generation_completed_event
from .models import FeedContext
from .writers import CsvFeedFileWriter


logger = logging.getLogger(__name__)


COUNTRY_OVERRIDE = "country_override"

OPTION_COUNTRY_FEED_IDS = "country_feed_ids"

COUNTRY_COLUMNS = ["id", "override", "price"]


def format_price_for_catalog(price: Union[int, float, str], currency_code: str) -> str:
    """Format a price as ``5.99 EUR``: two decimals, a period and the ISO 4217 code."""
    return f"{float(price):.2f} {currency_code.upper()}"


class CountryFeedData(ABC):
    """Per-country product prices exposed by a multi-currency plugin."""

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    def get_countries_for_override_feeds(self) -> List[str]:
        """Upper-case country codes that get an override feed."""

    @abstractmethod
    def get_country_csv_data(self, country_code: str, limit: int = 100, offset: int = 0) -> List[Dict[str, str]]:
        """One page of ``id``/``override``/``price`` rows for a country."""

    def should_generate_country_feeds(self) -> bool:
        return self.is_available() and bool(self.get_countries_for_override_feeds())


class StaticCountryFeedData(CountryFeedData):
    """
    Country prices loaded from a mapping or a JSON file.

    Expected shape::

        {"FR": {"currency": "EUR", "rows": [{"id": "wc_post_id_1", "price": 12.5}]}}

    A row may carry its own ``currency``.
    """

    def __init__(self, countries: Dict[str, Dict[str, Any]]):
        self.countries = {code.upper(): entry for code, entry in countries.items()}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticCountryFeedData":
        with open(path, "r", encoding="utf-8") as f:
            return cls(json.load(f))

    def is_available(self) -> bool:
        return bool(self.countries)

    def get_countries_for_override_feeds(self) -> List[str]:
        return [code for code, entry in self.countries.items() if entry.get("currency")]

    def get_country_csv_data(self, country_code: str, limit: int = 100, offset: int = 0) -> List[Dict[str, str]]:
        country_code = country_code.upper()
        entry = self.countries.get(country_code) or {}
        rows = (entry.get("rows") or [])[offset:offset + limit]
        return [
            {
                "id": str(row["id"]),
                "override": country_code,
                "price": format_price_for_catalog(row["price"], row.get("currency") or entry["currency"]),
            }
            for row in rows
        ]


class CountryFeedManagement:
    """Maps country codes to remote feed IDs."""

    FEED_NAME_TEMPLATE = "%s Country Override Feed (%s)"

    def __init__(self, context: FeedContext):
        self.context = context
        self.options = context.options
        self._api: Optional[CatalogApiClient] = None

    def get_api(self) -> Optional[CatalogApiClient]:
        if self._api is None and self.context.api_factory is not None:
            self._api = self.context.api_factory()
        return self._api

    def get_stored_country_feed_id(self, country_code: str) -> Optional[str]:
        return self.options.get_map_value(OPTION_COUNTRY_FEED_IDS, country_code.upper())

    def store_country_feed_id(self, country_code: str, feed_id: str) -> None:
        self.options.set_map_value(OPTION_COUNTRY_FEED_IDS, country_code.upper(), feed_id)

    def invalidate_country_feed_id(self, country_code: str) -> None:
        self.options.delete_map_value(OPTION_COUNTRY_FEED_IDS, country_code.upper())

    def get_all_country_feed_ids(self) -> Dict[str, str]:
        return self.options.get_map(OPTION_COUNTRY_FEED_IDS)

    def generate_country_feed_name(self, country_code: str) -> str:
        return self.FEED_NAME_TEMPLATE % (self.context.settings.store_name, country_code.upper())

    def retrieve_or_create_country_feed_id(self, country_code: str, feed_url: str) -> str:
        """
        Get the remote feed of a country, creating it if missing.

        A stored ID is reused only while the catalog still knows the feed.
        Never raises; failures are logged and reported as ''.
        """
        feed_id = self.get_stored_country_feed_id(country_code)
        if feed_id:
            if self.validate_country_feed_exists(feed_id, country_code):
                return feed_id
            self.invalidate_country_feed_id(country_code)

        feed_id = self._create_country_override_feed(country_code, feed_url)
        if feed_id:
            self.store_country_feed_id(country_code, feed_id)
        return feed_id

    def validate_country_feed_exists(self, feed_id: str, country_code: str) -> bool:
        try:
            response = self.get_api().read_feed(feed_id)
            return str(response.get("id")) == feed_id
        except Exception as e:
            logger.warning(f"Country override feed validation failed | country={country_code} | feed_id={feed_id} | {e}")
            return False

    def _create_country_override_feed(self, country_code: str, feed_url: str) -> str:
        catalog_id = self.context.get_product_catalog_id()
        if not catalog_id:
            logger.error("Cannot create country override feed: No product catalog ID")
            return ""

        feed_data = {
            "name": self.generate_country_feed_name(country_code),
            "schedule": {
                "interval": "WEEKLY",
                "url": feed_url,
            },
        }
        try:
            response = self.get_api().create_feed(catalog_id, feed_data)
        except Exception as e:
            logger.error(f"Failed to create country override feed | country={country_code} | {e}")
            return ""

        feed_id = str(response.get("id") or "")
        if feed_id:
            logger.info(f"Country override feed created | country={country_code} | feed_id={feed_id}")
        return feed_id

    def delete_country_override_feed(self, country_code: str) -> bool:
        """
        Delete the remote feed of a country and forget its ID.

        Returns:
            True if nothing was stored or the feed was deleted
        """
        feed_id = self.get_stored_country_feed_id(country_code)
        if not feed_id:
            return True
        try:
            self.get_api().delete_feed(feed_id)
        except Exception as e:
            logger.error(f"Failed to delete country override feed | country={country_code} | feed_id={feed_id} | {e}")
            return False
        self.invalidate_country_feed_id(country_code)
        logger.info(f"Country override feed deleted | country={country_code} | feed_id={feed_id}")
        return True

    def cleanup_all_country_feeds(self) -> int:
        """Delete every stored country feed. Returns the number deleted."""
        country_feeds = self.get_all_country_feed_ids()
        deleted = sum(1 for country_code in country_feeds if self.delete_country_override_feed(country_code))
        logger.info(f"Country override feeds cleanup completed | total={len(country_feeds)} | deleted={deleted}")
        return deleted


class CountryOverrideFeedWriter(CsvFeedFileWriter):
    """CSV writer for one country; the public file name embeds the feed secret."""

    FILE_NAME = "country_override_%s_%s.csv"

    def __init__(self, country_code: str, base_dir: Union[str, Path], events: FeedEventEmitter, **kwargs: Any):
        self.country_code = country_code.upper()
        self.events = events
        kwargs.setdefault("header_row", list(COUNTRY_COLUMNS))
        super().__init__(COUNTRY_OVERRIDE, base_dir, **kwargs)

    def get_file_name(self) -> str:
        file_name = self.FILE_NAME % (self.country_code.lower(), self._get_secret())
        return self.events.apply_filters("country_override_feed_file_name", file_name, self.country_code)


class CountryOverrideFeedGenerator(FeedGenerator):
    """Generates the override file of a single country."""

    BATCH_SIZE = 100

    def __init__(
        self,
        scheduler: JobScheduler,
        feed_writer: CountryOverrideFeedWriter,
        feed_type: str,
        events: FeedEventEmitter,
        country_feed_data: CountryFeedData,
        country_code: str,
        plugin_name: str = "facebook-for-woocommerce"
    ):
        self.country_feed_data = country_feed_data
        self.country_code = country_code.upper()
        super().__init__(scheduler, feed_writer, feed_type, events, plugin_name=plugin_name)

    def get_name(self) -> str:
        return f"{self.feed_type}_{self.country_code}_feed_generator"

    def get_batch_size(self) -> int:
        return int(self.events.apply_filters("country_override_feed_batch_size", self.BATCH_SIZE))

    def get_items_for_batch(self, batch_number: int, filters: Dict[str, Any]) -> List[Any]:
        batch_size = self.get_batch_size()
        offset = (max(1, batch_number) - 1) * batch_size
        rows = self.country_feed_data.get_country_csv_data(self.country_code, batch_size, offset)
        return [[row["id"], row["override"], row["price"]] for row in rows]

    def handle_end(self) -> None:
        self.feed_writer.promote_temp_file()
        self.events.emit(
            generation_completed_event(self.feed_type),
            feed_type=self.feed_type,
            country_code=self.country_code
        )


class CountryOverrideFeed:
    """Country override feeds for every country with its own currency."""

    def __init__(
        self,
        context: FeedContext,
        country_feed_data: CountryFeedData,
        management: Optional[CountryFeedManagement] = None
    ):
        self.context = context
        self.events = context.events
        self.country_feed_data = country_feed_data
        self.management = management or CountryFeedManagement(context)
        self._writers: Dict[str, CountryOverrideFeedWriter] = {}
        self._generators: Dict[str, CountryOverrideFeedGenerator] = {}

        self.events.subscribe(
            generation_completed_event(COUNTRY_OVERRIDE),
            self.send_request_to_upload_feed
        )

    @classmethod
    def get_data_stream_name(cls) -> str:
        return COUNTRY_OVERRIDE

    @classmethod
    def get_feed_type(cls) -> str:
        return "COUNTRY_OVERRIDE"

    def get_feed_gen_interval(self) -> int:
        return int(self.events.apply_filters("country_override_feed_generation_interval", WEEK_IN_SECONDS))

    def get_feed_writer(self, country_code: str) -> CountryOverrideFeedWriter:
        country_code = country_code.upper()
        if country_code not in self._writers:
            self._writers[country_code] = CountryOverrideFeedWriter(
                country_code,
                self.context.settings.feed_base_dir,
                self.events,
                secret_getter=self.get_feed_secret
            )
        return self._writers[country_code]

    def get_feed_generator(self, country_code: str) -> CountryOverrideFeedGenerator:
        country_code = country_code.upper()
        if country_code not in self._generators:
            self._generators[country_code] = CountryOverrideFeedGenerator(
                self.context.scheduler,
                self.get_feed_writer(country_code),
                COUNTRY_OVERRIDE,
                self.events,
                self.country_feed_data,
                country_code,
                plugin_name=self.context.settings.plugin_id
            )
        return self._generators[country_code]

    def load_generators(self) -> List[CountryOverrideFeedGenerator]:
        """Build (and register) the generator of every country."""
        return [
            self.get_feed_generator(country_code)
            for country_code in self.country_feed_data.get_countries_for_override_feeds()
        ]

    def detach(self) -> None:
        self.events.unsubscribe(
            generation_completed_event(COUNTRY_OVERRIDE),
            self.send_request_to_upload_feed
        )

    def should_skip_feed(self) -> bool:
        if not self.context.get_integration_id():
            return True
        if not self.country_feed_data.is_available():
            logger.info("Country override feed generation skipped: Country feeds not available.")
            return True
        return False

    def regenerate_feed(self) -> Dict[str, Optional[str]]:
        """
        Queue one run per country.

        Returns:
            Country code -> job ID (None when the run was not queued)
        """
        if self.should_skip_feed():
            return {}
        return {
            generator.country_code: generator.queue_start()
            for generator in self.load_generators()
        }

    def get_schedule(self) -> FeedSchedule:
        return FeedSchedule(self.context.options, COUNTRY_OVERRIDE, self.get_feed_gen_interval())

    def run_scheduled_generation(self, now: Optional[float] = None) -> Dict[str, Optional[str]]:
        """Queue every country when due; a skipped feed loses its schedule."""
        schedule = self.get_schedule()
        if self.should_skip_feed():
            schedule.unschedule()
            return {}

        now = time.time() if now is None else now
        schedule.schedule(now)
        if not schedule.is_due(now):
            return {}
        schedule.advance(now)
        return self.regenerate_feed()

    def get_feed_secret(self) -> str:
        return get_or_create_feed_secret(self.context.options, COUNTRY_OVERRIDE)

    def get_country_feed_url(self, country_code: str) -> str:
        base_url = self.context.settings.feed_base_url.rstrip("/")
        return f"{base_url}/{COUNTRY_OVERRIDE}/{self.get_feed_writer(country_code).get_file_name()}"

    def find_country_by_file_name(self, file_name: str) -> Optional[str]:
        for country_code in self.country_feed_data.get_countries_for_override_feeds():
            expected = self.get_feed_writer(country_code).get_file_name()
            if secrets.compare_digest(expected.encode(), file_name.encode()):
                return country_code
        return None

    def send_request_to_upload_feed(self, country_code: Optional[str] = None, **payload: Any) -> None:
        if country_code:
            self.upload_single_country_feed(country_code)
        else:
            self.upload_country_override_feeds()

    def upload_country_override_feeds(self) -> None:
        if not self.country_feed_data.should_generate_country_feeds():
            return
        for country_code in self.country_feed_data.get_countries_for_override_feeds():
            self.upload_single_country_feed(country_code)

    def upload_single_country_feed(self, country_code: str) -> bool:
        """
        Ask the catalog to fetch the file of one country.

        Returns:
            True if the upload request was accepted
        """
        try:
            api = self.management.get_api()
        except Exception as e:
            logger.error(f"Country override feed: could not build the catalog API client: {e}")
            return False
        if api is None:
            logger.info("Country override feed: upload skipped, catalog API not configured")
            return False

        url = self.get_country_feed_url(country_code)
        feed_id = self.management.retrieve_or_create_country_feed_id(country_code, url)
        if not feed_id:
            logger.error(f"Country override feed upload failed: no feed ID for {country_code}")
            return False

        try:
            api.create_upload(feed_id, {"url": url})
        except RemoteApiError as e:
            logger.error(f"Country override feed upload failed for {country_code}: {e}")
            if e.status_code == 404:
                self.management.invalidate_country_feed_id(country_code)
            return False
        except Exception as e:
            logger.error(f"Country override feed upload failed for {country_code}: {e}")
            return False

        logger.info(f"Country override feed uploaded | country={country_code} | feed_id={feed_id}")
        return True
