"""
Language override feeds.

One CSV file per store language carries the translated fields of each
product. Every language maps to its own remote feed, found by name or
created on first upload, and the mapping is kept in the option store.
"""

import json
import time
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from feedsync.core.catalog_client import CatalogApiClient, RemoteApiError
from feedsync.core.jobs import JobScheduler
from feedsync.core.events import FeedEventEmitter

from .base import DAY_IN_SECONDS, FeedSchedule, get_or_create_feed_secret
from .errors import UnsupportedLanguageError
from .generator import FeedGenerator, generation_completed_event
from .locales import convert_to_facebook_language_code, convert_to_facebook_override_value
from .models import FeedContext
from .writers import CsvFeedFileWriter


logger = logging.getLogger(__name__)


LANGUAGE_OVERRIDE = "language_override"

OPTION_LANGUAGE_FEED_IDS = "language_feed_ids"

DEFAULT_COLUMNS = ["id", "override"]


class LanguageFeedData(ABC):
    """Translated product data exposed by a localization plugin."""

    @abstractmethod
    def has_active_localization_plugin(self) -> bool:
        pass

    @abstractmethod
    def get_available_languages(self) -> List[str]:
        """Language codes other than the default language."""

    @abstractmethod
    def get_language_csv_data(self, language_code: str, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """
        Get one page of translated rows.

        Returns:
            Dict with 'columns' (header) and 'data' (column-keyed rows)
        """

    def get_language_columns(self, language_code: str) -> List[str]:
        result = self.get_language_csv_data(language_code, 1, 0)
        return result.get("columns") or list(DEFAULT_COLUMNS)


class StaticLanguageFeedData(LanguageFeedData):
    """
    Language data loaded from a mapping or a JSON file.

    Expected shape::

        {"es_ES": {"columns": ["id", "title"], "rows": [{"id": "1", "title": "..."}]}}
    """

    def __init__(self, languages: Dict[str, Dict[str, Any]]):
        self.languages = languages

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticLanguageFeedData":
        with open(path, "r", encoding="utf-8") as f:
            return cls(json.load(f))

    def has_active_localization_plugin(self) -> bool:
        return bool(self.languages)

    def get_available_languages(self) -> List[str]:
        return list(self.languages.keys())

    def get_language_csv_data(self, language_code: str, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        entry = self.languages.get(language_code) or {}
        rows = entry.get("rows") or []
        return {
            "columns": entry.get("columns") or list(DEFAULT_COLUMNS),
            "data": rows[offset:offset + limit],
        }


class LanguageFeedManagement:
    """Maps language codes to remote feed IDs and builds language file names."""

    def __init__(self, context: FeedContext):
        self.context = context
        self.options = context.options
        self.events = context.events
        self._api: Optional[CatalogApiClient] = None

    def get_api(self) -> Optional[CatalogApiClient]:
        if self._api is None and self.context.api_factory is not None:
            self._api = self.context.api_factory()
        return self._api

    def store_language_feed_id(self, language_code: str, feed_id: str) -> None:
        self.options.set_map_value(OPTION_LANGUAGE_FEED_IDS, language_code, feed_id)

    def get_stored_language_feed_id(self, language_code: str) -> Optional[str]:
        return self.options.get_map_value(OPTION_LANGUAGE_FEED_IDS, language_code)

    def generate_language_feed_filename(
        self,
        language_code: str,
        for_remote_api: bool = False,
        is_temp: bool = False
    ) -> str:
        """
        Build the file name of a language feed.

        Public and remote names use the normalized code, the temporary name
        keeps the raw code.
        """
        if is_temp:
            file_name = f"facebook_language_feed_temp_{language_code}.csv"
            return self.events.apply_filters(
                "language_override_temp_feed_file_name", file_name, language_code
            )

        file_name = f"facebook_language_feed_{convert_to_facebook_language_code(language_code)}.csv"
        return self.events.apply_filters(
            "language_override_feed_file_name", file_name, language_code
        )

    def generate_language_feed_name(self, language_code: str) -> str:
        fb_language_code = convert_to_facebook_language_code(language_code)
        store_name = self.context.settings.store_name
        return f"{store_name} Language Override Feed ({fb_language_code.upper()})"

    def invalidate_language_feed_id(self, language_code: str) -> None:
        """Forget the stored feed ID of a language so the next lookup resolves it again."""
        self.options.delete_map_value(OPTION_LANGUAGE_FEED_IDS, language_code)
        logger.info(f"Language feed ID invalidated | language={language_code}")

    def retrieve_or_create_language_feed_id(self, language_code: str) -> str:
        """
        Get the remote feed of a language: the stored ID, else found by name,
        else created.

        Never raises; any remote failure is logged and reported as ''.

        Returns:
            Feed ID, or '' if the catalog is not configured or the API failed
        """
        stored = self.get_stored_language_feed_id(language_code)
        if stored:
            return stored

        catalog_id = self.context.get_product_catalog_id()
        if not catalog_id:
            logger.warning("Language feed: no product catalog ID configured")
            return ""
        try:
            api = self.get_api()
        except Exception as e:
            logger.error(f"Language feed: could not build the catalog API client: {e}")
            return ""
        if api is None:
            logger.warning("Language feed: catalog API not configured")
            return ""

        feed_id = self._request_and_filter_language_feed_id(language_code, catalog_id)
        if feed_id:
            self.store_language_feed_id(language_code, feed_id)
            logger.debug(f"Language Feed: feed_id = {feed_id}, queried and selected from the catalog API.")
            return feed_id

        feed_id = self._create_language_feed_id(language_code, catalog_id)
        if feed_id:
            self.store_language_feed_id(language_code, feed_id)
            logger.debug(f"Language Feed: feed_id = {feed_id}, created a new feed via the catalog API.")
            return feed_id

        return ""

    def _request_and_filter_language_feed_id(self, language_code: str, catalog_id: str) -> str:
        try:
            feed_nodes = self.get_api().read_feeds(catalog_id)
        except Exception as e:
            logger.error(f"There was an error trying to get feed nodes for catalog: {e}")
            return ""

        expected_name = self.generate_language_feed_name(language_code)
        for node in feed_nodes:
            try:
                node_id = str(node["id"])
                metadata = self.get_api().read_feed(node_id)
            except Exception as e:
                logger.error(f"There was an error trying to get feed metadata: {e}")
                continue
            if isinstance(metadata, dict) and metadata.get("name") == expected_name:
                return node_id
        return ""

    def _create_language_feed_id(self, language_code: str, catalog_id: str) -> str:
        fb_language_code = convert_to_facebook_language_code(language_code)
        try:
            feed_data = {
                "name": self.generate_language_feed_name(language_code),
                "file_name": f"language_override_{fb_language_code}.csv",
                "override_type": "language",
                "override_value": convert_to_facebook_override_value(fb_language_code),
            }
            response = self.get_api().create_feed(catalog_id, feed_data)
            return str(response.get("id") or "")
        except UnsupportedLanguageError as e:
            logger.warning(f"Language override feed not created: {e}")
            return ""
        except Exception as e:
            logger.error(f"Could not create language override feed for {language_code}: {e}")
            return ""

    def get_upload_status(self, languages: List[str]) -> Dict[str, Dict[str, Any]]:
        """Report per language whether its remote feed exists and is readable."""
        status: Dict[str, Dict[str, Any]] = {}
        for language_code in languages:
            feed_id = self.get_stored_language_feed_id(language_code)
            if not feed_id:
                status[language_code] = {"feed_id": None, "status": "not_created"}
                continue
            api = self.get_api()
            if api is None:
                status[language_code] = {"feed_id": feed_id, "status": "error", "error": "catalog API not configured"}
                continue
            try:
                data = api.read_feed(feed_id)
                status[language_code] = {"feed_id": feed_id, "status": "active", "data": data}
            except RemoteApiError as e:
                status[language_code] = {"feed_id": feed_id, "status": "error", "error": str(e)}
        return status


class LanguageOverrideFeedWriter(CsvFeedFileWriter):
    """CSV writer with language-specific file names and a per-language header."""

    def __init__(
        self,
        language_code: str,
        base_dir: Union[str, Path],
        management: LanguageFeedManagement,
        header_row: Optional[List[str]] = None,
        **kwargs: Any
    ):
        self.language_code = language_code
        self.management = management
        super().__init__(LANGUAGE_OVERRIDE, base_dir, header_row=header_row, **kwargs)

    def get_file_name(self) -> str:
        return self.management.generate_language_feed_filename(self.language_code)

    def get_temp_file_name(self) -> str:
        return self.management.generate_language_feed_filename(self.language_code, is_temp=True)


class LanguageOverrideFeedGenerator(FeedGenerator):
    """Generates the override file of a single language."""

    BATCH_SIZE = 100

    def __init__(
        self,
        scheduler: JobScheduler,
        feed_writer: LanguageOverrideFeedWriter,
        feed_type: str,
        events: FeedEventEmitter,
        language_feed_data: LanguageFeedData,
        language_code: str,
        plugin_name: str = "facebook-for-woocommerce"
    ):
        self.language_feed_data = language_feed_data
        self.language_code = language_code
        super().__init__(scheduler, feed_writer, feed_type, events, plugin_name=plugin_name)

    def get_name(self) -> str:
        return f"{self.feed_type}_{self.language_code}_feed_generator"

    def get_batch_size(self) -> int:
        return int(self.events.apply_filters("language_override_feed_batch_size", self.BATCH_SIZE))

    def handle_start(self) -> None:
        self.feed_writer.header_row = self.language_feed_data.get_language_columns(self.language_code)
        super().handle_start()

    def get_items_for_batch(self, batch_number: int, filters: Dict[str, Any]) -> List[Any]:
        batch_size = self.get_batch_size()
        offset = (max(1, batch_number) - 1) * batch_size
        result = self.language_feed_data.get_language_csv_data(self.language_code, batch_size, offset)
        rows = result.get("data") or []
        if not rows:
            return []

        columns = result.get("columns") or list(DEFAULT_COLUMNS)
        return [[row.get(column, "") for column in columns] for row in rows]

    def handle_end(self) -> None:
        self.feed_writer.promote_temp_file()
        self.events.emit(
            generation_completed_event(self.feed_type),
            feed_type=self.feed_type,
            language_code=self.language_code
        )


class LanguageOverrideFeed:
    """Language override feeds for every available store language."""

    def __init__(
        self,
        context: FeedContext,
        language_feed_data: LanguageFeedData,
        management: Optional[LanguageFeedManagement] = None
    ):
        self.context = context
        self.events = context.events
        self.language_feed_data = language_feed_data
        self.management = management or LanguageFeedManagement(context)
        self._writers: Dict[str, LanguageOverrideFeedWriter] = {}
        self._generators: Dict[str, LanguageOverrideFeedGenerator] = {}

        self.events.subscribe(
            generation_completed_event(LANGUAGE_OVERRIDE),
            self.send_request_to_upload_feed
        )

    @classmethod
    def get_data_stream_name(cls) -> str:
        return LANGUAGE_OVERRIDE

    @classmethod
    def get_feed_type(cls) -> str:
        return "LANGUAGE_OVERRIDE"

    @classmethod
    def get_feed_gen_interval(cls) -> int:
        return DAY_IN_SECONDS

    def get_feed_writer(self, language_code: str) -> LanguageOverrideFeedWriter:
        if language_code not in self._writers:
            self._writers[language_code] = LanguageOverrideFeedWriter(
                language_code,
                self.context.settings.feed_base_dir,
                self.management
            )
        return self._writers[language_code]

    def get_feed_generator(self, language_code: str) -> LanguageOverrideFeedGenerator:
        if language_code not in self._generators:
            self._generators[language_code] = LanguageOverrideFeedGenerator(
                self.context.scheduler,
                self.get_feed_writer(language_code),
                LANGUAGE_OVERRIDE,
                self.events,
                self.language_feed_data,
                language_code,
                plugin_name=self.context.settings.plugin_id
            )
        return self._generators[language_code]

    def load_generators(self) -> List[LanguageOverrideFeedGenerator]:
        """Build (and register) the generator of every available language."""
        return [
            self.get_feed_generator(language_code)
            for language_code in self.language_feed_data.get_available_languages()
        ]

    def detach(self) -> None:
        self.events.unsubscribe(
            generation_completed_event(LANGUAGE_OVERRIDE),
            self.send_request_to_upload_feed
        )

    def should_skip_feed(self) -> bool:
        if not self.context.get_integration_id():
            return True
        if not self.language_feed_data.has_active_localization_plugin():
            logger.info("Language override feed generation skipped: No active localization plugin found.")
            return True
        return False

    def regenerate_feed(self) -> Dict[str, Optional[str]]:
        """
        Queue one run per available language.

        Returns:
            Language code -> job ID (None when the run was not queued)
        """
        if self.should_skip_feed():
            return {}
        return {
            generator.language_code: generator.queue_start()
            for generator in self.load_generators()
        }

    def get_schedule(self) -> FeedSchedule:
        return FeedSchedule(self.context.options, LANGUAGE_OVERRIDE, self.get_feed_gen_interval())

    def run_scheduled_generation(self, now: Optional[float] = None) -> Dict[str, Optional[str]]:
        """Queue every language when due; a skipped feed loses its schedule."""
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
        return get_or_create_feed_secret(self.context.options, LANGUAGE_OVERRIDE)

    def get_language_feed_url(self, language_code: str) -> str:
        base_url = self.context.settings.feed_base_url.rstrip("/")
        file_name = self.get_feed_writer(language_code).get_file_name()
        return f"{base_url}/{LANGUAGE_OVERRIDE}/{file_name}?secret={self.get_feed_secret()}"

    def find_language_by_file_name(self, file_name: str) -> Optional[str]:
        for language_code in self.language_feed_data.get_available_languages():
            if self.get_feed_writer(language_code).get_file_name() == file_name:
                return language_code
        return None

    def send_request_to_upload_feed(self, language_code: Optional[str] = None, **payload: Any) -> None:
        if language_code:
            self.upload_single_language_feed(language_code)
        else:
            self.upload_language_override_feeds()

    def upload_language_override_feeds(self) -> None:
        if not self.language_feed_data.has_active_localization_plugin():
            return
        for language_code in self.language_feed_data.get_available_languages():
            self.upload_single_language_feed(language_code)

    def upload_single_language_feed(self, language_code: str) -> bool:
        """
        Ask the catalog to fetch the file of one language.

        Returns:
            True if the upload request was accepted
        """
        feed_id = self.management.retrieve_or_create_language_feed_id(language_code)
        if not feed_id:
            logger.error(f"Language override feed upload failed: no feed ID for {language_code}")
            return False

        url = self.get_language_feed_url(language_code)
        try:
            self.management.get_api().create_upload(feed_id, {"url": url})
        except RemoteApiError as e:
            logger.error(f"Language override feed upload failed for {language_code}: {e}")
            if e.status_code == 404:
                self.management.invalidate_language_feed_id(language_code)
            return False
        except Exception as e:
            logger.error(f"Language override feed upload failed for {language_code}: {e}")
            return False

        logger.info(f"Language override feed uploaded | language={language_code} | feed_id={feed_id}")
        return True

    def get_upload_status(self) -> Dict[str, Dict[str, Any]]:
        return self.management.get_upload_status(self.language_feed_data.get_available_languages())
