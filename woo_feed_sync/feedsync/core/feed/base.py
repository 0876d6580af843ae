"""
Base class for scheduled data feeds.
"""

import time
import secrets
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from feedsync.core.catalog_client import CatalogApiClient, RemoteApiError
from feedsync.core.options import OptionStore
from feedsync.core.security import mask_secret

from .generator import FeedGenerator, generation_completed_event
from .models import FeedContext
from .writers import AbstractFeedFileWriter


logger = logging.getLogger(__name__)


DAY_IN_SECONDS = 86400
WEEK_IN_SECONDS = 7 * DAY_IN_SECONDS
HOUR_IN_SECONDS = 3600

# Option name prefix for the secret embedded in public file names
OPTION_FEED_URL_SECRET = "feed_url_secret_"

# Option name prefix for the next scheduled regeneration (Unix time)
OPTION_FEED_NEXT_RUN = "feed_next_run_"


def get_or_create_feed_secret(options: OptionStore, data_stream_name: str) -> str:
    """
    Get the secret of a feed, creating it on first use.

    The secret never changes once stored; concurrent first calls all
    return the value that won the set-if-absent.
    """
    option_name = OPTION_FEED_URL_SECRET + data_stream_name
    secret = options.get(option_name)
    if secret:
        return secret

    if options.add(option_name, secrets.token_hex(16)):
        logger.info(f"Feed secret created | feed={data_stream_name} | secret={mask_secret(options.get(option_name))}")
    return options.get(option_name, "")


class FeedSchedule:
    """
    Recurring regeneration of one feed.

    The schedule is a single option holding the Unix time of the next run.
    Scheduling an unscheduled feed makes it due immediately; every run
    moves the next run ``interval`` seconds past the time it was started.
    """

    def __init__(self, options: OptionStore, data_stream_name: str, interval: int):
        self.options = options
        self.data_stream_name = data_stream_name
        self.interval = interval

    @property
    def option_name(self) -> str:
        return OPTION_FEED_NEXT_RUN + self.data_stream_name

    def get_next_run(self) -> Optional[float]:
        value = self.options.get(self.option_name)
        return float(value) if value else None

    def is_scheduled(self) -> bool:
        return self.get_next_run() is not None

    def schedule(self, now: float) -> bool:
        """
        Schedule the feed unless it already is.

        Returns:
            True if a new schedule was created
        """
        created = self.options.add(self.option_name, str(now))
        if created:
            logger.debug(f"Feed generation scheduled | feed={self.data_stream_name} | interval={self.interval}")
        return created

    def unschedule(self) -> None:
        if self.is_scheduled():
            self.options.delete(self.option_name)
            logger.debug(f"Feed generation unscheduled | feed={self.data_stream_name}")

    def is_due(self, now: float) -> bool:
        next_run = self.get_next_run()
        return next_run is not None and next_run <= now

    def advance(self, now: float) -> None:
        self.options.set(self.option_name, str(now + self.interval))


class AbstractFeed(ABC):
    """
    One feed type: its secret, its files and its regeneration.

    Subclasses define the data stream name, the remote feed type and build
    their writer and generator.
    """

    def __init__(self, context: FeedContext):
        self.context = context
        self.options = context.options
        self.events = context.events
        self._api: Optional[CatalogApiClient] = None

        self.feed_writer = self.create_feed_writer()
        self.feed_generator = self.create_feed_generator()

        self.events.subscribe(
            generation_completed_event(self.get_data_stream_name()),
            self.send_request_to_upload_feed
        )

    @classmethod
    @abstractmethod
    def get_data_stream_name(cls) -> str:
        """Feed type key, e.g. ``promotions``."""

    @classmethod
    @abstractmethod
    def get_feed_type(cls) -> str:
        """Remote feed type constant, e.g. ``PROMOTIONS``."""

    @classmethod
    def get_feed_gen_interval(cls) -> int:
        """Seconds between scheduled regenerations."""
        return DAY_IN_SECONDS

    @abstractmethod
    def create_feed_writer(self) -> AbstractFeedFileWriter:
        pass

    @abstractmethod
    def create_feed_generator(self) -> FeedGenerator:
        pass

    def get_item_source(self):
        return self.context.sources.get(self.get_data_stream_name())

    def detach(self) -> None:
        """Stop listening to completion events."""
        self.events.unsubscribe(
            generation_completed_event(self.get_data_stream_name()),
            self.send_request_to_upload_feed
        )

    def regenerate_feed(self, filters: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """
        Queue a new generation run.

        Returns:
            Job ID, or None if a run of this feed is already in flight
        """
        return self.feed_generator.queue_start(filters)

    def get_schedule(self) -> FeedSchedule:
        return FeedSchedule(self.options, self.get_data_stream_name(), self.get_feed_gen_interval())

    def schedule_feed_generation(self, now: Optional[float] = None) -> None:
        """Start regenerating this feed every ``get_feed_gen_interval()`` seconds."""
        self.get_schedule().schedule(time.time() if now is None else now)

    def unschedule_feed_generation(self) -> None:
        self.get_schedule().unschedule()

    def run_scheduled_generation(self, now: Optional[float] = None) -> Optional[str]:
        """
        Queue a regeneration if the schedule says one is due.

        Returns:
            Job ID, or None if nothing was due or a run is already in flight
        """
        now = time.time() if now is None else now
        schedule = self.get_schedule()
        if not schedule.is_due(now):
            return None
        schedule.advance(now)
        return self.regenerate_feed()

    def get_feed_secret(self) -> str:
        return get_or_create_feed_secret(self.options, self.get_data_stream_name())

    def get_feed_data_url(self) -> str:
        base_url = self.context.settings.feed_base_url.rstrip("/")
        return f"{base_url}/{self.get_data_stream_name()}/{self.feed_writer.get_file_name()}"

    def get_api(self) -> Optional[CatalogApiClient]:
        if self._api is None and self.context.api_factory is not None:
            self._api = self.context.api_factory()
        return self._api

    def send_request_to_upload_feed(self, **payload: Any) -> None:
        """Ask the catalog to fetch the freshly promoted file."""
        name = self.get_data_stream_name()
        integration_id = self.context.get_integration_id()
        api = self.get_api()
        if not integration_id or api is None:
            logger.info(f"{name} feed: upload skipped, catalog integration not configured")
            return

        data = {
            "url": self.get_feed_data_url(),
            "feed_type": self.get_feed_type(),
            "update_type": "CREATE",
        }
        try:
            api.create_common_data_feed_upload(integration_id, data)
            logger.info(f"{name} feed: upload requested")
        except RemoteApiError as e:
            logger.error(f"{name} feed: Failed to create feed upload request: {e}")
