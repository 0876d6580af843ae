"""
Batch feed generators.
"""

import logging
from typing import Any, Dict, List, Optional

from feedsync.core.events import FeedEventEmitter
from feedsync.core.jobs import JobScheduler

from .sources import ItemSource
from .writers import AbstractFeedFileWriter


logger = logging.getLogger(__name__)


DEFAULT_PLUGIN_NAME = "facebook-for-woocommerce"


def generation_completed_event(feed_type: str) -> str:
    """Name of the action fired after a feed file has been promoted."""
    return f"{feed_type}_feed_generation_completed"


class FeedGenerator:
    """
    Drives one feed run through the scheduler.

    The scheduler calls ``handle_start`` once, then ``run_batch`` with
    increasing batch numbers until it returns False, then ``handle_end``.
    """

    BATCH_SIZE = 1

    def __init__(
        self,
        scheduler: JobScheduler,
        feed_writer: AbstractFeedFileWriter,
        feed_type: str,
        events: FeedEventEmitter,
        source: Optional[ItemSource] = None,
        plugin_name: str = DEFAULT_PLUGIN_NAME
    ):
        """
        Initialize generator and register it with the scheduler.

        Args:
            scheduler: Job scheduler running the batches
            feed_writer: Writer owning the feed files
            feed_type: Feed type key (data stream name)
            events: Event bus for the completion action
            source: Item source; no source means an empty feed
            plugin_name: Integration namespace for job grouping
        """
        self.scheduler = scheduler
        self.feed_writer = feed_writer
        self.feed_type = feed_type
        self.events = events
        self.source = source
        self.plugin_name = plugin_name
        self.scheduler.register(self.get_name(), self)

    def get_name(self) -> str:
        return f"{self.feed_type}_feed_generator"

    def get_plugin_name(self) -> str:
        return self.plugin_name

    def get_batch_size(self) -> int:
        return self.BATCH_SIZE

    def queue_start(self, filters: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """
        Create and dispatch a scheduler job for a new run.

        Returns:
            Job ID, or None if the scheduler refused the dispatch
        """
        job_id = self.scheduler.create_job(self.get_name(), filters or {})
        if not self.scheduler.dispatch(job_id):
            return None
        return job_id

    def handle_start(self) -> None:
        """Prepare the directory and an empty temporary file."""
        self.feed_writer.create_files_to_protect_feed_directory()
        self.feed_writer.prepare_temporary_feed_file().close()

    def get_items_for_batch(self, batch_number: int, filters: Dict[str, Any]) -> List[Any]:
        if self.source is None:
            return []
        return self.source.get_items(batch_number, self.get_batch_size(), filters)

    def process_items(self, items: List[Any], filters: Dict[str, Any]) -> None:
        """Process a batch and append it to the temporary file in one write."""
        for item in items:
            self.process_item(item, filters)
        self.feed_writer.write_temp_feed_file(items)

    def process_item(self, item: Any, filters: Dict[str, Any]) -> None:
        pass

    def run_batch(self, batch_number: int, filters: Dict[str, Any]) -> bool:
        """
        Run one scheduler step.

        Returns:
            True if a batch was written and the next batch should run
        """
        items = self.get_items_for_batch(batch_number, filters)
        if not items:
            logger.debug(f"{self.get_name()}: batch {batch_number} empty, finishing")
            return False
        self.process_items(items, filters)
        logger.debug(f"{self.get_name()}: batch {batch_number} wrote {len(items)} item(s)")
        return True

    def handle_end(self) -> None:
        """Promote the temporary file and fire the completion action."""
        self.feed_writer.promote_temp_file()
        self.events.emit(generation_completed_event(self.feed_type), feed_type=self.feed_type)


class PromotionsFeedGenerator(FeedGenerator):
    pass


class RatingsAndReviewsFeedGenerator(FeedGenerator):
    pass


class ShippingProfilesFeedGenerator(FeedGenerator):
    BATCH_SIZE = 100


class NavigationMenuFeedGenerator(FeedGenerator):
    """Returns the whole navigation menu as a single batch per run."""

    def get_items_for_batch(self, batch_number: int, filters: Dict[str, Any]) -> List[Any]:
        # Only batch 1 carries data.
        if batch_number > 1 or self.source is None:
            return []
        return self.source.get_all_items(filters)
