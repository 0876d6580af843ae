"""
Registry of feed types.
"""

import time
import logging
from typing import Any, Dict, List, Optional

from .base import AbstractFeed
from .errors import InvalidFeedTypeError
from .feeds import (
    NAVIGATION_MENU,
    PROMOTIONS,
    RATINGS_AND_REVIEWS,
    SHIPPING_PROFILES,
    NavigationMenuFeed,
    PromotionsFeed,
    RatingsAndReviewsFeed,
    ShippingProfilesFeed,
)
from .models import FeedContext


logger = logging.getLogger(__name__)


class FeedManager:
    """
    Creates, memoizes and drives the feed of every active type.

    Instances are built lazily on first access and kept until
    ``clear_cache`` is called.
    """

    PROMOTIONS = PROMOTIONS
    RATINGS_AND_REVIEWS = RATINGS_AND_REVIEWS
    SHIPPING_PROFILES = SHIPPING_PROFILES
    NAVIGATION_MENU = NAVIGATION_MENU

    FEED_CLASSES = {
        PROMOTIONS: PromotionsFeed,
        RATINGS_AND_REVIEWS: RatingsAndReviewsFeed,
        SHIPPING_PROFILES: ShippingProfilesFeed,
        NAVIGATION_MENU: NavigationMenuFeed,
    }

    def __init__(self, context: FeedContext):
        self.context = context
        self._feed_instances: Dict[str, AbstractFeed] = {}

    @staticmethod
    def get_active_feed_types() -> List[str]:
        return [
            PROMOTIONS,
            RATINGS_AND_REVIEWS,
            SHIPPING_PROFILES,
            NAVIGATION_MENU,
        ]

    def create_feed(self, feed_type: str) -> AbstractFeed:
        """
        Build a new feed instance.

        Raises:
            InvalidFeedTypeError: If the type is not registered
        """
        feed_class = self.FEED_CLASSES.get(feed_type)
        if feed_class is None:
            raise InvalidFeedTypeError(feed_type)
        return feed_class(self.context)

    def get_feed_instance(self, feed_type: str) -> AbstractFeed:
        if feed_type not in self._feed_instances:
            self._feed_instances[feed_type] = self.create_feed(feed_type)
        return self._feed_instances[feed_type]

    def load_all(self) -> List[AbstractFeed]:
        """Instantiate every active feed (registers their generators)."""
        return [self.get_feed_instance(feed_type) for feed_type in self.get_active_feed_types()]

    def run_all_feed_uploads(self) -> Dict[str, Dict[str, Any]]:
        """
        Queue a regeneration of every active feed.

        A failure of one feed is logged and does not stop the others.

        Returns:
            Per feed type: status (queued, skipped, failed), job_id, error
        """
        results: Dict[str, Dict[str, Any]] = {}
        for feed_type in self.get_active_feed_types():
            try:
                job_id = self.get_feed_instance(feed_type).regenerate_feed()
            except Exception as e:
                logger.exception(f"Failed to queue {feed_type} feed regeneration")
                results[feed_type] = {"status": "failed", "job_id": None, "error": str(e)}
                continue

            status = "queued" if job_id else "skipped"
            results[feed_type] = {"status": status, "job_id": job_id, "error": None}
            logger.info(f"Feed regeneration {status} | feed_type={feed_type} | job_id={job_id}")
        return results

    def run_scheduled_feeds(self, now: Optional[float] = None) -> Dict[str, Dict[str, Any]]:
        """
        Make sure every active feed is scheduled and queue the ones that are due.

        Returns:
            Per due feed type: status (queued, skipped, failed), job_id, error
        """
        now = time.time() if now is None else now
        results: Dict[str, Dict[str, Any]] = {}
        for feed_type in self.get_active_feed_types():
            try:
                feed = self.get_feed_instance(feed_type)
                feed.schedule_feed_generation(now)
                if not feed.get_schedule().is_due(now):
                    continue
                job_id = feed.run_scheduled_generation(now)
            except Exception as e:
                logger.exception(f"Scheduled {feed_type} feed regeneration failed")
                results[feed_type] = {"status": "failed", "job_id": None, "error": str(e)}
                continue

            status = "queued" if job_id else "skipped"
            results[feed_type] = {"status": status, "job_id": job_id, "error": None}
            logger.info(f"Scheduled feed regeneration {status} | feed_type={feed_type} | job_id={job_id}")
        return results

    def get_feed_secret(self, feed_type: str) -> str:
        return self.get_feed_instance(feed_type).get_feed_secret()

    def clear_cache(self) -> None:
        """Drop memoized instances and their event subscriptions."""
        for feed in self._feed_instances.values():
            feed.detach()
        self._feed_instances = {}
