"""
Concrete feed types.
"""

from .base import AbstractFeed, DAY_IN_SECONDS, HOUR_IN_SECONDS, WEEK_IN_SECONDS
from .generator import (
    FeedGenerator,
    NavigationMenuFeedGenerator,
    PromotionsFeedGenerator,
    RatingsAndReviewsFeedGenerator,
    ShippingProfilesFeedGenerator,
)
from .writers import AbstractFeedFileWriter, CsvFeedFileWriter, JsonFeedFileWriter


PROMOTIONS = "promotions"
RATINGS_AND_REVIEWS = "ratings_and_reviews"
SHIPPING_PROFILES = "shipping_profiles"
NAVIGATION_MENU = "navigation_menu"


class _FileFeed(AbstractFeed):
    """Feed whose writer and generator classes are declared as attributes."""

    WRITER_CLASS = CsvFeedFileWriter
    GENERATOR_CLASS = FeedGenerator
    HEADER = None

    def create_feed_writer(self) -> AbstractFeedFileWriter:
        return self.WRITER_CLASS(
            self.get_data_stream_name(),
            self.context.settings.feed_base_dir,
            secret_getter=self.get_feed_secret,
            header_row=self.HEADER
        )

    def create_feed_generator(self) -> FeedGenerator:
        return self.GENERATOR_CLASS(
            self.context.scheduler,
            self.feed_writer,
            self.get_data_stream_name(),
            self.events,
            source=self.get_item_source(),
            plugin_name=self.context.settings.plugin_id
        )


class PromotionsFeed(_FileFeed):
    HEADER = ["retailer_id", "title"]
    GENERATOR_CLASS = PromotionsFeedGenerator

    @classmethod
    def get_data_stream_name(cls) -> str:
        return PROMOTIONS

    @classmethod
    def get_feed_type(cls) -> str:
        return "PROMOTIONS"

    @classmethod
    def get_feed_gen_interval(cls) -> int:
        return DAY_IN_SECONDS


class RatingsAndReviewsFeed(_FileFeed):
    HEADER = [
        "aggregator",
        "store.name",
        "store.id",
        "store.storeUrls",
        "review_id",
        "rating",
        "title",
        "content",
        "created_at",
        "reviewer.name",
        "reviewer.reviewerID",
        "reviewer.isAnonymous",
        "product.name",
        "product.url",
        "product.productIdentifiers.skus",
    ]
    GENERATOR_CLASS = RatingsAndReviewsFeedGenerator

    @classmethod
    def get_data_stream_name(cls) -> str:
        return RATINGS_AND_REVIEWS

    @classmethod
    def get_feed_type(cls) -> str:
        return "PRODUCT_RATINGS_AND_REVIEWS"

    @classmethod
    def get_feed_gen_interval(cls) -> int:
        return WEEK_IN_SECONDS


class ShippingProfilesFeed(_FileFeed):
    HEADER = [
        "shipping_profile_id",
        "name",
        "shipping_zones",
        "shipping_rates",
        "applicable_products",
        "applies_to_all_products",
        "applies_to_rest_of_world",
        "is_active",
    ]
    GENERATOR_CLASS = ShippingProfilesFeedGenerator

    @classmethod
    def get_data_stream_name(cls) -> str:
        return SHIPPING_PROFILES

    @classmethod
    def get_feed_type(cls) -> str:
        return "SHIPPING_PROFILES"

    @classmethod
    def get_feed_gen_interval(cls) -> int:
        return HOUR_IN_SECONDS


class NavigationMenuFeed(_FileFeed):
    WRITER_CLASS = JsonFeedFileWriter
    GENERATOR_CLASS = NavigationMenuFeedGenerator

    @classmethod
    def get_data_stream_name(cls) -> str:
        return NAVIGATION_MENU

    @classmethod
    def get_feed_type(cls) -> str:
        return "NAVIGATION_MENU"

    @classmethod
    def get_feed_gen_interval(cls) -> int:
        return DAY_IN_SECONDS
