"""
Feed pipeline wiring: builds the shared context, item sources and feeds.
"""

import logging
from typing import Dict, Optional

import redis

from feedsync.config import Settings
from feedsync.core.catalog_client import CatalogApiClient
from feedsync.core.events import FeedEventEmitter
from feedsync.core.jobs import RedisJobScheduler
from feedsync.core.options import OptionStore
from feedsync.core.woo_client import WooClient

from .adapters import coupon_to_promotion, make_review_mapper, menu_item_to_entry, shipping_zone_to_profile
from .feeds import NAVIGATION_MENU, PROMOTIONS, RATINGS_AND_REVIEWS, SHIPPING_PROFILES
from .country import CountryOverrideFeed, StaticCountryFeedData
from .localization import LanguageOverrideFeed, StaticLanguageFeedData
from .models import FeedContext
from .sources import ItemSource, WooItemSource, WooShippingZoneSource


logger = logging.getLogger(__name__)


def build_woo_client(settings: Settings) -> Optional[WooClient]:
    """WooCommerce client, or None when credentials are not configured."""
    if not settings.woo_configured:
        return None
    return WooClient(
        store_url=settings.woo_store_url,
        consumer_key=settings.woo_consumer_key,
        consumer_secret=settings.woo_consumer_secret
    )


def build_item_sources(settings: Settings, woo_client: Optional[WooClient]) -> Dict[str, ItemSource]:
    """
    Build one item source per feed type.

    Args:
        settings: Application settings
        woo_client: WooCommerce client; without it every feed is empty

    Returns:
        Feed type key -> item source
    """
    if woo_client is None:
        logger.warning("WooCommerce credentials not configured, feeds will be empty")
        return {}

    review_mapper = make_review_mapper(
        store_name=settings.store_name,
        store_id=settings.merchant_settings_id,
        store_urls=[f"{settings.woo_store_url.rstrip('/')}/shop/"]
    )
    return {
        PROMOTIONS: WooItemSource(
            woo_client,
            "/wp-json/wc/v3/coupons",
            coupon_to_promotion,
            params={"status": "publish"}
        ),
        RATINGS_AND_REVIEWS: WooItemSource(
            woo_client,
            "/wp-json/wc/v3/products/reviews",
            review_mapper,
            params={"status": "approved"}
        ),
        SHIPPING_PROFILES: WooShippingZoneSource(woo_client, shipping_zone_to_profile),
        NAVIGATION_MENU: WooItemSource(
            woo_client,
            "/wp-json/wp/v2/menu-items",
            menu_item_to_entry
        ),
    }


def build_feed_context(
    settings: Settings,
    redis_client: redis.Redis,
    woo_client: Optional[WooClient] = None
) -> FeedContext:
    """Build the collaborators shared by every feed."""
    api_factory = None
    if settings.access_token:
        def api_factory() -> CatalogApiClient:
            return CatalogApiClient(
                access_token=settings.access_token,
                base_url=settings.graph_api_url,
                api_version=settings.graph_api_version
            )

    return FeedContext(
        settings=settings,
        options=OptionStore(redis_client),
        events=FeedEventEmitter(redis_client),
        scheduler=RedisJobScheduler(redis_client, lock_ttl=settings.scheduler_lock_ttl),
        api_factory=api_factory,
        sources=build_item_sources(settings, woo_client)
    )


def build_language_override_feed(context: FeedContext) -> Optional[LanguageOverrideFeed]:
    """Language override feed, or None when no language data file is configured."""
    data_file = context.settings.language_override_data_file
    if not data_file:
        return None
    return LanguageOverrideFeed(context, StaticLanguageFeedData.from_file(data_file))


def build_country_override_feed(context: FeedContext) -> Optional[CountryOverrideFeed]:
    """Country override feed, or None when no country data file is configured."""
    data_file = context.settings.country_override_data_file
    if not data_file:
        return None
    return CountryOverrideFeed(context, StaticCountryFeedData.from_file(data_file))
