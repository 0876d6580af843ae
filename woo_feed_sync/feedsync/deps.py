"""
Dependency injection for FastAPI and the feed worker.
"""

from typing import Optional
import redis

from feedsync.config import get_settings
from feedsync.core.feed.country import CountryOverrideFeed
from feedsync.core.feed.localization import LanguageOverrideFeed
from feedsync.core.feed.manager import FeedManager
from feedsync.core.feed.models import FeedContext
from feedsync.core.feed.service import (
    build_country_override_feed,
    build_feed_context,
    build_language_override_feed,
    build_woo_client,
)


_redis_client: Optional[redis.Redis] = None
_feed_context: Optional[FeedContext] = None
_feed_manager: Optional[FeedManager] = None
_language_feed: Optional[LanguageOverrideFeed] = None
_language_feed_loaded = False
_country_feed: Optional[CountryOverrideFeed] = None
_country_feed_loaded = False


def get_redis() -> redis.Redis:
    """Get Redis client (singleton) with lazy connection."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = redis.Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=1.0,
            socket_timeout=3.0,
            retry_on_timeout=True,
            health_check_interval=30,
            socket_keepalive=True
        )
    return _redis_client


def close_redis():
    """Close Redis connection."""
    global _redis_client
    if _redis_client:
        _redis_client.close()
        _redis_client = None


def get_feed_context() -> FeedContext:
    """Shared feed context (singleton)."""
    global _feed_context
    if _feed_context is None:
        settings = get_settings()
        _feed_context = build_feed_context(settings, get_redis(), build_woo_client(settings))
    return _feed_context


def get_feed_manager() -> FeedManager:
    """Feed registry (singleton)."""
    global _feed_manager
    if _feed_manager is None:
        _feed_manager = FeedManager(get_feed_context())
    return _feed_manager


def get_language_override_feed() -> Optional[LanguageOverrideFeed]:
    """Language override feed, or None when not configured."""
    global _language_feed, _language_feed_loaded
    if not _language_feed_loaded:
        _language_feed = build_language_override_feed(get_feed_context())
        _language_feed_loaded = True
    return _language_feed


def get_country_override_feed() -> Optional[CountryOverrideFeed]:
    """Country override feed, or None when not configured."""
    global _country_feed, _country_feed_loaded
    if not _country_feed_loaded:
        _country_feed = build_country_override_feed(get_feed_context())
        _country_feed_loaded = True
    return _country_feed
