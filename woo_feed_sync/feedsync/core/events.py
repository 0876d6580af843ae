"""
Event and filter hooks for the feed pipeline, mirrored to Redis Streams.
"""

import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import redis


logger = logging.getLogger(__name__)


class FeedEventEmitter:
    """
    In-process event bus with named actions and value filters.

    Actions (``emit``) notify listeners in subscription order. Filters
    (``apply_filters``) pass a value through every registered callback and
    return the result. When a Redis client is given, each action is also
    appended to the stream ``feed:{feed_type}:events`` for observers
    outside the process.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, stream_maxlen: int = 1000):
        """
        Initialize event emitter.

        Args:
            redis_client: Optional Redis client for stream mirroring
            stream_maxlen: Approximate max length of each event stream
        """
        self.redis = redis_client
        self.stream_maxlen = stream_maxlen
        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self._filters: Dict[str, List[Callable[..., Any]]] = defaultdict(list)

    def subscribe(self, event: str, listener: Callable[..., Any]) -> None:
        """Register a listener for an action."""
        self._listeners[event].append(listener)

    def unsubscribe(self, event: str, listener: Callable[..., Any]) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def emit(self, event: str, feed_type: Optional[str] = None, **payload: Any) -> None:
        """
        Fire an action.

        Args:
            event: Action name, e.g. ``promotions_feed_generation_completed``
            feed_type: Feed type key, used for the Redis stream name
            **payload: Keyword arguments passed to every listener

        Listeners run first; a failure of the stream mirror is logged and
        never reaches the caller.
        """
        listeners = list(self._listeners.get(event, []))
        logger.debug(f"Emitting event {event} to {len(listeners)} listener(s)")
        for listener in listeners:
            listener(**payload)

        if self.redis is not None and feed_type:
            self._mirror(event, feed_type, payload)

    def _mirror(self, event: str, feed_type: str, payload: Dict[str, Any]) -> None:
        try:
            self.redis.xadd(
                f"feed:{feed_type}:events",
                {
                    "event": event,
                    "data": json.dumps({
                        "ts": datetime.utcnow().isoformat(),
                        **payload
                    }, default=str)
                },
                maxlen=self.stream_maxlen,
                approximate=True
            )
        except redis.RedisError as e:
            logger.warning(f"Could not mirror event {event} to Redis stream: {e}")

    def add_filter(self, name: str, callback: Callable[..., Any]) -> None:
        """Register a filter callback ``callback(value, *args) -> value``."""
        self._filters[name].append(callback)

    def remove_filter(self, name: str, callback: Callable[..., Any]) -> None:
        if callback in self._filters.get(name, []):
            self._filters[name].remove(callback)

    def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        """Pass value through every filter registered under name."""
        for callback in self._filters.get(name, []):
            value = callback(value, *args)
        return value
