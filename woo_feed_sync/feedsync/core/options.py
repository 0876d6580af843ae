"""
Option persistence backed by Redis.
"""

import logging
from typing import Dict, Optional

import redis


logger = logging.getLogger(__name__)


class OptionStore:
    """
    Key/value option storage.

    Scalar options are plain Redis strings, map options (such as the
    language feed map) are Redis hashes so single entries can be written
    without rewriting the whole map.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "feedsync:option:"):
        """
        Initialize option store.

        Args:
            redis_client: Redis client (decode_responses=True)
            prefix: Key prefix for every option
        """
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.redis.get(self._key(name))
        if value is None:
            return default
        return value

    def set(self, name: str, value: str) -> None:
        self.redis.set(self._key(name), value)

    def add(self, name: str, value: str) -> bool:
        """
        Store an option only if it does not exist yet.

        Returns:
            True if the value was written, False if the option already existed
        """
        return bool(self.redis.set(self._key(name), value, nx=True))

    def delete(self, name: str) -> None:
        self.redis.delete(self._key(name))

    def get_map(self, name: str) -> Dict[str, str]:
        return self.redis.hgetall(self._key(name)) or {}

    def get_map_value(self, name: str, field: str) -> Optional[str]:
        return self.redis.hget(self._key(name), field)

    def set_map_value(self, name: str, field: str, value: str) -> None:
        """Write one entry of a map option, leaving other entries untouched."""
        self.redis.hset(self._key(name), field, value)
        logger.debug(f"Option map updated | option={name} | field={field}")

    def delete_map_value(self, name: str, field: str) -> None:
        self.redis.hdel(self._key(name), field)
