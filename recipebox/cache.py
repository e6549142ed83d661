from __future__ import annotations

from datetime import timedelta
from typing import Optional

import redis
from loguru import logger

from .errors import CacheError
from .storage import KeyValueCache

DEFAULT_TIMEOUT = 1.0


class RedisCache(KeyValueCache):
    """Redis backed key-value cache.

    Every Redis failure is raised as :class:`CacheError`, so callers can tell
    an unreachable cache apart from a missing key.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, timeout: float = DEFAULT_TIMEOUT) -> "RedisCache":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.exceptions.RedisError as exc:
            logger.warning("redis get {} failed: {}", key, exc)
            raise CacheError("cache unavailable") from exc

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        try:
            self._client.set(key, value, ex=ttl)
        except redis.exceptions.RedisError as exc:
            logger.warning("redis set {} failed: {}", key, exc)
            raise CacheError("cache unavailable") from exc

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self._client.delete(*keys)
        except redis.exceptions.RedisError as exc:
            logger.warning("redis delete {} failed: {}", keys, exc)
            raise CacheError("cache unavailable") from exc


__all__ = ["RedisCache"]
