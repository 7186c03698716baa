"""
Redis-backed key-value store for sessions shared across workers.
"""

from __future__ import annotations

import logging
from typing import Optional

from redis import asyncio as redis_async
from redis.exceptions import RedisError

from session_service.clients.kv_store import StoreUnavailableError

logger = logging.getLogger(__name__)


class RedisStore:
    """Thin async wrapper translating redis failures into store errors."""

    def __init__(self, client: redis_async.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float = 5.0) -> "RedisStore":
        """Build a store from a ``redis://`` or ``rediss://`` URL.

        Connections are opened lazily on first command, so a cold Redis does not
        block application start-up.
        """
        client = redis_async.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=False,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[bytes]:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            logger.error("Redis GET failed for %s: %s", key.split(":", 1)[0], exc)
            raise StoreUnavailableError("Session store read failed.") from exc
        if value is None:
            return None
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)

    async def set(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        try:
            if ttl_seconds is not None and ttl_seconds > 0:
                await self._client.set(key, value, ex=ttl_seconds)
            else:
                await self._client.set(key, value)
        except RedisError as exc:
            logger.error("Redis SET failed for %s: %s", key.split(":", 1)[0], exc)
            raise StoreUnavailableError("Session store write failed.") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise StoreUnavailableError("Session store delete failed.") from exc

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["RedisStore"]
