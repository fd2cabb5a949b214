"""
Redis cache layer
=================
Two pieces, both shared by the price feed tools:

  1. CacheStore                              : JSON get / set / set-with-expiry over Redis
  2. with_cache(store, key, ttl, producer)   : cache-aside: return the cached value,
                                                or run producer() and store its result

Connection lifecycle:
  - The process bootstrap builds ONE CacheStore and injects it everywhere.
  - The Redis client is created lazily on first use and confirmed with PING.
  - After close() or a dropped connection the next call reconnects.
  - Connection failures surface as CacheUnavailable: never swallowed.

Known limitation: two concurrent misses on the same key both run the producer
and both write; last write wins. No locking is attempted.
"""

import json
import os
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from market_tools.errors import CacheUnavailable

DEFAULT_REDIS_URL = "redis://localhost:2023"
DEFAULT_TTL_SECONDS = 24 * 60 * 60

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class CacheStore:
    """JSON-valued key/value store backed by redis.asyncio."""

    def __init__(self, url: Optional[str] = None, client: Any = None, socket_timeout: Optional[float] = None):
        self.url = url or os.getenv("REDIS_URL", DEFAULT_REDIS_URL)
        self.socket_timeout = socket_timeout or float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))
        # A pre-built client (tests) is treated as already connected.
        self._client = client
        self._connected = client is not None

    async def _connection(self):
        if self._client is not None and self._connected:
            return self._client

        if self._client is None:
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
            )
        try:
            await self._client.ping()
        except _CONNECTION_ERRORS as e:
            await self._drop()
            raise CacheUnavailable(f"Could not connect to Redis at {self.url}: {e}") from e

        self._connected = True
        return self._client

    async def _drop(self) -> None:
        client, self._client, self._connected = self._client, None, False
        if client is not None:
            try:
                await client.aclose()
            except _CONNECTION_ERRORS:
                pass  # already gone

    async def _run(self, command: str, *args, **kwargs):
        client = await self._connection()
        try:
            return await getattr(client, command)(*args, **kwargs)
        except _CONNECTION_ERRORS as e:
            await self._drop()
            raise CacheUnavailable(f"Redis {command} failed: {e}") from e

    async def get(self, key: str) -> Any:
        """Returns the decoded payload, or None when the key is absent, expired, or not JSON."""
        raw = await self._run("get", key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            # Not written by this store; the next set overwrites it.
            return None

    async def set(self, key: str, payload: Any) -> None:
        """Unconditional overwrite, no expiry."""
        await self._run("set", key, json.dumps(payload))

    async def set_with_expiry(self, key: str, payload: Any, ttl_seconds: int) -> None:
        await self._run("set", key, json.dumps(payload), ex=int(ttl_seconds))

    async def ping(self) -> bool:
        try:
            await self._run("ping")
        except CacheUnavailable:
            return False
        return True

    async def close(self) -> None:
        await self._drop()


async def with_cache(
    store: CacheStore,
    key: str,
    ttl_seconds: int,
    producer: Callable[[], Awaitable[Any]],
) -> Any:
    """
    Cache-aside lookup.

    A hit returns the stored value and producer is never awaited. A miss runs
    producer(), stores its value with ttl_seconds, and returns it. Errors from
    either side propagate unchanged: no retry here.
    """
    cached = await store.get(key)
    if cached is not None:
        return cached

    value = await producer()
    await store.set_with_expiry(key, value, ttl_seconds)
    return value
