"""Short-lived memory of carrier callbacks that were already handled.

The carrier provider may deliver the same completed callback more than once.
A request id is reserved while its login runs, so a retry delivered in the
meantime is ignored. The reservation becomes a processed mark on success and
is released on failure, so a failed attempt can still be retried.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from cachetools import TLRUCache
from loguru import logger

if TYPE_CHECKING:
    from src.flattr_auth.core.services.redis_service import RedisService

KEY_PREFIX = "carrier_callback_processed:"

_PENDING = "pending"
_DONE = "done"


def _expires_after_value(_key: str, entry: tuple[str, float], now: float) -> float:
    return now + entry[1]


class CallbackGuard(ABC):
    """Remembers in-flight and processed callback request ids for a bounded time."""

    @abstractmethod
    async def already_processed(self, request_id: str) -> bool:
        """True while ``request_id`` is in flight or remembered as processed."""

    @abstractmethod
    async def try_begin(self, request_id: str, ttl_seconds: int) -> bool:
        """Reserve ``request_id`` for one handler; False when someone already holds it."""

    @abstractmethod
    async def mark_processed(self, request_id: str, ttl_seconds: int) -> None:
        """Remember ``request_id`` as processed for ``ttl_seconds``."""

    @abstractmethod
    async def release(self, request_id: str) -> None:
        """Drop a reservation whose login failed so a retry can run."""

    async def close(self) -> None:
        return None


class InMemoryCallbackGuard(CallbackGuard):
    """Per-process guard backed by a TLRU cache (per-entry expiry, bounded size).

    Reservations need no lock: there is no await between the membership check
    and the insert.
    """

    def __init__(self, maxsize: int = 10_000, timer: Callable[[], float] = time.monotonic):
        self._cache: TLRUCache = TLRUCache(
            maxsize=maxsize, ttu=_expires_after_value, timer=timer
        )

    async def already_processed(self, request_id: str) -> bool:
        return request_id in self._cache

    async def try_begin(self, request_id: str, ttl_seconds: int) -> bool:
        if request_id in self._cache:
            return False
        self._cache[request_id] = (_PENDING, ttl_seconds)
        return True

    async def mark_processed(self, request_id: str, ttl_seconds: int) -> None:
        self._cache[request_id] = (_DONE, ttl_seconds)

    async def release(self, request_id: str) -> None:
        entry = self._cache.get(request_id)
        if entry is not None and entry[0] == _PENDING:
            del self._cache[request_id]

    def __len__(self) -> int:
        self._cache.expire()
        return len(self._cache)


class RedisCallbackGuard(CallbackGuard):
    """Guard shared by every process that talks to the same Redis.

    Errors fail open: reconciliation is idempotent, so a missed duplicate is
    only extra work.
    """

    def __init__(self, redis_client):
        self._redis = redis_client

    @staticmethod
    def _key(request_id: str) -> str:
        return f"{KEY_PREFIX}{request_id}"

    async def already_processed(self, request_id: str) -> bool:
        try:
            return bool(await self._redis.exists(self._key(request_id)))
        except Exception as e:
            logger.bind(error_type=type(e).__name__).warning(
                "Callback guard lookup failed, treating as new: {}", e
            )
            return False

    async def try_begin(self, request_id: str, ttl_seconds: int) -> bool:
        try:
            return bool(
                await self._redis.set(self._key(request_id), _PENDING, nx=True, ex=ttl_seconds)
            )
        except Exception as e:
            logger.bind(error_type=type(e).__name__).warning(
                "Callback guard reservation failed, treating as new: {}", e
            )
            return True

    async def mark_processed(self, request_id: str, ttl_seconds: int) -> None:
        try:
            await self._redis.set(self._key(request_id), _DONE, ex=ttl_seconds)
        except Exception as e:
            logger.bind(error_type=type(e).__name__).warning(
                "Callback guard write failed: {}", e
            )

    async def release(self, request_id: str) -> None:
        key = self._key(request_id)
        try:
            if await self._redis.get(key) == _PENDING:
                await self._redis.delete(key)
        except Exception as e:
            logger.bind(error_type=type(e).__name__).warning(
                "Callback guard release failed: {}", e
            )


async def build_callback_guard(
    redis_service: RedisService | None, maxsize: int = 10_000
) -> CallbackGuard:
    """Redis-backed guard when Redis is configured and reachable, in-memory otherwise."""
    if redis_service is not None and redis_service.is_enabled:
        if await redis_service.health_check():
            logger.info("Callback guard: Redis connected")
            return RedisCallbackGuard(redis_service.get_client())
        logger.warning("Callback guard: Redis unreachable, falling back to in-memory")
    else:
        logger.info("Callback guard: using in-memory storage")
    return InMemoryCallbackGuard(maxsize=maxsize)
