"""Optional Redis connection shared by the login state stores."""

import redis.asyncio as redis_async
from loguru import logger
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

from src.flattr_auth.runtime.config.config_data import RedisConfig
from src.flattr_auth.runtime.context import get_config


def _build_client(redis_config: RedisConfig) -> redis_async.Redis:
    return redis_async.from_url(
        redis_config.connection_string,
        encoding="utf-8",
        decode_responses=redis_config.decode_responses,
        max_connections=redis_config.max_connections,
        socket_timeout=redis_config.socket_timeout,
        socket_connect_timeout=redis_config.socket_connect_timeout,
        health_check_interval=30,
        retry=Retry(ExponentialBackoff(base=1, cap=10), retries=3),
        client_name="flattr_auth",
    )


class RedisService:
    """Owns the Redis client used for cross-process login state.

    The service is inert when Redis is switched off or has no URL; callers
    check ``is_enabled`` and use their in-process store instead.
    """

    def __init__(self, redis_config: RedisConfig | None = None):
        redis_config = redis_config or get_config().redis
        self._client: redis_async.Redis | None = None

        if not redis_config.enabled:
            logger.info("Redis disabled, login state stays in-process")
            return
        if not redis_config.url:
            logger.warning("Redis enabled without a URL, login state stays in-process")
            return

        logger.info("Connecting to Redis at {}", redis_config.sanitized_connection_string)
        try:
            self._client = _build_client(redis_config)
        except ValueError as e:
            # from_url rejects malformed URLs eagerly
            if get_config().app.environment == "production":
                raise
            logger.bind(error_type=type(e).__name__).error("Invalid Redis URL: {}", e)

    @property
    def is_enabled(self) -> bool:
        return self._client is not None

    def get_client(self) -> redis_async.Redis | None:
        return self._client

    async def health_check(self) -> bool:
        """Round-trip a PING; False when Redis is off or unreachable."""
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.bind(error_type=type(e).__name__).warning("Redis ping failed: {}", e)
            return False

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        logger.info("Closing Redis connection")
        try:
            await client.aclose()
        except Exception as e:
            logger.bind(error_type=type(e).__name__).error("Error closing Redis connection: {}", e)
