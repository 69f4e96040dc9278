"""
Async Redis client backing the upload rate limiter.

Redis is optional infrastructure: when it cannot be reached at startup the
relay keeps serving and the rate limiter lets requests through.

Usage:
    ```python
    from video_relay.core.redis_client import init_redis, get_redis_client

    await init_redis()

    client = get_redis_client()
    if client:
        hits = await client.increment_window("ratelimit:upload:10.0.0.1", 900)
    ```
"""

import asyncio
import logging

import redis.asyncio as redis

from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from video_relay.config import Settings, get_settings


logger = logging.getLogger(__name__)


class _RedisClientContainer:
    """Container for the Redis client singleton to avoid global statements."""

    client: "RedisClient | None" = None


_container = _RedisClientContainer()


class RedisClient:
    """
    Thin wrapper over ``redis.asyncio`` with connection retries.

    Attributes:
        settings: Application settings holding ``redis_url``.
        max_retries: Connection attempts made by ``connect()``.
        base_delay: First backoff delay in seconds, doubled per attempt.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        self.settings = settings or get_settings()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._client: redis.Redis | None = None

    @staticmethod
    def _mask_url(url: str) -> str:
        """Hide credentials in a Redis URL for logging."""
        if "@" in url:
            return f"redis://***@{url.split('@')[-1]}"
        return url

    async def connect(self) -> bool:
        """
        Connect and PING, retrying with exponential backoff.

        Returns:
            True once connected, False after the last failed attempt. Never raises.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info(
                    "Attempting Redis connection to %s (attempt %d/%d)",
                    self._mask_url(self.settings.redis_url),
                    attempt,
                    self.max_retries,
                )
                self._client = redis.from_url(
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                )
                await self._client.ping()
                logger.info("Successfully connected to Redis")
                return True

            except (RedisConnectionError, RedisError, OSError) as e:
                logger.warning(
                    "Redis connection failed (attempt %d/%d): %s", attempt, self.max_retries, e
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        logger.error("Failed to connect to Redis after %d attempts", self.max_retries)
        return False

    async def close(self) -> None:
        """Close the connection pool. Safe to call more than once."""
        if self._client is None:
            return
        try:
            await self._client.aclose()
            logger.info("Redis connection closed")
        except RedisError:
            logger.exception("Error closing Redis connection")
        finally:
            self._client = None

    async def increment_window(self, key: str, window_seconds: int) -> int | None:
        """
        Count one hit in the fixed window stored at ``key``.

        INCR and EXPIRE NX run in one MULTI/EXEC transaction, so every counter
        carries a TTL and the key expires ``window_seconds`` after the
        window's first hit. EXPIRE NX needs Redis 7.0 or later.

        Returns:
            Hits in the current window including this one, or None when Redis
            is unavailable.
        """
        if self._client is None:
            return None

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, window_seconds, nx=True)
                count, _ = await pipe.execute()
            return int(count)
        except RedisError as e:
            logger.warning("Rate limit counter update failed for '%s': %s", key, e)
            return None


# =============================================================================
# Lifecycle
# =============================================================================


async def init_redis(settings: Settings | None = None) -> RedisClient | None:
    """
    Create and connect the global Redis client.

    Returns:
        The connected client, or None if Redis could not be reached.
    """
    if _container.client is not None:
        logger.warning("Redis client already initialized")
        return _container.client

    client = RedisClient(settings)
    if not await client.connect():
        logger.warning("Redis unavailable; upload rate limiting is disabled")
        await client.close()
        return None

    _container.client = client
    return client


async def close_redis() -> None:
    """Close the global Redis client. Safe to call when it was never opened."""
    if _container.client is not None:
        await _container.client.close()
        _container.client = None
        logger.info("Redis client closed")


def get_redis_client() -> RedisClient | None:
    """Return the global Redis client, or None when Redis is not in use."""
    return _container.client
