"""
Infrastructure Layer - Rate Limiter

Fixed-window counter on Redis. A caller can burst up to twice the limit
across a window boundary.
"""

import logging
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ..application.ports import RateLimiter
from ..domain.exceptions import ConfigurationError
from ..domain.value_objects import DeploymentMode


logger = logging.getLogger(__name__)


class RedisRateLimiter(RateLimiter):
    """
    Fixed-window rate limiter.

    ``INCR`` and ``EXPIRE NX`` are sent in one MULTI block, so every counter
    carries a TTL and later requests never extend the window. ``EXPIRE NX``
    needs Redis 7.

    When Redis is missing or unreachable, development mode lets the request
    through and production mode raises ConfigurationError.
    """

    KEY_PREFIX = "rate-limit:"

    def __init__(
        self,
        client: Optional[aioredis.Redis],
        mode: DeploymentMode = DeploymentMode.DEVELOPMENT,
    ):
        self.client = client
        self.mode = mode

    @classmethod
    def from_url(
        cls,
        redis_url: Optional[str],
        mode: DeploymentMode = DeploymentMode.DEVELOPMENT,
    ) -> 'RedisRateLimiter':
        client = aioredis.Redis.from_url(redis_url, decode_responses=True) if redis_url else None
        return cls(client, mode)

    async def check(self, key: str, limit: int, window_seconds: int) -> bool:
        if self.client is None:
            return self._unavailable(key, "counter store not configured")

        redis_key = f"{self.KEY_PREFIX}{key}"
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, window_seconds, nx=True)
                count, _ = await pipe.execute()
        except (RedisError, OSError) as e:
            return self._unavailable(key, str(e))

        allowed = count <= limit
        if not allowed:
            logger.debug(f"{redis_key} at {count}/{limit}")
        return allowed

    def _unavailable(self, key: str, reason: str) -> bool:
        if self.mode == DeploymentMode.PRODUCTION:
            raise ConfigurationError(f"Rate limiter unavailable: {reason}")
        logger.warning(f"Rate limiter unavailable ({reason}), allowing {key}")
        return True

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
