import redis.asyncio as redis
from appscope.config import settings
from typing import Optional
import structlog

logger = structlog.get_logger()


class RedisClient:
    """Counter store for the write-path rate limiter."""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        self.redis = await redis.from_url(
            f"redis://{settings.redis_host}:{settings.redis_port}",
            encoding="utf-8",
            decode_responses=True
        )
        logger.info("redis_connected", host=settings.redis_host, port=settings.redis_port)

    async def close(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    @property
    def connected(self) -> bool:
        return self.redis is not None

    async def incr(self, key: str) -> int:
        return await self.redis.incr(key)

    async def expire(self, key: str, seconds: int):
        await self.redis.expire(key, seconds)


redis_client = RedisClient()
