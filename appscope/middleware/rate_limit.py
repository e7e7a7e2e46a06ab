from fastapi import Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from appscope.config import settings
from appscope.db.redis_client import redis_client
import structlog
import time

logger = structlog.get_logger()

WRITE_PATHS = ("/api/track", "/api/feedback")


async def rate_limit_middleware(request: Request, call_next):
    if settings.rate_limit_enabled and request.url.path in WRITE_PATHS and redis_client.connected:
        client_ip = request.client.host if request.client else "unknown"
        key = f"rate_limit:{client_ip}:{int(time.time() / 60)}"

        try:
            current = await redis_client.incr(key)

            if current == 1:
                await redis_client.expire(key, 60)
        except RedisError as e:
            # counter store down: let the write through unmetered
            logger.warning("rate_limit_unavailable", client_ip=client_ip, error=str(e))
            return await call_next(request)

        if current > settings.rate_limit_per_minute:
            logger.warning("rate_limit_exceeded", client_ip=client_ip, path=request.url.path)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Rate limit exceeded"}
            )

    response = await call_next(request)
    return response
