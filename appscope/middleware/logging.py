from uuid import uuid4
import time
import structlog
from fastapi import Request

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


async def logging_middleware(request: Request, call_next):
    """Tag every log line of a request with its id and log the outcome."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error("request_failed", error=str(e), exc_type=type(e).__name__)
        raise

    duration_ms = (time.perf_counter() - start_time) * 1000
    response.headers[REQUEST_ID_HEADER] = request_id

    logger.info("request_completed", status_code=response.status_code, duration_ms=round(duration_ms, 2))
    return response
