import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from appscope.api import events, stats
from appscope.config import settings
from appscope.db.database import database
from appscope.db.redis_client import redis_client
from appscope.errors import StorageError, InvalidInputError, UnauthorizedError
from appscope.middleware.rate_limit import rate_limit_middleware
from appscope.middleware.logging import logging_middleware
from prometheus_client import make_asgi_app
import structlog

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level.upper())
    )
)

logger = structlog.get_logger()

app = FastAPI(title="AppScope Analytics API")


@app.on_event("startup")
async def startup():
    await database.connect()
    await database.init_db()
    if settings.rate_limit_enabled:
        await redis_client.connect()
    logger.info("startup_completed")


@app.on_event("shutdown")
async def shutdown():
    await redis_client.close()
    await database.close()


@app.exception_handler(UnauthorizedError)
async def unauthorized_handler(request: Request, exc: UnauthorizedError):
    logger.warning("unauthorized", path=request.url.path)
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("storage_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Database error"})


app.middleware("http")(rate_limit_middleware)
app.middleware("http")(logging_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events.router, tags=["events"])
app.include_router(stats.router, tags=["stats"])

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
async def health():
    return {"status": "healthy"}
