from fastapi import APIRouter, Depends, Query
from appscope.api.auth import verify_read_key
from appscope.db.analytics import list_applications, get_dau, get_installs, get_retention, get_feedback
from appscope.db.database import Database, get_database
from appscope.errors import InvalidInputError
from appscope.models.events import (
    AppsResponse, DauResponse, InstallsResponse, RetentionResponse, FeedbacksResponse
)
from prometheus_client import Histogram
import structlog

router = APIRouter(dependencies=[Depends(verify_read_key)])
logger = structlog.get_logger()

query_duration = Histogram('query_duration_seconds', 'Aggregation query duration', ['query'])


def require_app_id(app_id: str) -> str:
    if not app_id.strip():
        raise InvalidInputError("app_id must not be blank")
    return app_id


@router.get("/api/apps", response_model=AppsResponse)
async def get_apps(db: Database = Depends(get_database)):
    with query_duration.labels("apps").time():
        apps = await list_applications(db)

    logger.info("apps_query", count=len(apps))
    return AppsResponse(apps=apps)


@router.get("/api/stats/dau", response_model=DauResponse)
async def get_dau_stats(
        app_id: str = Query(...),
        days: int = Query(30),
        db: Database = Depends(get_database)
):
    app_id = require_app_id(app_id)

    with query_duration.labels("dau").time():
        data = await get_dau(db, app_id, days)

    logger.info("dau_query", app_id=app_id, days=days, count=len(data))
    return DauResponse(data=data)


@router.get("/api/stats/installs", response_model=InstallsResponse)
async def get_install_stats(
        app_id: str = Query(...),
        days: int = Query(30),
        db: Database = Depends(get_database)
):
    app_id = require_app_id(app_id)

    with query_duration.labels("installs").time():
        total, data = await get_installs(db, app_id, days)

    logger.info("installs_query", app_id=app_id, days=days, total=total)
    return InstallsResponse(total=total, data=data)


@router.get("/api/stats/retention", response_model=RetentionResponse)
async def get_retention_stats(
        app_id: str = Query(...),
        db: Database = Depends(get_database)
):
    app_id = require_app_id(app_id)

    with query_duration.labels("retention").time():
        data = await get_retention(db, app_id)

    logger.info("retention_query", app_id=app_id, cohorts=len(data))
    return RetentionResponse(data=data)


@router.get("/api/feedbacks", response_model=FeedbacksResponse)
async def get_feedbacks(
        app_id: str = Query(...),
        limit: int = Query(50),
        db: Database = Depends(get_database)
):
    app_id = require_app_id(app_id)

    with query_duration.labels("feedbacks").time():
        data = await get_feedback(db, app_id, limit)

    logger.info("feedbacks_query", app_id=app_id, limit=limit, count=len(data))
    return FeedbacksResponse(data=data)
