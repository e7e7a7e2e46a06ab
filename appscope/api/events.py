from fastapi import APIRouter, Depends
from appscope.api.auth import verify_write_key
from appscope.db.database import Database, get_database
from appscope.db.store import append_event, append_feedback
from appscope.errors import StorageError
from appscope.models.events import TrackEventRequest, FeedbackRequest, SuccessResponse
from prometheus_client import Counter
import structlog

router = APIRouter(dependencies=[Depends(verify_write_key)])
logger = structlog.get_logger()

events_counter = Counter('events_received_total', 'Total events received')
feedback_counter = Counter('feedback_received_total', 'Total feedback submissions received')
ingest_failed_counter = Counter('ingest_failed_total', 'Total write requests that failed to persist')


@router.post("/api/track", response_model=SuccessResponse)
async def track_event(payload: TrackEventRequest, db: Database = Depends(get_database)):
    try:
        await append_event(db, payload.app_id, payload.event, payload.user_id, payload.properties)
    except StorageError:
        ingest_failed_counter.inc()
        raise

    events_counter.inc()
    logger.info("event_tracked", app_id=payload.app_id, event_name=payload.event)

    return SuccessResponse()


@router.post("/api/feedback", response_model=SuccessResponse)
async def submit_feedback(payload: FeedbackRequest, db: Database = Depends(get_database)):
    try:
        await append_feedback(
            db,
            payload.app_id,
            payload.content,
            user_id=payload.user_id,
            contact=payload.contact,
            properties=payload.properties
        )
    except StorageError:
        ingest_failed_counter.inc()
        raise

    feedback_counter.inc()
    logger.info("feedback_submitted", app_id=payload.app_id)

    return SuccessResponse()
