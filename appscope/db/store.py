from datetime import datetime, timezone
from typing import Any, Optional
import json
import structlog
from sqlalchemy import insert
from appscope.db.database import Database, Event, Feedback, storage_errors

logger = structlog.get_logger()


def utc_now(now: Optional[datetime] = None) -> datetime:
    """Current time in UTC at second granularity."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)
    return now.replace(microsecond=0)


def serialize_properties(properties: Any) -> str:
    if properties is None:
        return "{}"
    return json.dumps(properties)


async def append_event(
        db: Database,
        app_id: str,
        event_name: str,
        user_id: str,
        properties: Any = None,
        now: Optional[datetime] = None
) -> None:
    created_at = utc_now(now)

    async with storage_errors("append_event"):
        async with db.session() as session:
            await session.execute(
                insert(Event).values(
                    app_id=app_id,
                    event=event_name,
                    user_id=user_id,
                    properties=serialize_properties(properties),
                    created_at=created_at,
                    event_date=created_at.date()
                )
            )
            await session.commit()

    logger.debug("event_appended", app_id=app_id, event_name=event_name)


async def append_feedback(
        db: Database,
        app_id: str,
        content: str,
        user_id: Optional[str] = None,
        contact: Optional[str] = None,
        properties: Any = None,
        now: Optional[datetime] = None
) -> None:
    async with storage_errors("append_feedback"):
        async with db.session() as session:
            await session.execute(
                insert(Feedback).values(
                    app_id=app_id,
                    content=content,
                    user_id=user_id,
                    contact=contact,
                    properties=serialize_properties(properties),
                    created_at=utc_now(now)
                )
            )
            await session.commit()

    logger.debug("feedback_appended", app_id=app_id)
