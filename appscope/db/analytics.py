from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Set, Tuple
from sqlalchemy import select, func, distinct, case, and_
from appscope.db.database import Database, Event, Feedback, storage_errors
from appscope.models.events import AppSummary, DauPoint, InstallPoint, RetentionCohort, FeedbackItem

OPEN_EVENT = "$open"
INSTALL_EVENT = "$install"

RETENTION_LOOKBACK_DAYS = 60
RETENTION_MAX_COHORTS = 30
RETENTION_OFFSETS = (1, 7, 30)

SNAPSHOT_ISOLATION = {
    "postgresql": "REPEATABLE READ",
    "mysql": "REPEATABLE READ",
}


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def window_start(today: date, days: int) -> date:
    """First date of a trailing window; the boundary date itself is included.

    Non-positive ``days`` collapse the window to ``today`` alone.
    """
    return today - timedelta(days=max(days, 0))


def retention_pct(returned: int, cohort_size: int) -> Optional[float]:
    if cohort_size == 0:
        return None
    pct = Decimal(returned * 100) / Decimal(cohort_size)
    return float(pct.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


async def list_applications(db: Database, today: Optional[date] = None) -> List[AppSummary]:
    today = today or utc_today()
    query = (
        select(
            Event.app_id,
            func.count(distinct(case(
                (and_(Event.event == OPEN_EVENT, Event.event_date == today), Event.user_id)
            ))).label("dau_today"),
            func.count(case((Event.event == INSTALL_EVENT, 1))).label("total_installs"),
        )
        .group_by(Event.app_id)
        .order_by(Event.app_id)
    )

    async with storage_errors("list_applications"):
        async with db.session() as session:
            result = await session.execute(query)
            rows = result.all()

    return [
        AppSummary(app_id=row.app_id, dau_today=row.dau_today, total_installs=row.total_installs)
        for row in rows
    ]


async def get_dau(db: Database, app_id: str, days: int, today: Optional[date] = None) -> List[DauPoint]:
    start = window_start(today or utc_today(), days)
    query = (
        select(Event.event_date, func.count(distinct(Event.user_id)).label("dau"))
        .where(Event.app_id == app_id, Event.event == OPEN_EVENT, Event.event_date >= start)
        .group_by(Event.event_date)
        .order_by(Event.event_date)
    )

    async with storage_errors("get_dau"):
        async with db.session() as session:
            result = await session.execute(query)
            rows = result.all()

    return [DauPoint(date=row.event_date, dau=row.dau) for row in rows]


async def get_installs(
        db: Database,
        app_id: str,
        days: int,
        today: Optional[date] = None
) -> Tuple[int, List[InstallPoint]]:
    start = window_start(today or utc_today(), days)
    total_query = (
        select(func.count())
        .select_from(Event)
        .where(Event.app_id == app_id, Event.event == INSTALL_EVENT)
    )
    series_query = (
        select(Event.event_date, func.count().label("installs"))
        .where(Event.app_id == app_id, Event.event == INSTALL_EVENT, Event.event_date >= start)
        .group_by(Event.event_date)
        .order_by(Event.event_date)
    )

    async with storage_errors("get_installs"):
        async with db.session() as session:
            total = (await session.execute(total_query)).scalar_one()
            rows = (await session.execute(series_query)).all()

    return total, [InstallPoint(date=row.event_date, installs=row.installs) for row in rows]


async def get_retention(db: Database, app_id: str, today: Optional[date] = None) -> List[RetentionCohort]:
    """Day 1/7/30 retention for each daily cohort of the last 60 days.

    A user's cohort is the date of their first ``$open`` event. A cohort
    member counts as retained on day N only when they opened the app exactly
    N days after the cohort date. Cohorts come back newest first, at most
    30 of them.
    """
    cutoff = (today or utc_today()) - timedelta(days=RETENTION_LOOKBACK_DAYS)
    first_open = func.min(Event.event_date)

    cohort_query = (
        select(Event.user_id, first_open.label("cohort_date"))
        .where(Event.app_id == app_id, Event.event == OPEN_EVENT)
        .group_by(Event.user_id)
        .having(first_open >= cutoff)
    )
    # every retention offset lands strictly after its cohort date
    activity_query = (
        select(Event.user_id, Event.event_date)
        .where(
            Event.app_id == app_id,
            Event.event == OPEN_EVENT,
            Event.event_date > cutoff
        )
        .distinct()
    )

    async with storage_errors("get_retention"):
        async with db.session() as session:
            async with session.begin():
                # SQLite gets its snapshot from the BEGIN issued by Database.connect
                isolation = SNAPSHOT_ISOLATION.get(db.dialect)
                if isolation:
                    await session.connection(execution_options={"isolation_level": isolation})
                cohort_rows = (await session.execute(cohort_query)).all()
                activity_rows = (await session.execute(activity_query)).all()

    cohorts: Dict[date, Set[str]] = defaultdict(set)
    for row in cohort_rows:
        cohorts[row.cohort_date].add(row.user_id)

    active = {(row.user_id, row.event_date) for row in activity_rows}

    retention = []
    for cohort_date in sorted(cohorts, reverse=True)[:RETENTION_MAX_COHORTS]:
        users = cohorts[cohort_date]
        day0 = len(users)
        pct = {}
        for offset in RETENTION_OFFSETS:
            target = cohort_date + timedelta(days=offset)
            returned = sum(1 for user_id in users if (user_id, target) in active)
            pct[offset] = retention_pct(returned, day0)

        retention.append(RetentionCohort(
            cohort_date=cohort_date,
            day0=day0,
            day1=pct[1],
            day7=pct[7],
            day30=pct[30]
        ))

    return retention


async def get_feedback(db: Database, app_id: str, limit: int) -> List[FeedbackItem]:
    if limit <= 0:
        return []

    query = (
        select(Feedback.id, Feedback.content, Feedback.user_id, Feedback.contact, Feedback.created_at)
        .where(Feedback.app_id == app_id)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .limit(limit)
    )

    async with storage_errors("get_feedback"):
        async with db.session() as session:
            result = await session.execute(query)
            rows = result.all()

    return [
        FeedbackItem(
            id=row.id,
            content=row.content,
            user_id=row.user_id,
            contact=row.contact,
            created_at=_as_utc(row.created_at)
        )
        for row in rows
    ]


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
