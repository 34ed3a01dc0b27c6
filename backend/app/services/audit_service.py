"""
Audit trail: recording and querying events.

Every mutating service call records one or more events in the same
transaction as the change, so a rolled back request leaves no event behind.
Reporting queries (activity, metrics, timeline) group in SQL; only the hour
bucket expression differs between PostgreSQL and SQLite.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Date, DateTime, and_, case, desc, distinct, func, literal_column, select, type_coerce
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import logger
from app.models.audit_event import AuditEvent
from app.models.user import User
from app.utils.pagination import PaginationMeta, paginate


class EventType:
    """Event families (audit_events.event_type)"""
    AUTHENTICATION = "Authentication"
    REQUIREMENTS = "Requirements"
    RISK_MANAGEMENT = "RiskManagement"
    TRACEABILITY = "Traceability"
    TESTING = "Testing"


async def record_event(
    db: AsyncSession,
    event_type: str,
    event_name: str,
    aggregate_type: str,
    aggregate_id: str,
    user: Optional[User] = None,
    event_data: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    session_id: Optional[str] = None,
) -> AuditEvent:
    """Add an audit event to the session (flushed with the surrounding change)"""
    event = AuditEvent(
        event_type=event_type,
        event_name=event_name,
        aggregate_type=aggregate_type,
        aggregate_id=str(aggregate_id),
        user_id=user.id if user else None,
        user_email=user.email if user else None,
        user_name=user.full_name if user else None,
        event_data=event_data or {},
        event_metadata=metadata or {},
        ip_address=ip_address,
        user_agent=user_agent,
        session_id=session_id,
        occurred_at=datetime.utcnow(),
    )
    db.add(event)
    logger.log_domain_event(event_name, aggregate_type, str(aggregate_id))
    return event


async def list_events(
    db: AsyncSession,
    event_type: Optional[str] = None,
    event_name: Optional[str] = None,
    aggregate_type: Optional[str] = None,
    aggregate_id: Optional[str] = None,
    user_id: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    page: int = 1,
    limit: Optional[int] = None,
    default_limit: Optional[int] = None,
) -> Tuple[List[AuditEvent], PaginationMeta]:
    query = select(AuditEvent)
    if event_type:
        query = query.where(AuditEvent.event_type == event_type)
    if event_name:
        query = query.where(AuditEvent.event_name == event_name)
    if aggregate_type:
        query = query.where(AuditEvent.aggregate_type == aggregate_type)
    if aggregate_id:
        query = query.where(AuditEvent.aggregate_id == aggregate_id)
    if user_id:
        query = query.where(AuditEvent.user_id == user_id)
    if from_date:
        query = query.where(AuditEvent.occurred_at >= from_date)
    if to_date:
        query = query.where(AuditEvent.occurred_at <= to_date)

    query = query.order_by(desc(AuditEvent.occurred_at))
    return await paginate(db, query, page, limit, default_limit=default_limit)


async def aggregate_history(
    db: AsyncSession, aggregate_type: str, aggregate_id: str, limit: int = 100
) -> List[AuditEvent]:
    """Events of one item, newest first"""
    result = await db.execute(
        select(AuditEvent)
        .where(AuditEvent.aggregate_type == aggregate_type, AuditEvent.aggregate_id == aggregate_id)
        .order_by(desc(AuditEvent.occurred_at))
        .limit(limit)
    )
    return list(result.scalars().all())


async def user_events(
    db: AsyncSession, user_id: str, limit: int = 100, offset: int = 0
) -> Tuple[List[AuditEvent], int]:
    total = (await db.execute(
        select(func.count()).select_from(AuditEvent).where(AuditEvent.user_id == user_id)
    )).scalar() or 0

    result = await db.execute(
        select(AuditEvent)
        .where(AuditEvent.user_id == user_id)
        .order_by(desc(AuditEvent.occurred_at))
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


def _day(column):
    """Calendar day of a timestamp; date() exists on both PostgreSQL and SQLite"""
    return type_coerce(func.date(column), Date)


def _hour(db: AsyncSession, column):
    """Timestamp truncated to the hour"""
    if db.get_bind().dialect.name == "postgresql":
        return func.date_trunc(literal_column("'hour'"), column)
    return type_coerce(func.strftime("%Y-%m-%d %H:00:00", column), DateTime)


def _count_if(condition):
    return func.sum(case((condition, 1), else_=0))


async def user_activity(db: AsyncSession, max_users: int = 100) -> List[Dict[str, Any]]:
    """Per-user totals, most recently active first"""
    last_activity = func.max(AuditEvent.occurred_at)
    rows = (await db.execute(
        select(
            AuditEvent.user_id,
            func.count().label("total"),
            func.min(AuditEvent.occurred_at).label("first"),
            last_activity.label("last"),
            func.count(distinct(_day(AuditEvent.occurred_at))).label("days"),
        )
        .where(AuditEvent.user_id.is_not(None))
        .group_by(AuditEvent.user_id)
        .order_by(desc(last_activity))
        .limit(max_users)
    )).all()
    if not rows:
        return []

    user_ids = [row.user_id for row in rows]

    # Name and email as recorded on each user's latest event
    latest = (
        select(AuditEvent.user_id, func.max(AuditEvent.occurred_at).label("last"))
        .where(AuditEvent.user_id.in_(user_ids))
        .group_by(AuditEvent.user_id)
        .subquery()
    )
    names = {
        user_id: (user_name, user_email)
        for user_id, user_name, user_email in (await db.execute(
            select(AuditEvent.user_id, AuditEvent.user_name, AuditEvent.user_email)
            .join(latest, and_(
                AuditEvent.user_id == latest.c.user_id,
                AuditEvent.occurred_at == latest.c.last,
            ))
        )).all()
    }

    by_type: Dict[str, Dict[str, int]] = defaultdict(dict)
    for user_id, event_type, count in (await db.execute(
        select(AuditEvent.user_id, AuditEvent.event_type, func.count())
        .where(AuditEvent.user_id.in_(user_ids))
        .group_by(AuditEvent.user_id, AuditEvent.event_type)
    )).all():
        by_type[user_id][event_type] = count

    activity = []
    for row in rows:
        user_name, user_email = names.get(row.user_id, (None, None))
        activity.append({
            "userId": row.user_id,
            "userName": user_name,
            "userEmail": user_email,
            "totalEvents": row.total,
            "activeDays": row.days,
            "firstActivity": row.first,
            "lastActivity": row.last,
            "eventsByType": by_type[row.user_id],
        })
    return activity


async def system_metrics(db: AsyncSession, days: int = 30) -> List[Dict[str, Any]]:
    """Daily activity counters for the last `days` days, newest first"""
    since = datetime.utcnow() - timedelta(days=days)
    day = _day(AuditEvent.occurred_at)
    rows = (await db.execute(
        select(
            day.label("day"),
            func.count().label("total"),
            func.count(distinct(AuditEvent.user_id)).label("users"),
            _count_if(AuditEvent.event_name.like("%Created")).label("created"),
            _count_if(AuditEvent.event_name.like("%Approved")).label("approved"),
            _count_if(AuditEvent.event_name.like("%Deleted")).label("deleted"),
            _count_if(AuditEvent.event_type == EventType.TESTING).label("testing"),
            _count_if(AuditEvent.event_type == EventType.TRACEABILITY).label("tracing"),
        )
        .where(AuditEvent.occurred_at >= since)
        .group_by(day)
        .order_by(desc(day))
    )).all()

    return [
        {
            "date": row.day.isoformat(),
            "totalEvents": row.total,
            "activeUsers": row.users,
            "itemsCreated": row.created or 0,
            "itemsApproved": row.approved or 0,
            "itemsDeleted": row.deleted or 0,
            "testActivities": row.testing or 0,
            "traceActivities": row.tracing or 0,
        }
        for row in rows
    ]


async def activity_timeline(db: AsyncSession, hours: int = 24) -> List[Dict[str, Any]]:
    """Hourly event counts for the last `hours` hours, newest first"""
    since = datetime.utcnow() - timedelta(hours=hours)
    hour = _hour(db, AuditEvent.occurred_at)

    by_type: Dict[Any, Dict[str, int]] = defaultdict(dict)
    for bucket, event_type, count in (await db.execute(
        select(hour, AuditEvent.event_type, func.count())
        .where(AuditEvent.occurred_at >= since)
        .group_by(hour, AuditEvent.event_type)
    )).all():
        by_type[bucket][event_type] = count

    rows = (await db.execute(
        select(
            hour.label("hour"),
            func.count().label("events"),
            func.count(distinct(AuditEvent.user_id)).label("users"),
        )
        .where(AuditEvent.occurred_at >= since)
        .group_by(hour)
        .order_by(desc(hour))
    )).all()

    return [
        {
            "hour": row.hour,
            "eventsCount": row.events,
            "uniqueUsers": row.users,
            "eventsByType": by_type[row.hour],
        }
        for row in rows
    ]
