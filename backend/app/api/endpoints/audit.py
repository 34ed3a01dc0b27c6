from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.database import get_db
from app.modules.auth.dependencies import get_current_session
from app.schemas.audit import AuditEventResponse, ClientEventCreate
from app.services import audit_service
from app.utils.pagination import list_envelope

router = APIRouter()


def _events(events):
    return [AuditEventResponse.model_validate(event) for event in events]


@router.get("/events")
async def list_events(
    event_type: Optional[str] = None,
    event_name: Optional[str] = None,
    aggregate_type: Optional[str] = None,
    aggregate_id: Optional[str] = None,
    user_id: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    page: int = 1,
    limit: Optional[int] = None,
    session: Dict[str, Any] = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Audit events matching the filters, newest first"""
    events, meta = await audit_service.list_events(
        db,
        event_type=event_type,
        event_name=event_name,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        user_id=user_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        limit=limit,
        default_limit=settings.AUDIT_DEFAULT_LIMIT,
    )
    return list_envelope(_events(events), meta)


@router.get("/events/aggregate/{aggregate_type}/{aggregate_id}")
async def aggregate_events(
    aggregate_type: str,
    aggregate_id: str,
    limit: int = Query(100, ge=1, le=1000),
    session: Dict[str, Any] = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    events = await audit_service.aggregate_history(db, aggregate_type, aggregate_id, limit)
    return {
        "success": True,
        "aggregate": {"type": aggregate_type, "id": aggregate_id},
        "events": _events(events),
    }


@router.get("/events/user/{user_id}")
async def user_events(
    user_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: Dict[str, Any] = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    events, total = await audit_service.user_events(db, user_id, limit, offset)
    return {"success": True, "userId": user_id, "events": _events(events), "total": total}


@router.get("/activity/users")
async def user_activity(
    session: Dict[str, Any] = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "users": await audit_service.user_activity(db)}


@router.get("/metrics/system")
async def system_metrics(
    days: int = Query(30, ge=1, le=365),
    session: Dict[str, Any] = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "metrics": await audit_service.system_metrics(db, days)}


@router.get("/timeline")
async def activity_timeline(
    hours: int = Query(24, ge=1, le=24 * 30),
    session: Dict[str, Any] = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "timeline": await audit_service.activity_timeline(db, hours)}


@router.post("/events/log")
async def log_client_event(
    payload: ClientEventCreate,
    request: Request,
    session: Dict[str, Any] = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Record an event reported by the frontend"""
    event = await audit_service.record_event(
        db,
        payload.event_type,
        payload.event_name,
        payload.aggregate_type,
        payload.aggregate_id,
        user=session["user"],
        event_data=payload.event_data,
        metadata=payload.metadata,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        session_id=session["payload"].get("jti"),
    )
    await db.commit()
    return {"success": True, "event_id": event.id}
