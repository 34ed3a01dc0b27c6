from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.trace import TraceCreate, TraceResponse
from app.services import trace_service

router = APIRouter()


@router.get("/traces")
async def list_traces(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Every trace between two live items, newest first"""
    return {"success": True, "traces": await trace_service.list_traces(db)}


@router.get("/requirements/{item_id}/traces")
async def requirement_traces(
    item_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    traces = await trace_service.requirement_traces(db, item_id)
    return {"success": True, "requirementId": item_id.upper(), **traces}


@router.post("/traces", status_code=status.HTTP_201_CREATED)
async def create_trace(
    payload: TraceCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    trace = await trace_service.create_trace(
        db, current_user, payload.from_id, payload.to_id, payload.from_type, payload.to_type
    )
    return {"success": True, "trace": TraceResponse.model_validate(trace)}


@router.delete("/traces/{from_id}/{to_id}")
async def delete_trace(
    from_id: str,
    to_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await trace_service.delete_trace(db, current_user, from_id, to_id)
    return {"success": True, "message": "Trace relationship deleted successfully"}
