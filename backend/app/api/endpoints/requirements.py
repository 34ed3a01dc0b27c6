"""
Routes shared by user requirements, system requirements and risk records.

The three resources differ only in their service and schemas, so each module
builds its router from `build_requirement_router`.
"""
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Type

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.common import CamelModel, PasswordConfirmation
from app.schemas.requirement import TraceSummary
from app.services.requirement_service import RequirementService
from app.utils.pagination import list_envelope


def build_requirement_router(
    service: RequirementService,
    create_schema: Type[CamelModel],
    update_schema: Type[CamelModel],
    response_schema: Type[CamelModel],
) -> APIRouter:
    router = APIRouter()

    def serialize(item) -> CamelModel:
        return response_schema.model_validate(item)

    @router.get("")
    async def list_items(
        status_filter: Optional[str] = Query(None, alias="status"),
        search: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = "desc",
        page: int = 1,
        limit: Optional[int] = None,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        items, meta = await service.list(
            db, status=status_filter, search=search, sort=sort, order=order, page=page, limit=limit
        )
        return list_envelope([serialize(item) for item in items], meta)

    @router.get("/{item_id}")
    async def get_item(
        item_id: str,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        item = await service.get(db, item_id)
        return {"success": True, "requirement": serialize(item)}

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_item(
        payload: create_schema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        item = await service.create(db, current_user, payload)
        return {"success": True, "requirement": serialize(item)}

    @router.patch("/{item_id}")
    async def update_item(
        item_id: str,
        payload: update_schema,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        item = await service.update(db, current_user, item_id, payload)
        return {"success": True, "requirement": serialize(item)}

    @router.post("/{item_id}/approve")
    async def approve_item(
        item_id: str,
        payload: PasswordConfirmation,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        item = await service.approve(db, current_user, item_id, payload.password, payload.approval_notes)
        return {"success": True, "requirement": serialize(item)}

    @router.delete("/{item_id}")
    async def delete_item(
        item_id: str,
        payload: Optional[PasswordConfirmation] = Body(None),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        await service.delete(db, current_user, item_id, payload.password if payload else None)
        return {"success": True, "message": f"{service.label} deleted successfully"}

    @router.get("/{item_id}/downstream-traces")
    async def downstream_traces(
        item_id: str,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        items = await service.downstream(db, item_id)
        return {"success": True, "traces": [TraceSummary.model_validate(item) for item in items]}

    return router
