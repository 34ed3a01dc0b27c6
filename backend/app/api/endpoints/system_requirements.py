from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.endpoints.requirements import build_requirement_router
from app.core.database import get_db
from app.models.trace import TraceType
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.requirement import RequirementCreate, RequirementResponse, RequirementUpdate
from app.services import trace_service
from app.services.requirement_service import system_requirement_service

router = build_requirement_router(
    system_requirement_service, RequirementCreate, RequirementUpdate, RequirementResponse
)


@router.get("/trace-from/{user_requirement_id}")
async def trace_from_user_requirement(
    user_requirement_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """System requirements derived from a user requirement (empty if it has none)"""
    items = await trace_service.traced_items(
        db, user_requirement_id.upper(), TraceType.USER.value, TraceType.SYSTEM.value
    )
    return {"success": True, "data": [RequirementResponse.model_validate(item) for item in items]}
