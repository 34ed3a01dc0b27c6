from app.api.endpoints.requirements import build_requirement_router
from app.schemas.requirement import RequirementCreate, RequirementResponse, RequirementUpdate
from app.services.requirement_service import user_requirement_service

router = build_requirement_router(
    user_requirement_service, RequirementCreate, RequirementUpdate, RequirementResponse
)
