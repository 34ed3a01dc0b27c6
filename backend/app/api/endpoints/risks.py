from app.api.endpoints.requirements import build_requirement_router
from app.schemas.risk import RiskCreate, RiskResponse, RiskUpdate
from app.services.risk_service import risk_service

router = build_requirement_router(risk_service, RiskCreate, RiskUpdate, RiskResponse)
