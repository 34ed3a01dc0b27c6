from fastapi import APIRouter

from app.api.endpoints import (
    audit,
    auth,
    health,
    risks,
    system_requirements,
    test_cases,
    test_runs,
    traces,
    user_requirements,
)

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(user_requirements.router, prefix="/user-requirements", tags=["User Requirements"])
api_router.include_router(system_requirements.router, prefix="/system-requirements", tags=["System Requirements"])
api_router.include_router(risks.router, prefix="/risks", tags=["Risk Records"])
api_router.include_router(traces.router, tags=["Traceability"])
api_router.include_router(test_cases.router, prefix="/test-cases", tags=["Test Cases"])
api_router.include_router(test_runs.router, tags=["Test Runs"])
api_router.include_router(audit.router, prefix="/audit", tags=["Audit"])
