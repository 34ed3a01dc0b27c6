from pydantic import Field, field_validator
from typing import Optional

from app.schemas.common import require_text
from app.schemas.requirement import RequirementCreate, RequirementResponse, RequirementUpdate


class RiskCreate(RequirementCreate):
    hazard: str
    harm: str
    foreseeable_sequence: Optional[str] = None
    severity: int = Field(ge=1, le=5)
    probability_p1: int = Field(ge=1, le=5)
    probability_p2: int = Field(ge=1, le=5)
    p_total_calculation_method: str

    @field_validator("hazard", "harm")
    @classmethod
    def validate_required_text(cls, v: str, info) -> str:
        return require_text(v, info.field_name.capitalize())

    @field_validator("p_total_calculation_method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        return require_text(v, "P total calculation method")


class RiskUpdate(RequirementUpdate):
    hazard: Optional[str] = None
    harm: Optional[str] = None
    foreseeable_sequence: Optional[str] = None
    severity: Optional[int] = Field(None, ge=1, le=5)
    probability_p1: Optional[int] = Field(None, ge=1, le=5)
    probability_p2: Optional[int] = Field(None, ge=1, le=5)
    p_total_calculation_method: Optional[str] = None

    @field_validator("hazard", "harm")
    @classmethod
    def validate_required_text(cls, v: Optional[str], info) -> Optional[str]:
        return require_text(v, info.field_name.capitalize())

    @field_validator("p_total_calculation_method")
    @classmethod
    def validate_method(cls, v: Optional[str]) -> Optional[str]:
        return require_text(v, "P total calculation method")


class RiskResponse(RequirementResponse):
    hazard: str
    harm: str
    foreseeable_sequence: Optional[str] = None
    severity: int
    probability_p1: int
    probability_p2: int
    p_total_calculation_method: str
    p_total: int
    residual_risk_score: Optional[str] = None
