from typing import Any, Dict

from app.models.risk import RiskRecord
from app.models.trace import TraceType
from app.schemas.risk import RiskCreate, RiskUpdate
from app.services.audit_service import EventType
from app.services.id_generator import RISK_PREFIX
from app.services.requirement_service import RequirementService
from app.services.risk_calculation import calculate_p_total, calculate_risk_score

RISK_TEXT_FIELDS = ("title", "description", "hazard", "harm", "foreseeable_sequence",
                    "p_total_calculation_method")
RISK_LEVEL_FIELDS = ("severity", "probability_p1", "probability_p2")


class RiskService(RequirementService):
    """Risk records follow the requirement lifecycle and carry a derived risk score"""

    label = "Risk record"
    event_type = EventType.RISK_MANAGEMENT
    editable_fields = RISK_TEXT_FIELDS + RISK_LEVEL_FIELDS

    def sort_columns(self) -> Dict[str, Any]:
        columns = super().sort_columns()
        columns.pop("approvedAt")
        columns["residualRiskScore"] = self.model.residual_risk_score
        return columns

    def creation_fields(self, payload: RiskCreate) -> Dict[str, Any]:
        p_total = calculate_p_total(payload.probability_p1, payload.probability_p2)
        return {
            "title": payload.title,
            "description": payload.description,
            "hazard": payload.hazard,
            "harm": payload.harm,
            "foreseeable_sequence": payload.foreseeable_sequence,
            "severity": payload.severity,
            "probability_p1": payload.probability_p1,
            "probability_p2": payload.probability_p2,
            "p_total_calculation_method": payload.p_total_calculation_method,
            "p_total": p_total,
            "residual_risk_score": calculate_risk_score(payload.severity, p_total),
        }

    def update_fields(self, item: RiskRecord, payload: RiskUpdate) -> Dict[str, Any]:
        changes = {}
        for field in self.editable_fields:
            value = getattr(payload, field)
            if value is not None and value != getattr(item, field):
                changes[field] = value

        if changes.keys() & {"probability_p1", "probability_p2", "p_total_calculation_method"}:
            changes["p_total"] = calculate_p_total(
                changes.get("probability_p1", item.probability_p1),
                changes.get("probability_p2", item.probability_p2),
            )
        if changes.keys() & {"severity", "probability_p1", "probability_p2"}:
            changes["residual_risk_score"] = calculate_risk_score(
                changes.get("severity", item.severity),
                changes.get("p_total", item.p_total),
            )
        return changes


risk_service = RiskService(RiskRecord, RISK_PREFIX, "RiskRecord", TraceType.RISK.value)
