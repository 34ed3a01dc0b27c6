from sqlalchemy import Column, String, Integer, Text

from app.core.database import Base
from app.models.requirement import ApprovableMixin


class RiskRecord(ApprovableMixin, Base):
    """
    Hazard analysis entry (RISK-n).

    p_total is derived from the two probability estimates and
    residual_risk_score combines it with severity (e.g. "35").
    """
    __tablename__ = "risk_records"

    hazard = Column(Text, nullable=False)
    harm = Column(Text, nullable=False)
    foreseeable_sequence = Column(Text, nullable=True)

    severity = Column(Integer, nullable=False)
    probability_p1 = Column(Integer, nullable=False)
    probability_p2 = Column(Integer, nullable=False)
    p_total_calculation_method = Column(Text, nullable=False)
    p_total = Column(Integer, nullable=False)
    residual_risk_score = Column(String(10), nullable=True)

    def __repr__(self):
        return f"<RiskRecord {self.id} score={self.residual_risk_score}>"
