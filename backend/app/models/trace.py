from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID


class TraceType(str, enum.Enum):
    """Kind of item at either end of a trace, derived from its id prefix"""
    USER = "user"
    SYSTEM = "system"
    RISK = "risk"
    TESTCASE = "testcase"
    TESTRESULT = "testresult"


class Trace(Base):
    """
    Directed link between two traceable items.

    One table covers every pairing (UR -> SR, RISK -> SR, SR -> TC,
    TC -> TRES, ...). Endpoint ids are not foreign keys because they point
    into different tables; the *_type columns say which.
    """
    __tablename__ = "traces"
    __table_args__ = (
        UniqueConstraint(
            "from_requirement_id", "to_requirement_id", "from_type", "to_type",
            name="uq_traces_endpoints",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_requirement_id = Column(String(50), nullable=False, index=True)
    to_requirement_id = Column(String(50), nullable=False, index=True)
    from_type = Column(String(20), nullable=False)
    to_type = Column(String(20), nullable=False)
    is_system_generated = Column(Boolean, default=False, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    creator = relationship("User", foreign_keys=[created_by], lazy="selectin")

    @property
    def created_by_name(self):
        return self.creator.full_name if self.creator else None

    def __repr__(self):
        return f"<Trace {self.from_requirement_id} -> {self.to_requirement_id}>"
