from sqlalchemy import Column, String, DateTime, Text, Index
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid


class AuditEvent(Base):
    """Append-only log of every change made through the API"""
    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_aggregate", "aggregate_type", "aggregate_id"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)

    # What happened
    event_type = Column(String(50), nullable=False, index=True)  # e.g. 'Requirements', 'Testing'
    event_name = Column(String(100), nullable=False, index=True)  # e.g. 'UserRequirementApproved'
    aggregate_type = Column(String(50), nullable=False)  # e.g. 'UserRequirement', 'TestRun'
    aggregate_id = Column(String(100), nullable=False)

    # Who did it (denormalized so the log survives user changes)
    user_id = Column(GUID, nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    user_name = Column(String(255), nullable=True)

    # Change details
    event_data = Column(JSONType, nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSONType, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    session_id = Column(String(100), nullable=True)

    occurred_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditEvent {self.event_name} {self.aggregate_type}:{self.aggregate_id}>"
