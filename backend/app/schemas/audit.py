from pydantic import Field
from typing import Any, Dict, Optional
from datetime import datetime

from app.schemas.common import CamelModel


class AuditEventResponse(CamelModel):
    id: str
    event_type: str
    event_name: str
    aggregate_type: str
    aggregate_id: str
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    event_data: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="event_metadata")
    occurred_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None


class ClientEventCreate(CamelModel):
    """Event reported by the frontend (e.g. a viewed report)"""
    event_type: str
    event_name: str
    aggregate_type: str
    aggregate_id: str
    event_data: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
