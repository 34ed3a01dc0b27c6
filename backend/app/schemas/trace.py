from pydantic import Field
from typing import Optional
from datetime import datetime

from app.schemas.common import CamelModel


class TraceCreate(CamelModel):
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    from_type: Optional[str] = None
    to_type: Optional[str] = None


class TraceResponse(CamelModel):
    id: int
    from_id: str = Field(validation_alias="from_requirement_id")
    to_id: str = Field(validation_alias="to_requirement_id")
    from_type: str
    to_type: str
    created_at: datetime
    created_by: Optional[str] = None
