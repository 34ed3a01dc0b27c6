from pydantic import field_validator
from typing import Literal, Optional
from datetime import datetime

from app.schemas.common import CamelModel, require_text

TITLE_MAX_LENGTH = 200

StatusValue = Literal["draft", "approved"]


class RequirementCreate(CamelModel):
    title: str
    description: str
    status: Optional[StatusValue] = None
    password: Optional[str] = None
    approval_notes: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return require_text(v, "Title", TITLE_MAX_LENGTH)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return require_text(v, "Description")


class RequirementUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[StatusValue] = None
    password: Optional[str] = None
    approval_notes: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return require_text(v, "Title", TITLE_MAX_LENGTH)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return require_text(v, "Description")


class RequirementResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    status: str
    revision: int
    created_by: Optional[str] = None
    created_at: datetime
    last_modified: Optional[datetime] = None
    modified_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    deleted_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    created_by_name: Optional[str] = None
    modified_by_name: Optional[str] = None
    approved_by_name: Optional[str] = None


class TraceSummary(CamelModel):
    """Minimal view of an item reached through a trace"""
    id: str
    title: str
    status: str
