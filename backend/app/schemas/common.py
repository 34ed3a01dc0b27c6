from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire (both accepted on input)"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PasswordConfirmation(CamelModel):
    """Body of approve/delete calls that re-confirm the current user's password"""
    password: Optional[str] = None
    approval_notes: Optional[str] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def require_text(value: Optional[str], label: str, max_length: Optional[int] = None) -> Optional[str]:
    """Reject blank strings, trim the rest, and enforce an optional maximum length"""
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError(f"{label} cannot be empty")
    if max_length is not None and len(value) > max_length:
        raise ValueError(f"{label} must be {max_length} characters or less")
    return value
