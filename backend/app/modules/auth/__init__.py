# Authentication module

from app.modules.auth.dependencies import (
    extract_token,
    get_current_session,
    get_current_user,
    get_token,
)

__all__ = [
    "extract_token",
    "get_current_session",
    "get_current_user",
    "get_token",
]
