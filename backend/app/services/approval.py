"""Password re-confirmation required before approving or editing approved items."""
from typing import Optional

from app.core.exceptions import BadRequestError, InvalidPasswordError
from app.core.logging_config import logger
from app.core.security import verify_password
from app.models.user import User


def require_password(password: Optional[str], message: str = "Password is required") -> str:
    """Reject requests that did not send a password at all (400)"""
    if not password:
        raise BadRequestError(message)
    return password


def verify_user_password(user: User, password: str) -> None:
    """Check the password against the signed-in user's hash (401 on mismatch)"""
    if not verify_password(password, user.hashed_password):
        logger.log_auth_event("password_confirmation", success=False, user_email=user.email,
                              reason="invalid password")
        raise InvalidPasswordError()


def confirm_password(user: User, password: Optional[str], message: str = "Password is required") -> None:
    require_password(password, message)
    verify_user_password(user, password)
