from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError
from app.core.logging_config import set_user_id
from app.models.user import User
from app.services import user_service

security = HTTPBearer(auto_error=False)


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    """Session token from the auth cookie, falling back to a Bearer header"""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    return None


async def get_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    return extract_token(request, credentials)


async def get_current_session(
    token: Optional[str] = Depends(get_token),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Authenticated user together with the decoded token claims"""
    if not token:
        raise AuthenticationError("Access token required")

    user, payload = await user_service.authenticate_token(db, token)
    set_user_id(str(user.id))
    return {"user": user, "payload": payload}


async def get_current_user(
    session: Dict[str, Any] = Depends(get_current_session),
) -> User:
    """Get current authenticated user"""
    return session["user"]
