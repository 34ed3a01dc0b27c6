"""
Accounts and sessions: registration, email verification, login and token revocation.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthenticationError, BadRequestError, ConflictError
from app.core.logging_config import logger
from app.core.security import (
    create_access_token,
    decode_token,
    generate_verification_token,
    get_password_hash,
    token_expiry,
    verify_password,
)
from app.models.user import EmailVerificationToken, TokenBlacklist, User
from app.schemas.auth import UserRegister
from app.services.audit_service import EventType, record_event
from app.services.email_service import email_service

INVALID_CREDENTIALS = "Invalid email or password"


async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def _issue_verification_token(db: AsyncSession, user: User) -> str:
    await db.execute(delete(EmailVerificationToken).where(EmailVerificationToken.user_id == user.id))
    token = generate_verification_token()
    db.add(EmailVerificationToken(
        user_id=user.id,
        token=token,
        expires_at=datetime.utcnow() + timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
    ))
    await db.flush()
    return token


async def _send_verification(user: User, token: str) -> None:
    # Registration and resend succeed even when the mail server is down
    sent = await email_service.send_verification_email(
        to_email=user.email,
        user_name=user.full_name,
        verification_token=token,
    )
    if not sent:
        logger.warning(f"[Auth] Verification email not delivered to {user.email}")


async def register(db: AsyncSession, data: UserRegister) -> User:
    """Create an unverified account and email it a verification link"""
    email = data.email.lower()

    if await get_by_email(db, email):
        logger.log_auth_event("register", success=False, user_email=email, reason="Email already registered")
        raise ConflictError("Email already registered")

    taken = await db.execute(
        select(User.id).where(func.lower(User.full_name) == data.full_name.lower())
    )
    if taken.scalar_one_or_none() is not None:
        logger.log_auth_event("register", success=False, user_email=email, reason="Full name already taken")
        raise ConflictError("Full name already taken")

    user = User(
        email=email,
        full_name=data.full_name,
        hashed_password=get_password_hash(data.password),
        is_active=True,
        is_verified=False,
    )
    db.add(user)
    await db.flush()

    token = await _issue_verification_token(db, user)
    await record_event(db, EventType.AUTHENTICATION, "UserRegistered", "User", user.id,
                       user=user, event_data={"email": user.email, "fullName": user.full_name})
    await db.commit()

    logger.log_auth_event("register", success=True, user_email=email)
    await _send_verification(user, token)
    return user


async def verify_email(db: AsyncSession, token: str) -> User:
    result = await db.execute(
        select(EmailVerificationToken).where(EmailVerificationToken.token == token)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise BadRequestError("Invalid or expired verification token")
    if record.is_expired():
        await db.delete(record)
        await db.commit()
        raise BadRequestError("Invalid or expired verification token")

    user = await get_by_id(db, record.user_id)
    if user is None or user.is_verified:
        raise BadRequestError("Email is already verified")

    user.is_verified = True
    await db.delete(record)
    await record_event(db, EventType.AUTHENTICATION, "EmailVerified", "User", user.id, user=user)
    await db.commit()

    logger.log_auth_event("verify_email", success=True, user_email=user.email)
    return user


async def resend_verification(db: AsyncSession, email: str) -> bool:
    """Issue a fresh verification token; returns False when the email is unknown"""
    user = await get_by_email(db, email)
    if user is None:
        return False
    if user.is_verified:
        raise BadRequestError("Email is already verified")

    token = await _issue_verification_token(db, user)
    await record_event(db, EventType.AUTHENTICATION, "EmailVerificationRequested", "User", user.id, user=user)
    await db.commit()

    await _send_verification(user, token)
    return True


async def login(
    db: AsyncSession,
    email: str,
    password: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Tuple[User, str]:
    user = await get_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        logger.log_auth_event("login", success=False, user_email=email, reason="invalid credentials")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not user.is_active:
        logger.log_auth_event("login", success=False, user_email=email, reason="inactive account")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not user.is_verified:
        logger.log_auth_event("login", success=False, user_email=email, reason="email not verified")
        raise AuthenticationError("Please verify your email before logging in")

    token = create_access_token(user.id, user.email)
    payload = decode_token(token)

    user.last_login = datetime.utcnow()
    await record_event(
        db, EventType.AUTHENTICATION, "UserLoggedIn", "User", user.id,
        user=user,
        ip_address=ip_address,
        user_agent=user_agent,
        session_id=payload["jti"],
    )
    await db.commit()

    logger.log_auth_event("login", success=True, user_email=user.email)
    return user, token


async def is_blacklisted(db: AsyncSession, jti: Optional[str]) -> bool:
    if not jti:
        return False
    result = await db.execute(select(TokenBlacklist.id).where(TokenBlacklist.token_jti == jti))
    return result.scalar_one_or_none() is not None


async def authenticate_token(db: AsyncSession, token: str) -> Tuple[User, Dict[str, Any]]:
    """Resolve a session token to an active user, rejecting revoked tokens"""
    payload = decode_token(token)
    if await is_blacklisted(db, payload.get("jti")):
        raise AuthenticationError("Token has been revoked")

    user = await get_by_id(db, payload["sub"])
    if user is None or not user.is_active:
        raise AuthenticationError("User not found")
    return user, payload


async def refresh(db: AsyncSession, token: str) -> Tuple[User, str]:
    user, _ = await authenticate_token(db, token)
    return user, create_access_token(user.id, user.email)


async def logout(db: AsyncSession, token: Optional[str]) -> None:
    """Revoke the presented token if it is still valid"""
    if not token:
        return
    try:
        payload = decode_token(token)
    except AuthenticationError:
        return

    jti = payload.get("jti")
    if not jti or await is_blacklisted(db, jti):
        return

    db.add(TokenBlacklist(token_jti=jti, user_id=payload["sub"], expires_at=token_expiry(payload)))
    user = await get_by_id(db, payload["sub"])
    await record_event(db, EventType.AUTHENTICATION, "TokenBlacklisted", "User", payload["sub"],
                       user=user, session_id=jti)
    await db.commit()
    logger.log_auth_event("logout", success=True, user_email=payload.get("email"))


async def approvers(db: AsyncSession) -> List[User]:
    """Verified, active users who may sign approvals"""
    result = await db.execute(
        select(User)
        .where(User.is_verified.is_(True), User.is_active.is_(True))
        .order_by(User.full_name)
    )
    return list(result.scalars().all())
