from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError, BadRequestError
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_token
from app.schemas.auth import (
    ApproverResponse,
    LoginResponse,
    ResendVerification,
    TokenResponse,
    UserLogin,
    UserRegister,
    UserResponse,
    VerificationResponse,
)
from app.services import user_service

router = APIRouter()


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.is_production(),
        samesite="strict",
        domain=settings.COOKIE_DOMAIN or None,
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production(),
        samesite="strict",
        domain=settings.COOKIE_DOMAIN or None,
        path="/",
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """Register a new account; it must verify its email before logging in"""
    user = await user_service.register(db, user_data)
    return {
        "user": UserResponse.model_validate(user),
        "message": "Registration successful. Please check your email to verify your account.",
    }


@router.get("/verify-email/{token}", response_model=VerificationResponse)
async def verify_email(token: str, db: AsyncSession = Depends(get_db)):
    try:
        user = await user_service.verify_email(db, token)
    except BadRequestError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": e.message},
        )
    return VerificationResponse(
        success=True,
        message="Email verified successfully. You can now log in.",
        user=UserResponse.model_validate(user),
    )


@router.post("/resend-verification")
async def resend_verification(payload: ResendVerification, db: AsyncSession = Depends(get_db)):
    sent = await user_service.resend_verification(db, payload.email)
    if not sent:
        return {"success": True, "message": "If that email is registered, a verification link has been sent."}
    return {"success": True, "message": "Verification email sent. Please check your inbox."}


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user, token = await user_service.login(
        db,
        credentials.email,
        credentials.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    set_auth_cookie(response, token)
    return LoginResponse(user=UserResponse.model_validate(user), token=token)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    response: Response,
    token: str = Depends(get_token),
    db: AsyncSession = Depends(get_db),
):
    if not token:
        raise AuthenticationError("Access token required")
    _, new_token = await user_service.refresh(db, token)
    set_auth_cookie(response, new_token)
    return TokenResponse(token=new_token)


@router.post("/logout")
async def logout(
    response: Response,
    token: str = Depends(get_token),
    db: AsyncSession = Depends(get_db),
):
    await user_service.logout(db, token)
    clear_auth_cookie(response)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/approvers")
async def list_approvers(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Users who can sign approvals"""
    users = await user_service.approvers(db)
    return [ApproverResponse.model_validate(user) for user in users]
