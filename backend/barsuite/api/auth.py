"""
Authentication endpoints.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from barsuite.core.auth import (
    REFRESH_TOKEN_TYPE,
    decode_token,
    get_current_user_dependency,
    issue_tokens,
)
from barsuite.core.database import get_db
from barsuite.models.user import User
from barsuite.services import google
from barsuite.services.email import send_password_reset_email, send_verification_email
from barsuite.services.invitation import process_pending_invitations_for_user
from barsuite.services.user import (
    authenticate,
    change_password,
    create_user,
    issue_email_verification,
    issue_password_reset,
    record_login,
    reset_password,
    verify_email,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=50)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class VerifyEmailRequest(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(min_length=8, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = None
    new_password: str = Field(min_length=8, max_length=128)


class GoogleCallbackRequest(BaseModel):
    code: str


class UserResponse(BaseModel):
    """Public view of a user; never carries password hashes or tokens."""
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    profile_picture_url: Optional[str] = None
    role: str
    is_active: bool
    email_verified: bool
    auth_provider: str
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        phone_number=user.phone_number,
        profile_picture_url=user.profile_picture_url,
        role=user.role,
        is_active=user.is_active,
        email_verified=user.email_verified,
        auth_provider=user.auth_provider,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(**issue_tokens(user), user=user_response(user))


def _send_verification(db: Session, user: User) -> None:
    token = issue_email_verification(db, user)
    if not send_verification_email(email=user.email, token=token, user_name=user.full_name):
        logger.warning(f"Failed to send verification email to {user.email}, but user was created")


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Register with email and password; pending invitations are applied automatically."""
    user = create_user(
        db,
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        phone_number=request.phone_number,
    )

    # Email delivery must not fail registration
    _send_verification(db, user)

    # Never raises; failures are logged inside
    process_pending_invitations_for_user(db, user, include_pending=True)

    record_login(db, user)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db)
):
    """Login with email and password."""
    user = authenticate(db, request.email, request.password)
    process_pending_invitations_for_user(db, user, include_pending=False)
    record_login(db, user)
    return _auth_response(user)


@router.post("/refresh-token", response_model=AuthResponse)
async def refresh_token(
    request: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Exchange a refresh token for a new token pair."""
    payload = decode_token(request.refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )
    return _auth_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user_dependency)):
    """Get current user info."""
    return user_response(current_user)


@router.post("/verify-email", response_model=UserResponse)
async def verify_email_endpoint(
    request: VerifyEmailRequest,
    db: Session = Depends(get_db)
):
    """Verify email address using the token from the verification email."""
    return user_response(verify_email(db, request.token))


@router.post("/resend-verification", response_model=dict)
async def resend_verification(
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    if current_user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email address is already verified"
        )
    _send_verification(db, current_user)
    return {"success": True, "message": "Verification email sent"}


@router.post("/forgot-password", response_model=dict)
async def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db)
):
    """Start password reset. The response is the same whether the email exists or not."""
    issued = issue_password_reset(db, request.email)
    if issued:
        user, token = issued
        if not send_password_reset_email(user.email, token):
            logger.warning(f"Failed to send password reset email to user {user.id}")
    return {
        "success": True,
        "message": "If an account exists for this email, a reset link has been sent."
    }


@router.post("/reset-password", response_model=dict)
async def reset_password_endpoint(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    reset_password(db, request.token, request.new_password)
    return {"success": True, "message": "Password has been reset"}


@router.post("/change-password", response_model=dict)
async def change_password_endpoint(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    change_password(db, current_user, request.current_password, request.new_password)
    return {"success": True, "message": "Password changed"}


@router.get("/google/url", response_model=dict)
async def google_auth_url(state: Optional[str] = None):
    """URL of the Google consent screen."""
    return {"url": google.get_authorization_url(state)}


@router.post("/google/callback", response_model=AuthResponse)
async def google_callback(
    request: GoogleCallbackRequest,
    db: Session = Depends(get_db)
):
    """Sign in (or sign up) with a Google authorization code."""
    profile = google.fetch_google_profile(request.code)
    user, _created = google.sign_in_with_google_profile(db, profile)
    return _auth_response(user)
