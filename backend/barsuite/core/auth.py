"""
Authentication utilities and dependencies.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from barsuite.core.config import (
    JWT_SECRET,
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    JWT_REFRESH_TOKEN_EXPIRE_DAYS,
)
from barsuite.core.database import get_db
from barsuite.core.exceptions import BadRequestError, InvalidTokenError
from barsuite.models.user import User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input
MAX_PASSWORD_BYTES = 72

bearer_scheme = HTTPBearer(auto_error=False)

if not JWT_SECRET:
    raise ValueError("JWT_SECRET not configured. Create barsuite/config_local.py from config_local.example.py")


def _signing_secret() -> str:
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET not configured")
    return JWT_SECRET


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > MAX_PASSWORD_BYTES:
        raise BadRequestError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
            code="PASSWORD_TOO_LONG",
        )
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Verify password against hash. Accounts without a password never match."""
    if not hashed:
        return False
    if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # Malformed hash in storage
        logger.warning("Stored password hash could not be parsed")
        return False


def _encode(user: User, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "type": token_type,
        "exp": int((now + expires_delta).timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, _signing_secret(), algorithm=ALGORITHM)


def create_access_token(user: User) -> str:
    """Create a short-lived access token for the user."""
    return _encode(user, ACCESS_TOKEN_TYPE, timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(user: User) -> str:
    """Create a long-lived refresh token for the user."""
    return _encode(user, REFRESH_TOKEN_TYPE, timedelta(days=JWT_REFRESH_TOKEN_EXPIRE_DAYS))


def issue_tokens(user: User) -> dict:
    """Access/refresh pair as returned by the auth endpoints."""
    return {
        "access_token": create_access_token(user),
        "refresh_token": create_refresh_token(user),
        "token_type": "bearer",
    }


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """
    Decode and validate a JWT.

    Args:
        token: Encoded JWT string
        expected_type: "access" or "refresh"

    Returns:
        Decoded payload

    Raises:
        InvalidTokenError: If the token is invalid, expired or of the wrong type
    """
    try:
        payload = jwt.decode(token, _signing_secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("Token has expired") from None
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(f"Invalid token: {e}") from None

    if payload.get("type") != expected_type:
        raise InvalidTokenError(f"Expected {expected_type} token")
    if not payload.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return payload


def get_current_user_dependency(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Dependency to get current authenticated user from the Bearer token."""
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_token(credentials.credentials)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = int(payload["sub"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return user


def get_verified_user_dependency(
    current_user: User = Depends(get_current_user_dependency)
) -> User:
    """Dependency requiring a verified email address."""
    if not current_user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email address not verified"
        )
    return current_user


def get_current_admin_user_dependency(
    current_user: User = Depends(get_current_user_dependency)
) -> User:
    """Dependency to get current platform admin user."""
    if not current_user.is_platform_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
