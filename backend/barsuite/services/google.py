"""
Google OAuth sign-in.
"""
import logging
from urllib.parse import urlencode

import requests
from sqlalchemy.orm import Session

from barsuite.core.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
from barsuite.core.exceptions import ForbiddenError, ServiceUnavailableError, UnauthorizedError
from barsuite.models.user import User
from barsuite.services.invitation import process_pending_invitations_for_user
from barsuite.services.user import (
    create_user,
    get_user_by_email,
    get_user_by_google_id,
    link_google_account,
    record_login,
)

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
REQUEST_TIMEOUT = 10


def _require_config():
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise ServiceUnavailableError("Google sign-in is not configured", code="GOOGLE_NOT_CONFIGURED")


def get_authorization_url(state: str | None = None) -> str:
    _require_config()
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "offline",
        "prompt": "select_account",
    }
    if state:
        params["state"] = state
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def fetch_google_profile(code: str) -> dict:
    """
    Exchange an authorization code for the user's Google profile.

    Returns:
        Userinfo dict with at least 'sub' and 'email'

    Raises:
        UnauthorizedError: Google rejected the code or returned no usable profile
    """
    _require_config()
    try:
        token_response = requests.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
            timeout=REQUEST_TIMEOUT,
        )
        token_response.raise_for_status()
        access_token = token_response.json()["access_token"]

        profile_response = requests.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        profile_response.raise_for_status()
        profile = profile_response.json()
    except (requests.RequestException, KeyError, ValueError) as e:
        logger.error(f"Google OAuth exchange failed: {e}")
        raise UnauthorizedError("Google authentication failed", code="GOOGLE_AUTH_FAILED") from e

    if not profile.get("sub") or not profile.get("email"):
        raise UnauthorizedError("Google account has no email address", code="GOOGLE_AUTH_FAILED")
    if profile.get("email_verified") is False:
        raise UnauthorizedError("Google email address is not verified", code="GOOGLE_AUTH_FAILED")
    return profile


def sign_in_with_google_profile(db: Session, profile: dict) -> tuple[User, bool]:
    """
    Find, link or create the account for a Google profile.

    Lookup order is Google id, then email (linking the Google id to an
    existing password account), then a new account.

    Returns:
        (user, created)
    """
    google_id = profile["sub"]
    email = profile["email"]
    picture = profile.get("picture")

    created = False
    user = get_user_by_google_id(db, google_id)
    if not user:
        user = get_user_by_email(db, email)
        if user:
            user = link_google_account(db, user, google_id, picture)
        else:
            user = create_user(
                db,
                email=email,
                first_name=profile.get("given_name"),
                last_name=profile.get("family_name"),
                google_id=google_id,
                profile_picture_url=picture,
                email_verified=True,
            )
            created = True

    if not user.is_active:
        raise ForbiddenError("User account is inactive", code="USER_INACTIVE")

    process_pending_invitations_for_user(db, user, include_pending=created)
    record_login(db, user)
    return user, created
