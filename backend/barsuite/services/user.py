"""
User directory service: account records, credentials and admin changes.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barsuite.core.auth import hash_password, verify_password
from barsuite.core.clock import utcnow, is_expired
from barsuite.core.config import (
    EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS,
    PASSWORD_RESET_TOKEN_EXPIRY_HOURS,
)
from barsuite.core.exceptions import (
    AuthProviderConflictError,
    BadRequestError,
    EmailAlreadyExistsError,
    ForbiddenError,
    InvalidCredentialsError,
    UserDeletionConflictError,
    UserNotFoundError,
)
from barsuite.models.audit_log import AuditLog
from barsuite.models.organization import Organization, OrganizationMember
from barsuite.models.organization_invitation import (
    OrganizationInvitation,
    STATUS_REVOKED,
    UNRESOLVED_STATUSES,
)
from barsuite.models.subscription import Subscription, LIVE_STATUSES
from barsuite.models.user import (
    User,
    SYSTEM_ROLES,
    AUTH_PROVIDER_EMAIL,
    AUTH_PROVIDER_GOOGLE,
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('first_name', 'last_name', 'phone_number', 'profile_picture_url')


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def get_user_by_google_id(db: Session, google_id: str) -> Optional[User]:
    return db.query(User).filter(User.google_id == google_id).first()


def get_user(db: Session, user_id: int) -> User:
    """Get user by ID or raise UserNotFoundError."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFoundError(user_id)
    return user


def create_user(
    db: Session,
    email: str,
    password: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone_number: Optional[str] = None,
    google_id: Optional[str] = None,
    profile_picture_url: Optional[str] = None,
    role: str = 'user',
    email_verified: bool = False,
) -> User:
    """
    Create a user account.

    Either a password or a Google account id is expected; accounts created
    from Google start verified because Google has already confirmed the address.

    Args:
        db: Database session
        email: Login email (unique, compared as-is)
        password: Plain password, hashed before storage
        google_id: Google "sub" claim for OAuth accounts
        role: System role, 'admin' or 'user'

    Returns:
        Created User

    Raises:
        EmailAlreadyExistsError: If the email is already registered
    """
    if role not in SYSTEM_ROLES:
        raise BadRequestError(f"Invalid role. Must be one of: {', '.join(SYSTEM_ROLES)}")

    if get_user_by_email(db, email):
        raise EmailAlreadyExistsError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password) if password else None,
        first_name=first_name,
        last_name=last_name,
        phone_number=phone_number,
        profile_picture_url=profile_picture_url,
        role=role,
        is_active=True,
        email_verified=email_verified,
        auth_provider=AUTH_PROVIDER_GOOGLE if google_id and not password else AUTH_PROVIDER_EMAIL,
        google_id=google_id,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration with the same email
        db.rollback()
        raise EmailAlreadyExistsError(email)
    db.refresh(user)

    logger.info(f"Created user {user.id} ({user.auth_provider})")
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """
    Check email/password credentials.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password
        ForbiddenError: Account is deactivated
    """
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()
    if not user.is_active:
        raise ForbiddenError("User account is inactive", code="USER_INACTIVE")
    return user


def record_login(db: Session, user: User) -> User:
    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    return user


def list_users(
    db: Session,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[User], int]:
    """List users for platform admins. Returns (page, total)."""
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            User.email.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        ))
    total = query.count()
    users = query.order_by(User.id).offset(offset).limit(limit).all()
    return users, total


def update_profile(db: Session, user: User, patch: dict) -> User:
    """Apply profile fields from patch; other keys are ignored."""
    for field in PROFILE_FIELDS:
        if field in patch:
            setattr(user, field, patch[field])
    db.commit()
    db.refresh(user)
    return user


def _audit(db: Session, admin: User, action_type: str, target_user_id: int, details: dict):
    db.add(AuditLog(
        action_type=action_type,
        admin_user_id=admin.id,
        target_user_id=target_user_id,
        details=details,
    ))


def admin_create_user(db: Session, admin: User, **fields) -> User:
    """Create a user on behalf of a platform admin and audit it."""
    user = create_user(db, **fields)
    _audit(db, admin, 'user_create', user.id, {"email": user.email, "role": user.role})
    db.commit()
    return user


def update_role(db: Session, admin: User, user_id: int, role: str) -> User:
    """
    Change a user's system role (platform admin only).

    Raises:
        BadRequestError: Invalid role, or admin targeting their own account
    """
    if role not in SYSTEM_ROLES:
        raise BadRequestError(f"Invalid role. Must be one of: {', '.join(SYSTEM_ROLES)}")
    if admin.id == user_id:
        raise BadRequestError("You cannot change your own role")

    user = get_user(db, user_id)
    previous = user.role
    user.role = role
    _audit(db, admin, 'user_role_update', user.id, {"from": previous, "to": role})
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} changed role of user {user.id}: {previous} -> {role}")
    return user


def update_active_status(db: Session, admin: User, user_id: int, is_active: bool) -> User:
    if admin.id == user_id and not is_active:
        raise BadRequestError("You cannot deactivate your own account")

    user = get_user(db, user_id)
    user.is_active = is_active
    _audit(db, admin, 'user_status_update', user.id, {"is_active": is_active})
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} set is_active={is_active} for user {user.id}")
    return user


def link_google_account(
    db: Session,
    user: User,
    google_id: str,
    picture_url: Optional[str] = None,
) -> User:
    """
    Attach a Google identity to an existing account.

    Raises:
        AuthProviderConflictError: Account already belongs to another external identity
    """
    if user.google_id == google_id:
        return user
    if user.auth_provider != AUTH_PROVIDER_EMAIL or user.google_id:
        raise AuthProviderConflictError(user.email, user.auth_provider)

    user.google_id = google_id
    if picture_url and not user.profile_picture_url:
        user.profile_picture_url = picture_url
    # Google has confirmed ownership of the address
    user.email_verified = True
    db.commit()
    db.refresh(user)

    logger.info(f"Linked Google account to user {user.id}")
    return user


def delete_user(db: Session, admin: User, user_id: int) -> None:
    """
    Remove a user account.

    Refused while the user owns organizations or pays for one, so that no
    organization is left without an owner or a subscription. Otherwise the
    user's memberships and past subscriptions are deleted, unresolved
    invitations addressed to them are revoked and references to them as
    inviter are cleared.

    Raises:
        BadRequestError: Admin deleting their own account
        UserDeletionConflictError: User still owns or pays for organizations
    """
    if admin.id == user_id:
        raise BadRequestError("You cannot delete your own account")

    user = get_user(db, user_id)

    owned = db.query(Organization).filter(Organization.owner_id == user.id).count()
    if owned:
        raise UserDeletionConflictError(
            f"User owns {owned} organization(s); transfer ownership or delete them first"
        )

    subscriptions = db.query(Subscription).filter(Subscription.user_id == user.id).all()
    if any(s.status in LIVE_STATUSES for s in subscriptions):
        raise UserDeletionConflictError("User has a live subscription; cancel it first")
    subscription_ids = [s.id for s in subscriptions]
    if subscription_ids and db.query(Organization).filter(
        Organization.subscription_id.in_(subscription_ids)
    ).count():
        raise UserDeletionConflictError("User's subscription still backs an organization")

    db.query(OrganizationMember).filter(OrganizationMember.user_id == user.id).delete(
        synchronize_session=False
    )
    db.query(OrganizationMember).filter(OrganizationMember.invited_by == user.id).update(
        {OrganizationMember.invited_by: None}, synchronize_session=False
    )
    db.query(OrganizationInvitation).filter(
        OrganizationInvitation.email == user.email,
        OrganizationInvitation.status.in_(UNRESOLVED_STATUSES),
    ).update(
        {OrganizationInvitation.status: STATUS_REVOKED, OrganizationInvitation.responded_at: utcnow()},
        synchronize_session=False,
    )
    db.query(OrganizationInvitation).filter(OrganizationInvitation.invited_by == user.id).update(
        {OrganizationInvitation.invited_by: None}, synchronize_session=False
    )
    db.query(AuditLog).filter(AuditLog.admin_user_id == user.id).update(
        {AuditLog.admin_user_id: None}, synchronize_session=False
    )
    for subscription in subscriptions:
        db.delete(subscription)

    _audit(db, admin, 'user_delete', user.id, {"email": user.email})
    db.delete(user)
    db.commit()

    logger.info(f"Admin {admin.id} deleted user {user_id}")


def change_password(db: Session, user: User, current_password: Optional[str], new_password: str) -> None:
    """Change password; accounts without one (Google-only) may set one directly."""
    if user.hashed_password and not verify_password(current_password or "", user.hashed_password):
        raise BadRequestError("Current password is incorrect")
    user.hashed_password = hash_password(new_password)
    db.commit()


def issue_email_verification(db: Session, user: User) -> str:
    """Generate and store a fresh email verification token."""
    token = secrets.token_urlsafe(32)
    user.email_verification_token = token
    user.email_verification_expires_at = utcnow() + timedelta(hours=EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS)
    db.commit()
    return token


def verify_email(db: Session, token: str) -> User:
    user = db.query(User).filter(User.email_verification_token == token).first()
    if not user or is_expired(user.email_verification_expires_at):
        raise BadRequestError("Invalid or expired verification token", code="INVALID_VERIFICATION_TOKEN")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires_at = None
    db.commit()
    db.refresh(user)
    return user


def issue_password_reset(db: Session, email: str) -> Optional[tuple[User, str]]:
    """
    Store a password reset token for the account with this email.

    Returns None for unknown or inactive accounts; callers respond the same
    way in both cases so the endpoint does not reveal which emails exist.
    """
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    token = secrets.token_urlsafe(32)
    user.password_reset_token = token
    user.password_reset_expires_at = utcnow() + timedelta(hours=PASSWORD_RESET_TOKEN_EXPIRY_HOURS)
    db.commit()
    return user, token


def reset_password(db: Session, token: str, new_password: str) -> User:
    user = db.query(User).filter(User.password_reset_token == token).first()
    if not user or is_expired(user.password_reset_expires_at):
        raise BadRequestError("Invalid or expired reset token", code="INVALID_RESET_TOKEN")

    user.hashed_password = hash_password(new_password)
    user.password_reset_token = None
    user.password_reset_expires_at = None
    db.commit()
    db.refresh(user)
    return user
