"""
Invitation workflow: email-addressed invitations that become memberships.

Invitation statuses:
    pending -> accepted                       (invitee accepts while logged in)
    pending -> accepted_pending_registration  (accepted from the public link
                                               before an account exists)
    accepted_pending_registration -> accepted (account is created or logs in)
    pending -> declined | revoked

Expiry is never written to the row. An invitation past ``expires_at`` is
simply treated as missing by every read and accept path.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barsuite.core.clock import utcnow, is_expired
from barsuite.core.config import INVITATION_EXPIRY_DAYS
from barsuite.core.exceptions import (
    AlreadyMemberError,
    BadRequestError,
    ForbiddenError,
    InvitationAlreadyExistsError,
    InvitationNotFoundError,
)
from barsuite.models.organization import Organization, OrganizationMember
from barsuite.models.organization_invitation import (
    OrganizationInvitation,
    STATUS_PENDING,
    STATUS_ACCEPTED,
    STATUS_ACCEPTED_PENDING_REGISTRATION,
    STATUS_DECLINED,
    STATUS_REVOKED,
    UNRESOLVED_STATUSES,
)
from barsuite.models.user import User
from barsuite.services.access import (
    OrgOperation,
    authorize,
    check_role_assignment,
    get_membership,
)
from barsuite.services.email import send_invitation_email
from barsuite.services.user import get_user_by_email

logger = logging.getLogger(__name__)


def invite(db: Session, actor: User, org_id: int, email: str, role: str) -> OrganizationInvitation:
    """
    Invite an email address to join an organization.

    Args:
        db: Database session
        actor: Inviting member (owner or manager)
        org_id: Organization ID
        email: Invitee email; no account is required
        role: Proposed role, 'manager' or 'staff'

    Returns:
        Created OrganizationInvitation

    Raises:
        OrganizationNotFoundError: Organization does not exist
        AlreadyMemberError: Email belongs to an existing member
        InvitationAlreadyExistsError: An unexpired invitation is already open
    """
    actor_membership = authorize(db, actor, org_id, OrgOperation.INVITE_MEMBER)
    check_role_assignment(actor_membership.role, role)

    existing_user = get_user_by_email(db, email)
    if existing_user and get_membership(db, org_id, existing_user.id):
        raise AlreadyMemberError(org_id, email)

    open_invitations = db.query(OrganizationInvitation).filter(
        OrganizationInvitation.organization_id == org_id,
        OrganizationInvitation.email == email,
        OrganizationInvitation.status.in_(UNRESOLVED_STATUSES)
    ).all()
    for open_invitation in open_invitations:
        if not is_expired(open_invitation.expires_at):
            raise InvitationAlreadyExistsError(email)
        # Retire the stale row so the pending-uniqueness index allows a new one
        open_invitation.status = STATUS_REVOKED
        open_invitation.responded_at = utcnow()

    invitation = OrganizationInvitation(
        organization_id=org_id,
        email=email,
        token=secrets.token_urlsafe(32),
        role=role,
        status=STATUS_PENDING,
        invited_by=actor.id,
        expires_at=utcnow() + timedelta(days=INVITATION_EXPIRY_DAYS),
    )
    db.add(invitation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvitationAlreadyExistsError(email)
    db.refresh(invitation)

    logger.info(f"User {actor.id} invited {email} to organization {org_id} as {role}")

    organization = db.query(Organization).filter(Organization.id == org_id).first()
    sent = send_invitation_email(
        email=email,
        token=invitation.token,
        organization_name=organization.name,
        role=role,
        inviter_name=actor.full_name or actor.email,
    )
    if not sent:
        # The invitation stays valid; it is still listed for the invitee after login
        logger.warning(f"Invitation {invitation.id} created but email to {email} was not sent")

    return invitation


def _get_open_invitation(
    db: Session,
    token: Optional[str] = None,
    invitation_id: Optional[int] = None,
    statuses: tuple = (STATUS_PENDING,),
) -> OrganizationInvitation:
    if token is None and invitation_id is None:
        raise BadRequestError("Either token or invitation_id is required")

    query = db.query(OrganizationInvitation)
    if token is not None:
        query = query.filter(OrganizationInvitation.token == token)
    else:
        query = query.filter(OrganizationInvitation.id == invitation_id)
    invitation = query.first()

    if not invitation or invitation.status not in statuses or is_expired(invitation.expires_at):
        raise InvitationNotFoundError()
    return invitation


def get_invitation_preview(db: Session, token: str) -> OrganizationInvitation:
    """Open invitation by token, for the public invitation page."""
    return _get_open_invitation(db, token=token, statuses=UNRESOLVED_STATUSES)


def _convert_to_membership(db: Session, invitation: OrganizationInvitation, user: User) -> OrganizationMember:
    """Create the membership for an invitation and mark it accepted in one commit."""
    now = utcnow()
    existing = get_membership(db, invitation.organization_id, user.id)
    if existing:
        invitation.status = STATUS_ACCEPTED
        invitation.accepted_at = now
        db.commit()
        return existing

    member = OrganizationMember(
        organization_id=invitation.organization_id,
        user_id=user.id,
        role=invitation.role,
        invited_by=invitation.invited_by,
    )
    db.add(member)
    invitation.status = STATUS_ACCEPTED
    invitation.accepted_at = now
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyMemberError(invitation.organization_id, user.email)
    db.refresh(member)

    logger.info(
        f"User {user.id} joined organization {invitation.organization_id} "
        f"as {invitation.role} via invitation {invitation.id}"
    )
    return member


def accept_invitation(
    db: Session,
    user: User,
    token: Optional[str] = None,
    invitation_id: Optional[int] = None,
) -> OrganizationMember:
    """
    Accept an invitation as the logged-in user.

    Raises:
        InvitationNotFoundError: Unknown, already resolved or expired invitation
        ForbiddenError: Invitation was addressed to another email
    """
    invitation = _get_open_invitation(db, token, invitation_id, statuses=UNRESOLVED_STATUSES)
    if invitation.email != user.email:
        raise ForbiddenError("This invitation was sent to a different email address")
    return _convert_to_membership(db, invitation, user)


def accept_invitation_anonymously(db: Session, token: str) -> OrganizationInvitation:
    """
    Record acceptance from the public link before the invitee has an account.

    The membership is created when an account with the invited email is
    registered (see process_pending_invitations_for_user).
    """
    invitation = _get_open_invitation(db, token=token)
    if get_user_by_email(db, invitation.email):
        raise BadRequestError(
            "An account already exists for this email; log in to accept the invitation",
            code="LOGIN_REQUIRED",
        )

    invitation.status = STATUS_ACCEPTED_PENDING_REGISTRATION
    invitation.responded_at = utcnow()
    db.commit()
    db.refresh(invitation)

    logger.info(f"Invitation {invitation.id} accepted pending registration")
    return invitation


def decline_invitation(
    db: Session,
    token: Optional[str] = None,
    invitation_id: Optional[int] = None,
    user: Optional[User] = None,
) -> OrganizationInvitation:
    invitation = _get_open_invitation(db, token, invitation_id)
    if user is not None and invitation.email != user.email:
        raise ForbiddenError("This invitation was sent to a different email address")

    invitation.status = STATUS_DECLINED
    invitation.responded_at = utcnow()
    db.commit()
    db.refresh(invitation)

    logger.info(f"Invitation {invitation.id} declined")
    return invitation


def revoke_invitation(db: Session, actor: User, org_id: int, invitation_id: int) -> OrganizationInvitation:
    """Withdraw an open invitation (owner or manager)."""
    authorize(db, actor, org_id, OrgOperation.REVOKE_INVITATION)
    invitation = db.query(OrganizationInvitation).filter(
        OrganizationInvitation.id == invitation_id,
        OrganizationInvitation.organization_id == org_id
    ).first()
    if not invitation or invitation.status not in UNRESOLVED_STATUSES:
        raise InvitationNotFoundError()

    invitation.status = STATUS_REVOKED
    invitation.responded_at = utcnow()
    db.commit()
    db.refresh(invitation)

    logger.info(f"User {actor.id} revoked invitation {invitation_id} in org {org_id}")
    return invitation


def list_pending_for_email(db: Session, email: str) -> list[OrganizationInvitation]:
    """Unexpired pending invitations addressed to email."""
    invitations = db.query(OrganizationInvitation).filter(
        OrganizationInvitation.email == email,
        OrganizationInvitation.status == STATUS_PENDING
    ).order_by(OrganizationInvitation.created_at.desc()).all()
    return [inv for inv in invitations if not is_expired(inv.expires_at)]


def list_pending_for_organization(db: Session, actor: User, org_id: int) -> list[OrganizationInvitation]:
    authorize(db, actor, org_id, OrgOperation.VIEW_INVITATIONS)
    invitations = db.query(OrganizationInvitation).filter(
        OrganizationInvitation.organization_id == org_id,
        OrganizationInvitation.status.in_(UNRESOLVED_STATUSES)
    ).order_by(OrganizationInvitation.created_at.desc()).all()
    return [inv for inv in invitations if not is_expired(inv.expires_at)]


def process_pending_invitations_for_user(db: Session, user: User, include_pending: bool = True) -> int:
    """
    Turn open invitations for the user's email into memberships.

    Called right after an account is created (include_pending=True) and after
    login (include_pending=False, so only invitations already accepted from
    the public link are applied). Never raises: each failure is logged and
    the remaining invitations are still processed.

    Returns:
        Number of memberships created or confirmed
    """
    user_id, email = user.id, user.email
    statuses = UNRESOLVED_STATUSES if include_pending else (STATUS_ACCEPTED_PENDING_REGISTRATION,)
    try:
        invitations = db.query(OrganizationInvitation).filter(
            OrganizationInvitation.email == email,
            OrganizationInvitation.status.in_(statuses)
        ).all()
    except Exception as e:
        logger.error(f"Failed to load invitations for user {user_id}: {e}", exc_info=True)
        db.rollback()
        return 0

    processed = 0
    for invitation in invitations:
        if is_expired(invitation.expires_at):
            continue
        invitation_id = invitation.id
        try:
            _convert_to_membership(db, invitation, user)
            processed += 1
        except Exception as e:
            db.rollback()
            logger.warning(
                f"Failed to process invitation {invitation_id} for user {user_id}: {e}",
                exc_info=True
            )

    if processed:
        logger.info(f"Processed {processed} invitation(s) for user {user_id}")
    return processed
