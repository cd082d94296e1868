"""
Membership ledger: who belongs to which organization, and with what role.
"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barsuite.core.exceptions import (
    AlreadyMemberError,
    BadRequestError,
    MembershipNotFoundError,
)
from barsuite.models.organization import Organization, OrganizationMember, ROLE_OWNER
from barsuite.models.user import User
from barsuite.services.access import (
    OrgOperation,
    authorize,
    check_can_manage,
    check_role_assignment,
    get_membership,
)
from barsuite.services.user import get_user

logger = logging.getLogger(__name__)


def insert_membership(
    db: Session,
    org_id: int,
    user_id: int,
    role: str,
    invited_by: int | None = None,
) -> OrganizationMember:
    """
    Insert a membership row and commit.

    Relies on the (organization_id, user_id) unique constraint so that two
    concurrent inserts for the same pair end with one Conflict.

    Raises:
        AlreadyMemberError: The user already belongs to the organization
    """
    if get_membership(db, org_id, user_id):
        raise AlreadyMemberError(org_id, f"User \"{user_id}\"")

    member = OrganizationMember(
        organization_id=org_id,
        user_id=user_id,
        role=role,
        invited_by=invited_by,
    )
    db.add(member)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyMemberError(org_id, f"User \"{user_id}\"")
    db.refresh(member)

    logger.info(f"Added user {user_id} to organization {org_id} as {role}")
    return member


def add_member(db: Session, actor: User, org_id: int, user_id: int, role: str) -> OrganizationMember:
    """
    Add an existing user to an organization directly.

    Args:
        db: Database session
        actor: Caller, must be owner or manager
        org_id: Organization ID
        user_id: User to add
        role: 'manager' or 'staff'

    Returns:
        Created OrganizationMember

    Raises:
        OrganizationNotFoundError / UserNotFoundError: Missing organization or user
        AlreadyMemberError: User is already a member
    """
    actor_membership = authorize(db, actor, org_id, OrgOperation.ADD_MEMBER)
    check_role_assignment(actor_membership.role, role)
    get_user(db, user_id)
    return insert_membership(db, org_id, user_id, role, invited_by=actor.id)


def list_members(db: Session, org_id: int) -> list[tuple[OrganizationMember, User]]:
    """Members of an organization with their user records, owner first."""
    rows = db.query(OrganizationMember, User).join(
        User, OrganizationMember.user_id == User.id
    ).filter(
        OrganizationMember.organization_id == org_id
    ).order_by(OrganizationMember.joined_at, OrganizationMember.id).all()
    return sorted(rows, key=lambda row: row[0].role != ROLE_OWNER)


def _get_target_membership(db: Session, org_id: int, user_id: int) -> OrganizationMember:
    membership = get_membership(db, org_id, user_id)
    if not membership:
        raise MembershipNotFoundError(org_id, user_id)
    return membership


def update_member_role(
    db: Session,
    actor: User,
    org_id: int,
    user_id: int,
    new_role: str,
) -> OrganizationMember:
    """
    Change another member's role.

    Raises:
        MembershipNotFoundError: Target is not a member
        OwnerRoleAssignmentError: new_role is 'owner' (use transfer_ownership)
        OwnerRoleModificationError: Target is the owner
    """
    actor_membership = authorize(db, actor, org_id, OrgOperation.CHANGE_MEMBER_ROLE)
    target = _get_target_membership(db, org_id, user_id)
    if target.user_id == actor.id:
        raise BadRequestError("You cannot change your own role")
    check_can_manage(actor_membership, target)
    check_role_assignment(actor_membership.role, new_role)

    previous = target.role
    target.role = new_role
    db.commit()
    db.refresh(target)

    logger.info(f"User {actor.id} changed role of user {user_id} in org {org_id}: {previous} -> {new_role}")
    return target


def remove_member(db: Session, actor: User, org_id: int, user_id: int) -> None:
    """Remove another member from an organization."""
    actor_membership = authorize(db, actor, org_id, OrgOperation.REMOVE_MEMBER)
    target = _get_target_membership(db, org_id, user_id)
    if target.user_id == actor.id:
        raise BadRequestError("You cannot remove yourself; leave the organization instead")
    check_can_manage(actor_membership, target)

    db.delete(target)
    db.commit()

    logger.info(f"User {actor.id} removed user {user_id} from org {org_id}")


def leave_organization(db: Session, user: User, org_id: int) -> None:
    membership = authorize(db, user, org_id, OrgOperation.LEAVE_ORGANIZATION)
    if membership.role == ROLE_OWNER:
        raise BadRequestError("The owner cannot leave the organization; transfer ownership first")

    db.delete(membership)
    db.commit()

    logger.info(f"User {user.id} left organization {org_id}")


def list_memberships_for_user(db: Session, user_id: int) -> list[tuple[OrganizationMember, Organization]]:
    return db.query(OrganizationMember, Organization).join(
        Organization, OrganizationMember.organization_id == Organization.id
    ).filter(
        OrganizationMember.user_id == user_id
    ).order_by(Organization.name).all()


def view_members(db: Session, actor: User, org_id: int) -> list[tuple[OrganizationMember, User]]:
    authorize(db, actor, org_id, OrgOperation.VIEW_MEMBERS)
    return list_members(db, org_id)
