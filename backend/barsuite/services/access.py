"""
Organization-level access control.

Each organization operation has a fixed set of member roles allowed to run
it. ``authorize`` resolves the caller's membership and checks it against
that set before any state is touched. The platform ``admin`` role is not
consulted here; it guards user-directory routes only.
"""
import enum
import logging

from sqlalchemy.orm import Session

from barsuite.core.exceptions import (
    BadRequestError,
    ForbiddenError,
    InsufficientOrganizationRoleError,
    NotOrganizationMemberError,
    OrganizationNotFoundError,
    OwnerRoleAssignmentError,
    OwnerRoleModificationError,
)
from barsuite.models.organization import (
    Organization,
    OrganizationMember,
    ROLE_OWNER,
    ROLE_MANAGER,
    ROLE_STAFF,
    ORG_ROLES,
    ROLE_RANK,
)
from barsuite.models.user import User

logger = logging.getLogger(__name__)


class OrgOperation(str, enum.Enum):
    VIEW_ORGANIZATION = "view_organization"
    UPDATE_ORGANIZATION = "update_organization"
    DELETE_ORGANIZATION = "delete_organization"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    VIEW_MEMBERS = "view_members"
    ADD_MEMBER = "add_member"
    CHANGE_MEMBER_ROLE = "change_member_role"
    REMOVE_MEMBER = "remove_member"
    LEAVE_ORGANIZATION = "leave_organization"
    INVITE_MEMBER = "invite_member"
    VIEW_INVITATIONS = "view_invitations"
    REVOKE_INVITATION = "revoke_invitation"


_ALL_ROLES = (ROLE_OWNER, ROLE_MANAGER, ROLE_STAFF)
_OWNER_AND_MANAGER = (ROLE_OWNER, ROLE_MANAGER)

ORG_OPERATION_ROLES: dict[OrgOperation, tuple[str, ...]] = {
    OrgOperation.VIEW_ORGANIZATION: _ALL_ROLES,
    OrgOperation.VIEW_MEMBERS: _ALL_ROLES,
    OrgOperation.LEAVE_ORGANIZATION: _ALL_ROLES,
    OrgOperation.UPDATE_ORGANIZATION: (ROLE_OWNER,),
    OrgOperation.DELETE_ORGANIZATION: (ROLE_OWNER,),
    OrgOperation.TRANSFER_OWNERSHIP: (ROLE_OWNER,),
    OrgOperation.ADD_MEMBER: _OWNER_AND_MANAGER,
    OrgOperation.CHANGE_MEMBER_ROLE: _OWNER_AND_MANAGER,
    OrgOperation.REMOVE_MEMBER: _OWNER_AND_MANAGER,
    OrgOperation.INVITE_MEMBER: _OWNER_AND_MANAGER,
    OrgOperation.VIEW_INVITATIONS: _OWNER_AND_MANAGER,
    OrgOperation.REVOKE_INVITATION: _OWNER_AND_MANAGER,
}

# Roles an actor may hand out (add, invite or role change)
ASSIGNABLE_ROLES: dict[str, tuple[str, ...]] = {
    ROLE_OWNER: (ROLE_MANAGER, ROLE_STAFF),
    ROLE_MANAGER: (ROLE_MANAGER, ROLE_STAFF),
    ROLE_STAFF: (),
}


def get_membership(db: Session, org_id: int, user_id: int) -> OrganizationMember | None:
    return db.query(OrganizationMember).filter(
        OrganizationMember.organization_id == org_id,
        OrganizationMember.user_id == user_id
    ).first()


def authorize(db: Session, actor: User, org_id: int, operation: OrgOperation) -> OrganizationMember:
    """
    Check that actor may run operation in the organization.

    Args:
        db: Database session
        actor: Authenticated caller
        org_id: Target organization
        operation: Operation being attempted

    Returns:
        The caller's membership row

    Raises:
        OrganizationNotFoundError: Organization does not exist
        NotOrganizationMemberError: Caller has no membership
        InsufficientOrganizationRoleError: Caller's role is not allowed
    """
    if not db.query(Organization.id).filter(Organization.id == org_id).first():
        raise OrganizationNotFoundError(org_id)

    membership = get_membership(db, org_id, actor.id)
    if not membership:
        logger.info(f"User {actor.id} denied {operation.value} on org {org_id}: not a member")
        raise NotOrganizationMemberError()

    allowed = ORG_OPERATION_ROLES[operation]
    if membership.role not in allowed:
        logger.info(
            f"User {actor.id} denied {operation.value} on org {org_id}: role {membership.role}"
        )
        raise InsufficientOrganizationRoleError(allowed)

    return membership


def check_role_assignment(actor_role: str, new_role: str) -> None:
    """Validate that a member with actor_role may grant new_role."""
    if new_role not in ORG_ROLES:
        raise BadRequestError(f"Invalid role. Must be one of: {', '.join(ORG_ROLES)}")
    if new_role == ROLE_OWNER:
        raise OwnerRoleAssignmentError()
    allowed = ASSIGNABLE_ROLES.get(actor_role, ())
    if new_role not in allowed:
        raise ForbiddenError(
            f"Role {actor_role} may only assign: {', '.join(allowed) or 'none'}",
            code="ROLE_ASSIGNMENT_DENIED",
        )


def check_can_manage(actor_membership: OrganizationMember, target_membership: OrganizationMember) -> None:
    """
    Validate that the actor may change or remove the target member.

    The owner can never be changed or removed this way, and other members
    can only be managed by someone of strictly higher rank.
    """
    if target_membership.role == ROLE_OWNER:
        raise OwnerRoleModificationError()
    if ROLE_RANK[actor_membership.role] <= ROLE_RANK[target_membership.role]:
        raise ForbiddenError(
            f"Role {actor_membership.role} cannot manage members with role {target_membership.role}",
            code="MEMBER_MANAGEMENT_DENIED",
        )
