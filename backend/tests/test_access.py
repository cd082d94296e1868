"""Tests for organization access control."""

from __future__ import annotations

import pytest

from barsuite.core.exceptions import (
    BadRequestError,
    ForbiddenError,
    InsufficientOrganizationRoleError,
    NotOrganizationMemberError,
    OrganizationNotFoundError,
    OwnerRoleAssignmentError,
    OwnerRoleModificationError,
)
from barsuite.models.organization import OrganizationMember
from barsuite.services import access
from barsuite.services.access import ORG_OPERATION_ROLES, OrgOperation


class TestOperationTable:
    """Tests for the static operation -> roles table."""

    def test_every_operation_has_roles(self) -> None:
        """Test that no operation is left without an entry."""
        assert set(ORG_OPERATION_ROLES) == set(OrgOperation)

    @pytest.mark.parametrize(
        "operation",
        [
            OrgOperation.UPDATE_ORGANIZATION,
            OrgOperation.DELETE_ORGANIZATION,
            OrgOperation.TRANSFER_OWNERSHIP,
        ],
    )
    def test_owner_only_operations(self, operation: OrgOperation) -> None:
        """Test operations reserved to the owner."""
        assert ORG_OPERATION_ROLES[operation] == ("owner",)

    def test_staff_cannot_manage_people(self) -> None:
        """Test that staff only has read and leave operations."""
        staff_ops = {op for op, roles in ORG_OPERATION_ROLES.items() if "staff" in roles}
        assert staff_ops == {
            OrgOperation.VIEW_ORGANIZATION,
            OrgOperation.VIEW_MEMBERS,
            OrgOperation.LEAVE_ORGANIZATION,
        }


class TestAuthorize:
    """Tests for authorize."""

    def test_owner_allowed(self, db, make_user, make_org) -> None:
        """Test that the owner passes owner-only checks."""
        owner = make_user()
        org = make_org(owner)

        membership = access.authorize(db, owner, org.id, OrgOperation.DELETE_ORGANIZATION)

        assert membership.role == "owner"

    def test_missing_organization(self, db, make_user) -> None:
        """Test that an unknown organization is not found rather than forbidden."""
        user = make_user()

        with pytest.raises(OrganizationNotFoundError):
            access.authorize(db, user, 4242, OrgOperation.VIEW_ORGANIZATION)

    def test_non_member(self, db, make_user, make_org) -> None:
        """Test that outsiders are forbidden."""
        org = make_org(make_user())
        outsider = make_user()

        with pytest.raises(NotOrganizationMemberError) as exc_info:
            access.authorize(db, outsider, org.id, OrgOperation.VIEW_ORGANIZATION)

        assert exc_info.value.status_code == 403

    def test_platform_admin_gets_no_org_privilege(self, db, make_user, make_org) -> None:
        """Test that the platform admin role does not open organizations."""
        org = make_org(make_user())
        admin = make_user(role="admin")

        with pytest.raises(NotOrganizationMemberError):
            access.authorize(db, admin, org.id, OrgOperation.VIEW_MEMBERS)

    def test_insufficient_role(self, db, make_user, make_org) -> None:
        """Test that a manager cannot run owner-only operations."""
        owner = make_user()
        manager = make_user()
        org = make_org(owner)
        db.add(OrganizationMember(organization_id=org.id, user_id=manager.id, role="manager"))
        db.commit()

        with pytest.raises(InsufficientOrganizationRoleError) as exc_info:
            access.authorize(db, manager, org.id, OrgOperation.UPDATE_ORGANIZATION)

        assert "owner" in exc_info.value.message


class TestRoleAssignment:
    """Tests for check_role_assignment and check_can_manage."""

    @pytest.mark.parametrize("actor_role", ["owner", "manager"])
    def test_owner_role_never_assignable(self, actor_role: str) -> None:
        """Test that 'owner' can only be reached through transfer."""
        with pytest.raises(OwnerRoleAssignmentError):
            access.check_role_assignment(actor_role, "owner")

    def test_unknown_role(self) -> None:
        """Test that unknown roles are rejected."""
        with pytest.raises(BadRequestError):
            access.check_role_assignment("owner", "bartender")

    def test_staff_assigns_nothing(self) -> None:
        """Test that staff cannot grant roles."""
        with pytest.raises(ForbiddenError):
            access.check_role_assignment("staff", "staff")

    def test_manager_assigns_manager_and_staff(self) -> None:
        """Test manager grants."""
        access.check_role_assignment("manager", "manager")
        access.check_role_assignment("manager", "staff")

    def test_owner_membership_is_untouchable(self) -> None:
        """Test that nobody manages the owner's membership."""
        actor = OrganizationMember(role="owner")
        target = OrganizationMember(role="owner")

        with pytest.raises(OwnerRoleModificationError):
            access.check_can_manage(actor, target)

    @pytest.mark.parametrize(
        ("actor_role", "target_role", "allowed"),
        [
            ("owner", "manager", True),
            ("owner", "staff", True),
            ("manager", "staff", True),
            ("manager", "manager", False),
            ("staff", "staff", False),
        ],
    )
    def test_rank_rules(self, actor_role: str, target_role: str, allowed: bool) -> None:
        """Test that only strictly higher ranks manage a member."""
        actor = OrganizationMember(role=actor_role)
        target = OrganizationMember(role=target_role)

        if allowed:
            access.check_can_manage(actor, target)
        else:
            with pytest.raises(ForbiddenError):
                access.check_can_manage(actor, target)
