"""
Organization management endpoints: organizations, members and invitations.

Role checks happen in the service layer (barsuite.services.access); these
handlers only translate HTTP input and shape responses.
"""
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from barsuite.core.auth import get_verified_user_dependency
from barsuite.core.database import get_db
from barsuite.core.ids import parse_id
from barsuite.models.organization import Organization, OrganizationMember
from barsuite.models.organization_invitation import OrganizationInvitation
from barsuite.models.user import User
from barsuite.services import invitation as invitation_service
from barsuite.services import membership as membership_service
from barsuite.services import organization as organization_service

router = APIRouter()

AssignableRole = Literal['manager', 'staff']


class OrganizationSettings(BaseModel):
    default_currency: str = Field(default="EUR", pattern=r"^[A-Z]{3}$")


class OrganizationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    subscription_id: Optional[str] = None
    settings: Optional[OrganizationSettings] = None


class OrganizationUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    settings: Optional[OrganizationSettings] = None


class AddMemberRequest(BaseModel):
    user_id: str
    role: AssignableRole = 'staff'


class UpdateMemberRoleRequest(BaseModel):
    # 'owner' is accepted here so the service can reject it with a clear error
    role: Literal['owner', 'manager', 'staff']


class TransferOwnershipRequest(BaseModel):
    user_id: str


class InviteRequest(BaseModel):
    email: EmailStr
    role: AssignableRole = 'staff'


class OrganizationResponse(BaseModel):
    id: str
    name: str
    owner_id: str
    subscription_id: str
    settings: dict
    role: Optional[str] = None  # Caller's role in this organization
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MemberResponse(BaseModel):
    user_id: str
    organization_id: str
    role: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    profile_picture_url: Optional[str] = None
    invited_by: Optional[str] = None
    joined_at: Optional[datetime] = None


class InvitationResponse(BaseModel):
    """Invitation without its token; the token only travels by email."""
    id: str
    organization_id: str
    organization_name: Optional[str] = None
    email: str
    role: str
    status: str
    invited_by: Optional[str] = None
    expires_at: datetime
    created_at: Optional[datetime] = None


def organization_response(organization: Organization, role: Optional[str] = None) -> OrganizationResponse:
    return OrganizationResponse(
        id=str(organization.id),
        name=organization.name,
        owner_id=str(organization.owner_id),
        subscription_id=str(organization.subscription_id),
        settings=organization.settings or {},
        role=role,
        created_at=organization.created_at,
        updated_at=organization.updated_at,
    )


def member_response(member: OrganizationMember, user: Optional[User] = None) -> MemberResponse:
    user = user or member.user
    return MemberResponse(
        user_id=str(member.user_id),
        organization_id=str(member.organization_id),
        role=member.role,
        email=user.email if user else None,
        first_name=user.first_name if user else None,
        last_name=user.last_name if user else None,
        full_name=user.full_name if user else None,
        profile_picture_url=user.profile_picture_url if user else None,
        invited_by=str(member.invited_by) if member.invited_by else None,
        joined_at=member.joined_at,
    )


def invitation_response(invitation: OrganizationInvitation) -> InvitationResponse:
    return InvitationResponse(
        id=str(invitation.id),
        organization_id=str(invitation.organization_id),
        organization_name=invitation.organization.name if invitation.organization else None,
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        invited_by=str(invitation.invited_by) if invitation.invited_by else None,
        expires_at=invitation.expires_at,
        created_at=invitation.created_at,
    )


def _settings_dict(settings: Optional[OrganizationSettings]) -> Optional[dict]:
    return settings.model_dump() if settings else None


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    request: OrganizationCreateRequest,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    """Create an organization; the caller becomes its owner."""
    subscription_id = parse_id(request.subscription_id, "Subscription") if request.subscription_id else None
    organization = organization_service.create_organization(
        db,
        owner=current_user,
        name=request.name,
        subscription_id=subscription_id,
        settings=_settings_dict(request.settings),
    )
    return organization_response(organization, role='owner')


@router.get("", response_model=List[OrganizationResponse])
async def list_my_organizations(
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    """Organizations the caller belongs to, with the caller's role."""
    rows = membership_service.list_memberships_for_user(db, current_user.id)
    return [organization_response(org, role=member.role) for member, org in rows]


@router.get("/{org_id}", response_model=OrganizationResponse)
async def get_organization(
    org_id: str,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    organization, membership = organization_service.view_organization(
        db, current_user, parse_id(org_id, "Organization")
    )
    return organization_response(organization, role=membership.role)


@router.patch("/{org_id}", response_model=OrganizationResponse)
async def update_organization(
    org_id: str,
    request: OrganizationUpdateRequest,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    """Rename the organization or change its settings (owner only)."""
    patch = {"name": request.name, "settings": _settings_dict(request.settings)}
    organization = organization_service.update_organization(
        db, current_user, parse_id(org_id, "Organization"), patch
    )
    return organization_response(organization, role='owner')


@router.delete("/{org_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    org_id: str,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    organization_service.delete_organization(db, current_user, parse_id(org_id, "Organization"))


@router.post("/{org_id}/transfer-ownership", response_model=OrganizationResponse)
async def transfer_ownership(
    org_id: str,
    request: TransferOwnershipRequest,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    organization = organization_service.transfer_ownership(
        db,
        current_user,
        parse_id(org_id, "Organization"),
        parse_id(request.user_id, "User"),
    )
    return organization_response(organization, role='manager')


@router.post("/{org_id}/leave", response_model=dict)
async def leave_organization(
    org_id: str,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    membership_service.leave_organization(db, current_user, parse_id(org_id, "Organization"))
    return {"success": True, "message": "You have left the organization"}


# Members

@router.post("/{org_id}/users", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    org_id: str,
    request: AddMemberRequest,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    member = membership_service.add_member(
        db,
        current_user,
        parse_id(org_id, "Organization"),
        parse_id(request.user_id, "User"),
        request.role,
    )
    return member_response(member)


@router.get("/{org_id}/users", response_model=List[MemberResponse])
async def list_members(
    org_id: str,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    oid = parse_id(org_id, "Organization")
    return [member_response(member, user) for member, user in membership_service.view_members(db, current_user, oid)]


@router.patch("/{org_id}/users/{user_id}", response_model=MemberResponse)
async def update_member_role(
    org_id: str,
    user_id: str,
    request: UpdateMemberRoleRequest,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    member = membership_service.update_member_role(
        db,
        current_user,
        parse_id(org_id, "Organization"),
        parse_id(user_id, "User"),
        request.role,
    )
    return member_response(member)


@router.delete("/{org_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    org_id: str,
    user_id: str,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    membership_service.remove_member(
        db, current_user, parse_id(org_id, "Organization"), parse_id(user_id, "User")
    )


# Invitations

@router.post("/{org_id}/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    org_id: str,
    request: InviteRequest,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    """Invite an email address; no account is needed yet."""
    invitation = invitation_service.invite(
        db, current_user, parse_id(org_id, "Organization"), request.email, request.role
    )
    return invitation_response(invitation)


@router.get("/{org_id}/invitations", response_model=List[InvitationResponse])
async def list_invitations(
    org_id: str,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    invitations = invitation_service.list_pending_for_organization(
        db, current_user, parse_id(org_id, "Organization")
    )
    return [invitation_response(inv) for inv in invitations]


@router.delete("/{org_id}/invitations/{invitation_id}", response_model=InvitationResponse)
async def revoke_invitation(
    org_id: str,
    invitation_id: str,
    current_user: User = Depends(get_verified_user_dependency),
    db: Session = Depends(get_db)
):
    invitation = invitation_service.revoke_invitation(
        db,
        current_user,
        parse_id(org_id, "Organization"),
        parse_id(invitation_id, "Invitation"),
    )
    return invitation_response(invitation)
