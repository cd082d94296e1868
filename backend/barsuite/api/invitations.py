"""
Invitee-side invitation endpoints.

Logged-in users list and answer invitations addressed to their email. The
public routes serve the link sent by email, before the invitee has an account.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from barsuite.api.organizations import (
    InvitationResponse,
    MemberResponse,
    invitation_response,
    member_response,
)
from barsuite.core.auth import get_current_user_dependency
from barsuite.core.database import get_db
from barsuite.core.ids import parse_id
from barsuite.models.user import User
from barsuite.services import invitation as invitation_service
from barsuite.services.user import get_user_by_email

router = APIRouter()


class InvitationActionRequest(BaseModel):
    token: Optional[str] = None
    invitation_id: Optional[str] = None


class InvitationPreviewResponse(BaseModel):
    organization_name: str
    email: str
    role: str
    inviter_name: Optional[str] = None
    account_exists: bool


def _invitation_id(request: InvitationActionRequest) -> Optional[int]:
    return parse_id(request.invitation_id, "Invitation") if request.invitation_id else None


@router.get("", response_model=List[InvitationResponse])
async def list_my_invitations(
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    """Pending invitations addressed to the caller's email."""
    invitations = invitation_service.list_pending_for_email(db, current_user.email)
    return [invitation_response(inv) for inv in invitations]


@router.post("/accept", response_model=MemberResponse)
async def accept_invitation(
    request: InvitationActionRequest,
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    member = invitation_service.accept_invitation(
        db, current_user, token=request.token, invitation_id=_invitation_id(request)
    )
    return member_response(member)


@router.post("/decline", response_model=InvitationResponse)
async def decline_invitation(
    request: InvitationActionRequest,
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    invitation = invitation_service.decline_invitation(
        db, token=request.token, invitation_id=_invitation_id(request), user=current_user
    )
    return invitation_response(invitation)


# Public link (no authentication)

@router.get("/public/{token}", response_model=InvitationPreviewResponse)
async def preview_invitation(
    token: str,
    db: Session = Depends(get_db)
):
    """What the invitation link shows before the invitee decides."""
    invitation = invitation_service.get_invitation_preview(db, token)
    inviter = invitation.inviter
    return InvitationPreviewResponse(
        organization_name=invitation.organization.name,
        email=invitation.email,
        role=invitation.role,
        inviter_name=(inviter.full_name or inviter.email) if inviter else None,
        account_exists=get_user_by_email(db, invitation.email) is not None,
    )


@router.post("/public/{token}/accept", response_model=InvitationResponse)
async def accept_invitation_public(
    token: str,
    db: Session = Depends(get_db)
):
    """Accept before registering; membership is created once the account exists."""
    invitation = invitation_service.accept_invitation_anonymously(db, token)
    return invitation_response(invitation)


@router.post("/public/{token}/decline", response_model=InvitationResponse)
async def decline_invitation_public(
    token: str,
    db: Session = Depends(get_db)
):
    invitation = invitation_service.decline_invitation(db, token=token)
    return invitation_response(invitation)
