"""
User directory endpoints: profile self-service and platform admin management.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from barsuite.api.auth import UserResponse, user_response
from barsuite.core.auth import get_current_admin_user_dependency, get_current_user_dependency
from barsuite.core.database import get_db
from barsuite.core.ids import parse_id
from barsuite.models.user import User
from barsuite.services import user as user_service

router = APIRouter()


class CreateUserRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    role: Literal['admin', 'user'] = 'user'
    email_verified: bool = False


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    profile_picture_url: Optional[str] = Field(default=None, max_length=1024)


class UpdateRoleRequest(BaseModel):
    role: Literal['admin', 'user']


class UpdateStatusRequest(BaseModel):
    is_active: bool


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int


def _require_self_or_admin(current_user: User, user_id: int) -> None:
    if current_user.id != user_id and not current_user.is_platform_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your own account"
        )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    admin: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Create a user account (platform admin only)."""
    user = user_service.admin_create_user(db, admin, **request.model_dump())
    return user_response(user)


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, description="Search in email and name"),
    role: Optional[Literal['admin', 'user']] = None,
    is_active: Optional[bool] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """List users with filters (platform admin only)."""
    users, total = user_service.list_users(db, search, role, is_active, limit, offset)
    return UserListResponse(users=[user_response(u) for u in users], total=total)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    uid = parse_id(user_id, "User")
    _require_self_or_admin(current_user, uid)
    return user_response(user_service.get_user(db, uid))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    """Update profile fields. Users edit themselves; admins may edit anyone."""
    uid = parse_id(user_id, "User")
    _require_self_or_admin(current_user, uid)
    user = user_service.get_user(db, uid)
    user = user_service.update_profile(db, user, request.model_dump(exclude_unset=True))
    return user_response(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    admin: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Delete a user (platform admin only)."""
    user_service.delete_user(db, admin, parse_id(user_id, "User"))


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    request: UpdateRoleRequest,
    admin: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    user = user_service.update_role(db, admin, parse_id(user_id, "User"), request.role)
    return user_response(user)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    request: UpdateStatusRequest,
    admin: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    user = user_service.update_active_status(db, admin, parse_id(user_id, "User"), request.is_active)
    return user_response(user)
