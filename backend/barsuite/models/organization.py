"""
Organization and OrganizationMember models.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from barsuite.core.database import Base

ROLE_OWNER = 'owner'
ROLE_MANAGER = 'manager'
ROLE_STAFF = 'staff'
ORG_ROLES = (ROLE_OWNER, ROLE_MANAGER, ROLE_STAFF)

# Higher rank means more privilege
ROLE_RANK = {
    ROLE_OWNER: 3,
    ROLE_MANAGER: 2,
    ROLE_STAFF: 1,
}

DEFAULT_SETTINGS = {"default_currency": "EUR"}


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey('subscriptions.id'), nullable=False, unique=True)
    settings = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_SETTINGS))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    owner = relationship("User", foreign_keys=[owner_id])
    subscription = relationship("Subscription", foreign_keys=[subscription_id])
    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")
    invitations = relationship("OrganizationInvitation", back_populates="organization", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('owner_id', 'name', name='uq_organizations_owner_name'),
    )


class OrganizationMember(Base):
    __tablename__ = "organization_members"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    role = Column(String(50), nullable=False)  # 'owner', 'manager' or 'staff'
    invited_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    organization = relationship("Organization", back_populates="members")
    user = relationship("User", foreign_keys=[user_id])
    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_organization_members_org_user'),
    )
