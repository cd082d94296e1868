"""
OrganizationInvitation model for email-based invitations.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from barsuite.core.database import Base

STATUS_PENDING = 'pending'
STATUS_ACCEPTED_PENDING_REGISTRATION = 'accepted_pending_registration'
STATUS_ACCEPTED = 'accepted'
STATUS_DECLINED = 'declined'
STATUS_REVOKED = 'revoked'

# Statuses that still wait for a membership to be created
UNRESOLVED_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED_PENDING_REGISTRATION)


class OrganizationInvitation(Base):
    __tablename__ = "organization_invitations"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey('organizations.id'), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    token = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(50), nullable=False)  # 'manager' or 'staff'
    status = Column(String(50), nullable=False, default=STATUS_PENDING, index=True)
    invited_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    organization = relationship("Organization", back_populates="invitations")
    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        # At most one pending invitation per (organization, email)
        Index(
            'uq_organization_invitations_pending',
            'organization_id', 'email',
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )
