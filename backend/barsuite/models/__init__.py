"""
Database models.
"""
from barsuite.models.user import User
from barsuite.models.subscription import Subscription
from barsuite.models.organization import Organization, OrganizationMember
from barsuite.models.organization_invitation import OrganizationInvitation
from barsuite.models.audit_log import AuditLog

__all__ = [
    "User",
    "Subscription",
    "Organization",
    "OrganizationMember",
    "OrganizationInvitation",
    "AuditLog",
]
