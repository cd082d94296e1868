"""
Audit log model for tracking platform admin actions on user accounts.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from barsuite.core.database import Base


class AuditLog(Base):
    """Audit log for tracking admin actions."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action_type = Column(String(50), nullable=False, index=True)  # 'user_create', 'user_role_update', 'user_status_update', 'user_delete'
    admin_user_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)  # NULL once the admin account is deleted
    target_user_id = Column(Integer, nullable=True, index=True)  # Kept after the target user is deleted
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    admin_user = relationship("User", foreign_keys=[admin_user_id])
