"""
User model for authentication and the user directory.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from barsuite.core.database import Base

SYSTEM_ROLE_ADMIN = 'admin'
SYSTEM_ROLE_USER = 'user'
SYSTEM_ROLES = (SYSTEM_ROLE_ADMIN, SYSTEM_ROLE_USER)

AUTH_PROVIDER_EMAIL = 'email'
AUTH_PROVIDER_GOOGLE = 'google'


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)  # NULL for Google-only accounts
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone_number = Column(String(50), nullable=True)
    profile_picture_url = Column(String(1024), nullable=True)
    role = Column(String(50), nullable=False, default=SYSTEM_ROLE_USER)  # 'admin' (platform admin) or 'user'
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_token = Column(String(255), nullable=True, index=True)
    email_verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_token = Column(String(255), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)
    auth_provider = Column(String(20), nullable=False, default=AUTH_PROVIDER_EMAIL)
    google_id = Column(String(255), unique=True, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def full_name(self) -> str | None:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None

    def is_platform_admin(self) -> bool:
        """Check if user is platform admin."""
        return self.role == SYSTEM_ROLE_ADMIN
