"""
Subscription model mirroring the billing provider's subscription.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from barsuite.core.database import Base

STATUS_PENDING = 'pending'
STATUS_TRIAL = 'trial'
STATUS_ACTIVE = 'active'
STATUS_SUSPENDED = 'suspended'
STATUS_CANCELED = 'canceled'

TERMINAL_STATUSES = (STATUS_CANCELED,)
LIVE_STATUSES = (STATUS_PENDING, STATUS_TRIAL, STATUS_ACTIVE, STATUS_SUSPENDED)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    stripe_subscription_id = Column(String(255), unique=True, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default=STATUS_PENDING, index=True)
    tier = Column(String(50), nullable=False)  # 'trial', 'basic' or 'premium'
    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default='EUR')
    billing_period = Column(String(20), nullable=False, default='monthly')  # 'monthly' or 'yearly'
    auto_renew = Column(Boolean, nullable=False, default=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    next_renew_at = Column(DateTime(timezone=True), nullable=True)
    last_renew_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    payment_method_brand = Column(String(50), nullable=True)
    payment_method_last4 = Column(String(4), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES
