"""
Subscription management API endpoints.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from barsuite.core.auth import get_current_user_dependency
from barsuite.core.database import get_db
from barsuite.core.exceptions import SubscriptionNotFoundError
from barsuite.models.subscription import Subscription
from barsuite.models.user import User
from barsuite.services import subscription as subscription_service

router = APIRouter()

BillingPeriod = Literal['monthly', 'yearly']
PaidTier = Literal['basic', 'premium']


class SubscriptionPlanResponse(BaseModel):
    tier: str
    display_name: str
    price: Decimal
    currency: str
    max_organizations: int
    is_trial: bool
    trial_days: Optional[int] = None
    features: List[str]


class SubscriptionResponse(BaseModel):
    id: str
    status: str
    tier: str
    price: Optional[Decimal] = None
    currency: str
    billing_period: str
    auto_renew: bool
    started_at: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    next_renew_at: Optional[datetime] = None
    last_renew_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    payment_method_brand: Optional[str] = None
    payment_method_last4: Optional[str] = None


class TrialEligibilityResponse(BaseModel):
    eligible: bool
    reason: Optional[str] = None
    trial_days: int


class StartTrialRequest(BaseModel):
    billing_period: BillingPeriod = 'monthly'


class CreateSubscriptionRequest(BaseModel):
    tier: PaidTier
    billing_period: BillingPeriod = 'monthly'


class ChangeTierRequest(BaseModel):
    tier: PaidTier


def subscription_response(subscription: Subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=str(subscription.id),
        status=subscription.status,
        tier=subscription.tier,
        price=subscription.price,
        currency=subscription.currency,
        billing_period=subscription.billing_period,
        auto_renew=subscription.auto_renew,
        started_at=subscription.started_at,
        trial_ends_at=subscription.trial_ends_at,
        next_renew_at=subscription.next_renew_at,
        last_renew_at=subscription.last_renew_at,
        canceled_at=subscription.canceled_at,
        cancel_reason=subscription.cancel_reason,
        payment_method_brand=subscription.payment_method_brand,
        payment_method_last4=subscription.payment_method_last4,
    )


@router.get("", response_model=SubscriptionResponse)
async def get_current_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Get the caller's live subscription, or the most recent one."""
    subscription = subscription_service.get_current_subscription(db, current_user)
    if not subscription:
        raise SubscriptionNotFoundError()
    return subscription_response(subscription)


@router.get("/plans", response_model=List[SubscriptionPlanResponse])
async def list_subscription_plans():
    """Public plan catalogue."""
    return [
        SubscriptionPlanResponse(
            tier=plan.tier,
            display_name=plan.display_name,
            price=plan.price,
            currency=plan.currency,
            max_organizations=plan.max_organizations,
            is_trial=plan.is_trial,
            trial_days=plan.trial_days,
            features=plan.features,
        )
        for plan in subscription_service.list_plans()
    ]


@router.get("/trial-eligibility", response_model=TrialEligibilityResponse)
async def get_trial_eligibility(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    eligibility = subscription_service.check_trial_eligibility(db, current_user)
    return TrialEligibilityResponse(
        eligible=eligibility.eligible,
        reason=eligibility.reason,
        trial_days=eligibility.trial_days,
    )


@router.post("/start-owner-trial", response_model=SubscriptionResponse, status_code=201)
async def start_owner_trial(
    request: StartTrialRequest = StartTrialRequest(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Start the free owner trial (once per account)."""
    subscription = subscription_service.start_owner_trial(db, current_user, request.billing_period)
    return subscription_response(subscription)


@router.post("", response_model=SubscriptionResponse, status_code=201)
async def create_subscription(
    request: CreateSubscriptionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Subscribe to a paid tier; stays pending until payment is confirmed."""
    subscription = subscription_service.create_subscription(
        db, current_user, request.tier, request.billing_period
    )
    return subscription_response(subscription)


@router.post("/change-tier", response_model=SubscriptionResponse)
async def change_tier(
    request: ChangeTierRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    subscription = subscription_service.change_tier(db, current_user, request.tier)
    return subscription_response(subscription)


@router.delete("/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    immediately: bool = Query(False, description="Cancel now instead of at period end"),
    reason: Optional[str] = Query(None, max_length=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    subscription = subscription_service.cancel_subscription(
        db, current_user, immediately=immediately, reason=reason
    )
    return subscription_response(subscription)


@router.post("/reactivate", response_model=SubscriptionResponse)
async def reactivate_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    subscription = subscription_service.reactivate_subscription(db, current_user)
    return subscription_response(subscription)
