"""
Subscription plan catalogue and value classes.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from barsuite.core.config import TRIAL_PERIOD_DAYS

TIER_TRIAL = 'trial'
TIER_BASIC = 'basic'
TIER_PREMIUM = 'premium'

BILLING_MONTHLY = 'monthly'
BILLING_YEARLY = 'yearly'
BILLING_PERIODS = (BILLING_MONTHLY, BILLING_YEARLY)


@dataclass
class SubscriptionPlan:
    """Plan data class."""
    tier: str
    display_name: str
    price: Decimal
    currency: str
    max_organizations: int
    trial_days: Optional[int] = None
    features: list[str] = field(default_factory=list)

    @property
    def is_trial(self) -> bool:
        return self.tier == TIER_TRIAL


@dataclass
class TrialEligibility:
    eligible: bool
    reason: Optional[str] = None
    trial_days: int = TRIAL_PERIOD_DAYS


PLANS: dict[str, SubscriptionPlan] = {
    TIER_TRIAL: SubscriptionPlan(
        tier=TIER_TRIAL,
        display_name="Owner trial",
        price=Decimal("0.00"),
        currency="EUR",
        max_organizations=1,
        trial_days=TRIAL_PERIOD_DAYS,
        features=["1 venue", "Unlimited staff", "Inventory & categories"],
    ),
    TIER_BASIC: SubscriptionPlan(
        tier=TIER_BASIC,
        display_name="Basic",
        price=Decimal("9.99"),
        currency="EUR",
        max_organizations=3,
        features=["Up to 3 venues", "Unlimited staff", "Inventory & categories"],
    ),
    TIER_PREMIUM: SubscriptionPlan(
        tier=TIER_PREMIUM,
        display_name="Premium",
        price=Decimal("29.99"),
        currency="EUR",
        max_organizations=10,
        features=["Up to 10 venues", "Unlimited staff", "Inventory & categories", "Priority support"],
    ),
}

PAID_TIERS = (TIER_BASIC, TIER_PREMIUM)


def get_plan(tier: str) -> SubscriptionPlan:
    return PLANS[tier]


def list_plans() -> list[SubscriptionPlan]:
    return list(PLANS.values())
