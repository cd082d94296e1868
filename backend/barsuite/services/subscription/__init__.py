"""
Subscription service for managing user subscriptions.
"""
from barsuite.services.subscription.subscription_service import (
    get_live_subscription,
    get_current_subscription,
    check_trial_eligibility,
    start_owner_trial,
    create_subscription,
    change_tier,
    cancel_subscription,
    reactivate_subscription,
    handle_provider_event,
    map_provider_status,
)
from barsuite.services.subscription.subscription_models import (
    SubscriptionPlan,
    TrialEligibility,
    get_plan,
    list_plans,
)

__all__ = [
    "get_live_subscription",
    "get_current_subscription",
    "check_trial_eligibility",
    "start_owner_trial",
    "create_subscription",
    "change_tier",
    "cancel_subscription",
    "reactivate_subscription",
    "handle_provider_event",
    "map_provider_status",
    "SubscriptionPlan",
    "TrialEligibility",
    "get_plan",
    "list_plans",
]
