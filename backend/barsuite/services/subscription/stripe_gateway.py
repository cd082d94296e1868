"""
Thin wrapper around the Stripe SDK.

Every call goes through ``_call`` so that Stripe exceptions surface as
BarSuite errors: rate limits and connection problems become
ServiceUnavailable, rejected requests become BadRequest. Stripe objects
are handed back as plain dicts.
"""
import logging
from typing import Optional

import stripe

from barsuite.core.config import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_BASIC_MONTHLY_PRICE_ID,
    STRIPE_BASIC_YEARLY_PRICE_ID,
    STRIPE_PREMIUM_MONTHLY_PRICE_ID,
    STRIPE_PREMIUM_YEARLY_PRICE_ID,
    TRIAL_PERIOD_DAYS,
)
from barsuite.core.exceptions import (
    BadRequestError,
    PaymentProviderRequestError,
    PaymentProviderUnavailableError,
    ServiceUnavailableError,
)
from barsuite.services.subscription.subscription_models import (
    BILLING_MONTHLY,
    BILLING_YEARLY,
    TIER_BASIC,
    TIER_PREMIUM,
    TIER_TRIAL,
)

logger = logging.getLogger(__name__)

# Trials run on the basic price so they convert without a plan change
PRICE_IDS = {
    (TIER_TRIAL, BILLING_MONTHLY): STRIPE_BASIC_MONTHLY_PRICE_ID,
    (TIER_TRIAL, BILLING_YEARLY): STRIPE_BASIC_YEARLY_PRICE_ID,
    (TIER_BASIC, BILLING_MONTHLY): STRIPE_BASIC_MONTHLY_PRICE_ID,
    (TIER_BASIC, BILLING_YEARLY): STRIPE_BASIC_YEARLY_PRICE_ID,
    (TIER_PREMIUM, BILLING_MONTHLY): STRIPE_PREMIUM_MONTHLY_PRICE_ID,
    (TIER_PREMIUM, BILLING_YEARLY): STRIPE_PREMIUM_YEARLY_PRICE_ID,
}


def _configure():
    if not STRIPE_SECRET_KEY:
        raise ServiceUnavailableError(
            "Payment provider is not configured",
            code="PAYMENT_PROVIDER_NOT_CONFIGURED",
        )
    stripe.api_key = STRIPE_SECRET_KEY


def _to_dict(obj) -> dict:
    # StripeObject stopped subclassing dict; callers work with plain dicts
    return obj.to_dict()


def _call(action: str, fn, *args, **kwargs):
    _configure()
    try:
        return fn(*args, **kwargs)
    except (stripe.RateLimitError, stripe.APIConnectionError) as e:
        logger.warning(f"Stripe unavailable during {action}: {e}")
        raise PaymentProviderUnavailableError(
            "Payment provider is temporarily unavailable, please retry later"
        ) from e
    except stripe.InvalidRequestError as e:
        logger.error(f"Stripe rejected {action}: {e.user_message or e}")
        raise PaymentProviderRequestError(
            f"Payment provider rejected the request: {e.user_message or 'invalid request'}"
        ) from e
    except stripe.StripeError as e:
        logger.error(f"Stripe error during {action}: {e}", exc_info=True)
        raise PaymentProviderUnavailableError("Payment provider error") from e


def price_id_for(tier: str, billing_period: str) -> str:
    price_id = PRICE_IDS.get((tier, billing_period))
    if not price_id:
        raise ServiceUnavailableError(
            f"No price configured for {tier}/{billing_period}",
            code="PAYMENT_PROVIDER_NOT_CONFIGURED",
        )
    return price_id


def create_customer(email: str, name: Optional[str], user_id: int) -> str:
    """Create a Stripe customer and return its id."""
    customer = _call(
        "create_customer",
        stripe.Customer.create,
        email=email,
        name=name,
        metadata={"user_id": str(user_id)},
    )
    logger.info(f"Created Stripe customer {customer['id']} for user {user_id}")
    return customer["id"]


def create_trial_subscription(
    customer_id: str,
    billing_period: str = BILLING_MONTHLY,
    trial_days: int = TRIAL_PERIOD_DAYS,
):
    """
    Create a trialing subscription that needs no payment method up front.

    If no payment method is added by the end of the trial, Stripe pauses
    the subscription, which arrives here as a webhook and suspends it.
    """
    subscription = _call(
        "create_trial_subscription",
        stripe.Subscription.create,
        customer=customer_id,
        items=[{"price": price_id_for(TIER_TRIAL, billing_period)}],
        trial_period_days=trial_days,
        payment_behavior="default_incomplete",
        payment_settings={"save_default_payment_method": "on_subscription"},
        trial_settings={"end_behavior": {"missing_payment_method": "pause"}},
    )
    return _to_dict(subscription)


def create_paid_subscription(customer_id: str, tier: str, billing_period: str):
    subscription = _call(
        "create_paid_subscription",
        stripe.Subscription.create,
        customer=customer_id,
        items=[{"price": price_id_for(tier, billing_period)}],
        payment_behavior="default_incomplete",
        payment_settings={"save_default_payment_method": "on_subscription"},
        expand=["latest_invoice.payment_intent"],
    )
    return _to_dict(subscription)


def set_cancel_at_period_end(stripe_subscription_id: str, cancel: bool):
    return _to_dict(_call(
        "set_cancel_at_period_end",
        stripe.Subscription.modify,
        stripe_subscription_id,
        cancel_at_period_end=cancel,
    ))


def cancel_subscription(stripe_subscription_id: str):
    return _to_dict(_call("cancel_subscription", stripe.Subscription.cancel, stripe_subscription_id))


def change_price(stripe_subscription_id: str, tier: str, billing_period: str):
    """Swap the subscription's single item to the price of another tier."""
    current = _to_dict(_call("retrieve_subscription", stripe.Subscription.retrieve, stripe_subscription_id))
    item_id = current["items"]["data"][0]["id"]
    return _to_dict(_call(
        "change_price",
        stripe.Subscription.modify,
        stripe_subscription_id,
        items=[{"id": item_id, "price": price_id_for(tier, billing_period)}],
        proration_behavior="create_prorations",
    ))


def construct_webhook_event(payload: bytes, signature: str):
    """
    Verify a webhook payload against the signing secret.

    Returns:
        The verified event as a plain dict

    Raises:
        BadRequestError: Signature or payload is invalid
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise ServiceUnavailableError(
            "Webhook signing secret is not configured",
            code="PAYMENT_PROVIDER_NOT_CONFIGURED",
        )
    try:
        event = stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise BadRequestError(
            "Webhook signature verification failed",
            code="INVALID_WEBHOOK_SIGNATURE",
        ) from e
    return _to_dict(event)
