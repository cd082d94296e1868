"""
Subscription service for managing user subscriptions.

Local status follows this lifecycle:

    pending -> trial -> active <-> suspended
    pending | trial | active | suspended -> canceled (terminal)

User actions move between states directly. Stripe webhooks are
authoritative and overwrite whatever the local row says.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barsuite.core.clock import utcnow
from barsuite.core.exceptions import (
    BadRequestError,
    InvalidSubscriptionOperationError,
    NotEligibleForTrialError,
    SubscriptionAlreadyExistsError,
    SubscriptionNotFoundError,
)
from barsuite.models.subscription import (
    Subscription,
    LIVE_STATUSES,
    STATUS_PENDING,
    STATUS_TRIAL,
    STATUS_ACTIVE,
    STATUS_SUSPENDED,
    STATUS_CANCELED,
)
from barsuite.models.user import User
from barsuite.services.subscription import stripe_gateway
from barsuite.services.subscription.subscription_models import (
    BILLING_MONTHLY,
    BILLING_PERIODS,
    PAID_TIERS,
    TIER_TRIAL,
    TrialEligibility,
    get_plan,
)

logger = logging.getLogger(__name__)

# Stripe subscription status -> local status
PROVIDER_STATUS_MAP = {
    "trialing": STATUS_TRIAL,
    "active": STATUS_ACTIVE,
    "past_due": STATUS_SUSPENDED,
    "unpaid": STATUS_SUSPENDED,
    "paused": STATUS_SUSPENDED,
    "incomplete": STATUS_PENDING,
    "incomplete_expired": STATUS_CANCELED,
    "canceled": STATUS_CANCELED,
}

# Statuses in which the tier may be changed
TIER_CHANGE_STATUSES = (STATUS_TRIAL, STATUS_ACTIVE)


def _from_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def get_live_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    """
    Get the user's non-terminal subscription, if any.

    Args:
        db: Database session
        user_id: User ID

    Returns:
        Subscription or None
    """
    return db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.status.in_(LIVE_STATUSES)
    ).order_by(Subscription.id.desc()).first()


def get_current_subscription(db: Session, user: User) -> Optional[Subscription]:
    """
    Get the live subscription, or the most recent one (including canceled).

    This is used for displaying subscription info even after cancellation.
    """
    live = get_live_subscription(db, user.id)
    if live:
        return live
    return db.query(Subscription).filter(
        Subscription.user_id == user.id
    ).order_by(Subscription.id.desc()).first()


def _require_current(db: Session, user: User) -> Subscription:
    subscription = get_current_subscription(db, user)
    if not subscription:
        raise SubscriptionNotFoundError()
    return subscription


def check_trial_eligibility(db: Session, user: User) -> TrialEligibility:
    """A user gets one trial: only accounts with no subscription history qualify."""
    if db.query(Subscription.id).filter(Subscription.user_id == user.id).first():
        return TrialEligibility(eligible=False, reason="Trial already used or subscription exists")
    return TrialEligibility(eligible=True)


def _ensure_customer(db: Session, user: User) -> str:
    if not user.stripe_customer_id:
        user.stripe_customer_id = stripe_gateway.create_customer(user.email, user.full_name, user.id)
        db.commit()
    return user.stripe_customer_id


def _save_new(db: Session, subscription: Subscription) -> Subscription:
    db.add(subscription)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.error(
            f"Could not store subscription {subscription.stripe_subscription_id} "
            f"for user {subscription.user_id}",
            exc_info=True
        )
        raise SubscriptionAlreadyExistsError()
    db.refresh(subscription)
    return subscription


def start_owner_trial(db: Session, user: User, billing_period: str = BILLING_MONTHLY) -> Subscription:
    """
    Start the free owner trial.

    Args:
        db: Database session
        user: Subscribing user
        billing_period: Billing period the trial converts to

    Returns:
        Created Subscription in 'trial' status

    Raises:
        SubscriptionAlreadyExistsError: User already has a live subscription
        NotEligibleForTrialError: User had a subscription before
    """
    if billing_period not in BILLING_PERIODS:
        raise BadRequestError(f"Invalid billing period. Must be one of: {', '.join(BILLING_PERIODS)}")
    if get_live_subscription(db, user.id):
        raise SubscriptionAlreadyExistsError()
    if not check_trial_eligibility(db, user).eligible:
        raise NotEligibleForTrialError()

    plan = get_plan(TIER_TRIAL)
    customer_id = _ensure_customer(db, user)
    stripe_subscription = stripe_gateway.create_trial_subscription(customer_id, billing_period, plan.trial_days)

    now = utcnow()
    trial_ends_at = _from_timestamp(stripe_subscription.get("trial_end")) or now + timedelta(days=plan.trial_days)
    subscription = _save_new(db, Subscription(
        user_id=user.id,
        stripe_subscription_id=stripe_subscription["id"],
        stripe_customer_id=customer_id,
        status=STATUS_TRIAL,
        tier=TIER_TRIAL,
        price=plan.price,
        currency=plan.currency,
        billing_period=billing_period,
        auto_renew=True,
        started_at=now,
        trial_ends_at=trial_ends_at,
        next_renew_at=trial_ends_at,
    ))

    logger.info(f"Started trial subscription {subscription.id} for user {user.id}")
    return subscription


def create_subscription(db: Session, user: User, tier: str, billing_period: str = BILLING_MONTHLY) -> Subscription:
    """
    Create a paid subscription. It stays 'pending' until Stripe confirms payment.
    """
    if tier not in PAID_TIERS:
        raise BadRequestError(f"Invalid tier. Must be one of: {', '.join(PAID_TIERS)}")
    if billing_period not in BILLING_PERIODS:
        raise BadRequestError(f"Invalid billing period. Must be one of: {', '.join(BILLING_PERIODS)}")
    if get_live_subscription(db, user.id):
        raise SubscriptionAlreadyExistsError()

    plan = get_plan(tier)
    customer_id = _ensure_customer(db, user)
    stripe_subscription = stripe_gateway.create_paid_subscription(customer_id, tier, billing_period)

    subscription = _save_new(db, Subscription(
        user_id=user.id,
        stripe_subscription_id=stripe_subscription["id"],
        stripe_customer_id=customer_id,
        status=PROVIDER_STATUS_MAP.get(stripe_subscription.get("status"), STATUS_PENDING),
        tier=tier,
        price=plan.price,
        currency=plan.currency,
        billing_period=billing_period,
        auto_renew=True,
        started_at=utcnow(),
    ))

    logger.info(f"Created {tier} subscription {subscription.id} for user {user.id}")
    return subscription


def change_tier(db: Session, user: User, new_tier: str) -> Subscription:
    """
    Move the live subscription to another paid tier.

    Raises:
        InvalidSubscriptionOperationError: Subscription is not trial or active
    """
    if new_tier not in PAID_TIERS:
        raise BadRequestError(f"Invalid tier. Must be one of: {', '.join(PAID_TIERS)}")

    subscription = _require_current(db, user)
    if subscription.status not in TIER_CHANGE_STATUSES:
        raise InvalidSubscriptionOperationError("change tier of", subscription.status)
    if subscription.tier == new_tier:
        raise BadRequestError(f"Subscription is already on the {new_tier} tier")

    if subscription.stripe_subscription_id:
        stripe_gateway.change_price(subscription.stripe_subscription_id, new_tier, subscription.billing_period)

    plan = get_plan(new_tier)
    previous = subscription.tier
    subscription.tier = new_tier
    subscription.price = plan.price
    subscription.currency = plan.currency
    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription {subscription.id} changed tier {previous} -> {new_tier}")
    return subscription


def cancel_subscription(
    db: Session,
    user: User,
    immediately: bool = False,
    reason: Optional[str] = None,
) -> Subscription:
    """
    Cancel the user's subscription.

    By default renewal is stopped at the end of the period and the
    subscription becomes 'suspended', from which it can be reactivated.
    With immediately=True (or for a subscription that never started) it is
    canceled for good.

    Raises:
        InvalidSubscriptionOperationError: Already suspended or canceled
    """
    subscription = _require_current(db, user)
    if subscription.status == STATUS_CANCELED:
        raise InvalidSubscriptionOperationError("cancel", subscription.status)
    if subscription.status == STATUS_SUSPENDED and not immediately:
        raise InvalidSubscriptionOperationError("cancel", subscription.status)

    now = utcnow()
    if immediately or subscription.status == STATUS_PENDING:
        if subscription.stripe_subscription_id:
            stripe_gateway.cancel_subscription(subscription.stripe_subscription_id)
        subscription.status = STATUS_CANCELED
    else:
        if subscription.stripe_subscription_id:
            stripe_gateway.set_cancel_at_period_end(subscription.stripe_subscription_id, True)
        subscription.status = STATUS_SUSPENDED
    subscription.auto_renew = False
    subscription.canceled_at = now
    subscription.cancel_reason = reason
    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription {subscription.id} canceled ({'immediately' if immediately else 'at period end'})")
    return subscription


def reactivate_subscription(db: Session, user: User) -> Subscription:
    """
    Resume a suspended subscription.

    Raises:
        InvalidSubscriptionOperationError: Subscription is not suspended
    """
    subscription = _require_current(db, user)
    if subscription.status != STATUS_SUSPENDED:
        raise InvalidSubscriptionOperationError("reactivate", subscription.status)

    if subscription.stripe_subscription_id:
        stripe_gateway.set_cancel_at_period_end(subscription.stripe_subscription_id, False)

    subscription.status = STATUS_ACTIVE
    subscription.auto_renew = True
    subscription.canceled_at = None
    subscription.cancel_reason = None
    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription {subscription.id} reactivated")
    return subscription


def map_provider_status(provider_status: str, cancel_at_period_end: bool = False) -> str:
    """Translate a Stripe status; a scheduled cancellation counts as suspended."""
    status = PROVIDER_STATUS_MAP.get(provider_status, STATUS_PENDING)
    if cancel_at_period_end and status in (STATUS_ACTIVE, STATUS_TRIAL):
        return STATUS_SUSPENDED
    return status


def _apply_provider_subscription(subscription: Subscription, obj, deleted: bool) -> None:
    cancel_at_period_end = bool(obj.get("cancel_at_period_end"))
    subscription.status = STATUS_CANCELED if deleted else map_provider_status(obj.get("status"), cancel_at_period_end)
    subscription.auto_renew = not cancel_at_period_end and subscription.status != STATUS_CANCELED

    if obj.get("trial_end"):
        subscription.trial_ends_at = _from_timestamp(obj["trial_end"])

    period_end = obj.get("current_period_end")
    if not period_end:
        # Newer API versions report the period on the subscription items
        items = (obj.get("items") or {}).get("data") or []
        period_end = items[0].get("current_period_end") if items else None
    if period_end:
        subscription.next_renew_at = _from_timestamp(period_end)

    if obj.get("canceled_at"):
        subscription.canceled_at = _from_timestamp(obj["canceled_at"])

    payment_method = obj.get("default_payment_method")
    if isinstance(payment_method, dict) and payment_method.get("card"):
        subscription.payment_method_brand = payment_method["card"].get("brand")
        subscription.payment_method_last4 = payment_method["card"].get("last4")


def handle_provider_event(db: Session, event) -> Optional[Subscription]:
    """
    Apply a verified Stripe event to the local subscription.

    Applying the same event more than once writes the same values, so
    redelivered webhooks leave the row unchanged.

    Args:
        db: Database session
        event: Verified Stripe event (dict-like)

    Returns:
        Updated Subscription, or None if the event is ignored
    """
    event_type = event["type"]
    obj = event["data"]["object"]

    if event_type.startswith("customer.subscription."):
        stripe_subscription_id = obj.get("id")
    elif event_type in ("invoice.paid", "invoice.payment_failed"):
        stripe_subscription_id = obj.get("subscription")
    else:
        logger.debug(f"Ignoring Stripe event {event.get('id')} of type {event_type}")
        return None

    subscription = db.query(Subscription).filter(
        Subscription.stripe_subscription_id == stripe_subscription_id
    ).first() if stripe_subscription_id else None
    if not subscription:
        logger.warning(f"Stripe event {event_type} for unknown subscription {stripe_subscription_id}")
        return None

    previous_status = subscription.status
    if event_type == "customer.subscription.deleted":
        _apply_provider_subscription(subscription, obj, deleted=True)
    elif event_type.startswith("customer.subscription."):
        _apply_provider_subscription(subscription, obj, deleted=False)
    elif event_type == "invoice.payment_failed":
        if subscription.status != STATUS_CANCELED:
            subscription.status = STATUS_SUSPENDED
    elif event_type == "invoice.paid":
        if subscription.status in (STATUS_PENDING, STATUS_SUSPENDED) and subscription.auto_renew:
            subscription.status = STATUS_ACTIVE
        if obj.get("created"):
            subscription.last_renew_at = _from_timestamp(obj["created"])

    db.commit()
    db.refresh(subscription)

    if previous_status != subscription.status:
        logger.info(
            f"Subscription {subscription.id} status {previous_status} -> {subscription.status} ({event_type})"
        )
    return subscription
