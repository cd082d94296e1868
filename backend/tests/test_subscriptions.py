"""Tests for the subscription ledger and provider event handling."""

from __future__ import annotations

import hashlib
import hmac
import json
import time

import pytest
import stripe

from barsuite.core.clock import as_utc
from barsuite.core.exceptions import (
    BadRequestError,
    NotEligibleForTrialError,
    PaymentProviderRequestError,
    PaymentProviderUnavailableError,
    ServiceUnavailableError,
    SubscriptionAlreadyExistsError,
    SubscriptionNotFoundError,
)
from barsuite.models.subscription import (
    STATUS_ACTIVE,
    STATUS_CANCELED,
    STATUS_PENDING,
    STATUS_SUSPENDED,
    STATUS_TRIAL,
)
from barsuite.services import subscription as subscription_service
from barsuite.services.subscription import stripe_gateway


def _event(event_type: str, obj: dict, event_id: str = "evt_1") -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


class TestTrial:
    """Tests for trial eligibility and start."""

    def test_new_user_is_eligible(self, db, make_user) -> None:
        """Test eligibility without history."""
        eligibility = subscription_service.check_trial_eligibility(db, make_user())

        assert eligibility.eligible is True
        assert eligibility.trial_days == 90

    def test_start_trial(self, db, make_user, fake_stripe) -> None:
        """Test that a trial creates a customer and a trialing subscription."""
        user = make_user()

        subscription = subscription_service.start_owner_trial(db, user)

        assert subscription.status == STATUS_TRIAL
        assert subscription.tier == "trial"
        assert subscription.trial_ends_at is not None
        assert user.stripe_customer_id == f"cus_test_{user.id}"
        assert fake_stripe.call_names() == ["Customer.create", "Subscription.create"]
        assert fake_stripe.calls[1][2]["trial_period_days"] == 90

    def test_one_trial_per_account(self, db, make_user, make_subscription) -> None:
        """Test that any subscription history removes eligibility."""
        user = make_user()
        make_subscription(user, status=STATUS_CANCELED)

        assert subscription_service.check_trial_eligibility(db, user).eligible is False
        with pytest.raises(NotEligibleForTrialError):
            subscription_service.start_owner_trial(db, user)

    def test_live_subscription_conflicts(self, db, make_user, make_subscription) -> None:
        """Test that a second live subscription is refused."""
        user = make_user()
        make_subscription(user)

        with pytest.raises(SubscriptionAlreadyExistsError):
            subscription_service.start_owner_trial(db, user)
        with pytest.raises(SubscriptionAlreadyExistsError):
            subscription_service.create_subscription(db, user, "basic")


class TestLifecycle:
    """Tests for tier changes, cancellation and reactivation."""

    def test_trial_cancel_reactivate_cancel(self, db, make_user, fake_stripe) -> None:
        """Test the full user-driven lifecycle."""
        user = make_user()
        subscription = subscription_service.start_owner_trial(db, user)
        assert subscription.status == STATUS_TRIAL

        subscription = subscription_service.cancel_subscription(db, user, reason="closing for winter")
        assert subscription.status == STATUS_SUSPENDED
        assert subscription.auto_renew is False
        assert subscription.cancel_reason == "closing for winter"

        with pytest.raises(BadRequestError):
            subscription_service.change_tier(db, user, "premium")

        subscription = subscription_service.reactivate_subscription(db, user)
        assert subscription.status == STATUS_ACTIVE
        assert subscription.auto_renew is True

        subscription = subscription_service.cancel_subscription(db, user, immediately=True)
        assert subscription.status == STATUS_CANCELED

        with pytest.raises(BadRequestError):
            subscription_service.cancel_subscription(db, user)
        assert "Subscription.cancel" in fake_stripe.call_names()

    def test_change_tier(self, db, make_user, make_subscription, fake_stripe) -> None:
        """Test moving an active subscription to another tier."""
        user = make_user()
        subscription = make_subscription(user, status=STATUS_ACTIVE, tier="basic")

        subscription = subscription_service.change_tier(db, user, "premium")

        assert subscription.tier == "premium"
        assert str(subscription.price) == "29.99"
        assert fake_stripe.call_names() == ["Subscription.retrieve", "Subscription.modify"]
        assert fake_stripe.calls[1][2]["items"] == [
            {"id": f"si_{subscription.stripe_subscription_id}", "price": "price_premium_monthly"}
        ]

    def test_change_to_same_tier(self, db, make_user, make_subscription) -> None:
        """Test that a no-op tier change is rejected."""
        user = make_user()
        make_subscription(user, status=STATUS_ACTIVE, tier="basic")

        with pytest.raises(BadRequestError):
            subscription_service.change_tier(db, user, "basic")

    def test_reactivate_requires_suspended(self, db, make_user, make_subscription) -> None:
        """Test that only suspended subscriptions can be reactivated."""
        user = make_user()
        make_subscription(user, status=STATUS_ACTIVE)

        with pytest.raises(BadRequestError):
            subscription_service.reactivate_subscription(db, user)

    def test_cancel_pending_is_final(self, db, make_user) -> None:
        """Test that a subscription that never started is canceled outright."""
        user = make_user()
        subscription = subscription_service.create_subscription(db, user, "basic", "yearly")
        assert subscription.status == STATUS_PENDING

        subscription = subscription_service.cancel_subscription(db, user)

        assert subscription.status == STATUS_CANCELED

    def test_no_subscription(self, db, make_user) -> None:
        """Test operations without any subscription."""
        with pytest.raises(SubscriptionNotFoundError):
            subscription_service.cancel_subscription(db, make_user())


class TestProviderEvents:
    """Tests for handle_provider_event."""

    @pytest.mark.parametrize(
        ("provider_status", "cancel_at_period_end", "expected"),
        [
            ("trialing", False, STATUS_TRIAL),
            ("active", False, STATUS_ACTIVE),
            ("active", True, STATUS_SUSPENDED),
            ("past_due", False, STATUS_SUSPENDED),
            ("incomplete", False, STATUS_PENDING),
            ("canceled", False, STATUS_CANCELED),
            ("something_new", False, STATUS_PENDING),
        ],
    )
    def test_status_mapping(self, provider_status, cancel_at_period_end, expected) -> None:
        """Test provider status translation."""
        assert subscription_service.map_provider_status(provider_status, cancel_at_period_end) == expected

    def test_deleted_event_is_idempotent(self, db, make_user, make_subscription) -> None:
        """Test that replaying a deletion leaves the same terminal state."""
        user = make_user()
        subscription = make_subscription(user, status=STATUS_ACTIVE)
        event = _event(
            "customer.subscription.deleted",
            {"id": subscription.stripe_subscription_id, "status": "canceled", "canceled_at": 1767225600},
        )

        first = subscription_service.handle_provider_event(db, event)
        snapshot = (first.status, first.auto_renew, first.canceled_at)
        second = subscription_service.handle_provider_event(db, event)

        assert first.status == STATUS_CANCELED
        assert (second.status, second.auto_renew, second.canceled_at) == snapshot

    def test_updated_event_overrides_local_state(self, db, make_user, make_subscription) -> None:
        """Test that the provider is authoritative."""
        user = make_user()
        subscription = make_subscription(user, status=STATUS_TRIAL)
        event = _event(
            "customer.subscription.updated",
            {
                "id": subscription.stripe_subscription_id,
                "status": "active",
                "cancel_at_period_end": False,
                "current_period_end": 1769904000,
                "default_payment_method": {"card": {"brand": "visa", "last4": "4242"}},
            },
        )

        updated = subscription_service.handle_provider_event(db, event)

        assert updated.status == STATUS_ACTIVE
        assert updated.next_renew_at is not None
        assert updated.payment_method_last4 == "4242"

    def test_payment_failed_then_paid(self, db, make_user, make_subscription) -> None:
        """Test invoice events suspend and restore the subscription."""
        user = make_user()
        subscription = make_subscription(user, status=STATUS_ACTIVE)
        sub_id = subscription.stripe_subscription_id

        failed = subscription_service.handle_provider_event(
            db, _event("invoice.payment_failed", {"subscription": sub_id})
        )
        assert failed.status == STATUS_SUSPENDED

        paid = subscription_service.handle_provider_event(
            db, _event("invoice.paid", {"subscription": sub_id, "created": 1767225600})
        )
        assert paid.status == STATUS_ACTIVE
        assert paid.last_renew_at is not None

    def test_unknown_subscription_is_ignored(self, db) -> None:
        """Test events for subscriptions we do not know."""
        event = _event("customer.subscription.updated", {"id": "sub_unknown", "status": "active"})

        assert subscription_service.handle_provider_event(db, event) is None

    def test_unhandled_event_type(self, db) -> None:
        """Test that unrelated events are ignored."""
        assert subscription_service.handle_provider_event(db, _event("charge.refunded", {"id": "ch_1"})) is None


class TestGatewayErrors:
    """Tests for Stripe error translation."""

    @pytest.fixture(autouse=True)
    def configured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Pretend a secret key is configured."""
        monkeypatch.setattr(stripe_gateway, "STRIPE_SECRET_KEY", "sk_test_dummy")

    def test_rate_limit_is_unavailable(self) -> None:
        """Test that rate limiting surfaces as a retryable 503."""
        def rate_limited():
            raise stripe.RateLimitError("Too many requests")

        with pytest.raises(PaymentProviderUnavailableError) as exc_info:
            stripe_gateway._call("test", rate_limited)

        assert exc_info.value.status_code == 503

    def test_invalid_request_is_bad_request(self) -> None:
        """Test that rejected requests surface as 400."""
        def rejected():
            raise stripe.InvalidRequestError("No such price", "price")

        with pytest.raises(PaymentProviderRequestError) as exc_info:
            stripe_gateway._call("test", rejected)

        assert exc_info.value.status_code == 400

    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an unconfigured gateway reports unavailability."""
        monkeypatch.setattr(stripe_gateway, "STRIPE_SECRET_KEY", None)

        with pytest.raises(ServiceUnavailableError):
            stripe_gateway._call("test", lambda: None)


class TestGatewayObjects:
    """Tests for the shape of what the gateway hands to the service."""

    def test_subscriptions_are_plain_dicts(self, fake_stripe) -> None:
        """Test that SDK objects are converted before the service reads them."""
        subscription = stripe_gateway.create_trial_subscription("cus_1", "monthly", 90)

        assert isinstance(subscription, dict)
        assert subscription["status"] == "trialing"
        assert subscription.get("trial_end")
        assert isinstance(stripe_gateway.create_paid_subscription("cus_1", "basic", "yearly"), dict)

    def test_trial_end_comes_from_provider(self, db, make_user, fake_stripe) -> None:
        """Test that the stored trial end matches the provider's."""
        user = make_user()

        subscription = subscription_service.start_owner_trial(db, user)

        stored = fake_stripe.subscriptions[subscription.stripe_subscription_id]
        assert int(as_utc(subscription.trial_ends_at).timestamp()) == stored["trial_end"]

    def test_verified_event_drives_status(self, db, make_user, make_subscription, monkeypatch) -> None:
        """Test a signed event from construct_webhook_event through handle_provider_event."""
        secret = "whsec_unit"
        monkeypatch.setattr(stripe_gateway, "STRIPE_WEBHOOK_SECRET", secret)
        subscription = make_subscription(make_user(), status=STATUS_ACTIVE)
        payload = json.dumps({
            "id": "evt_updated",
            "object": "event",
            "type": "customer.subscription.updated",
            "data": {"object": {
                "id": subscription.stripe_subscription_id,
                "object": "subscription",
                "status": "past_due",
                "cancel_at_period_end": False,
                "default_payment_method": {"object": "payment_method", "card": {"brand": "visa", "last4": "4242"}},
            }},
        }).encode()
        timestamp = int(time.time())
        signature = hmac.new(
            secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256
        ).hexdigest()

        event = stripe_gateway.construct_webhook_event(payload, f"t={timestamp},v1={signature}")

        assert isinstance(event, dict)
        assert isinstance(event["data"]["object"], dict)
        updated = subscription_service.handle_provider_event(db, event)
        assert updated.status == STATUS_SUSPENDED
        assert updated.payment_method_last4 == "4242"
