"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import itertools
import os
import time
from collections.abc import Callable, Iterator
from decimal import Decimal
from typing import Any

import pytest
import stripe
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("BARSUITE_JWT_SECRET", "test-signing-secret")

import barsuite.models  # noqa: F401
from barsuite.core.auth import create_access_token
from barsuite.core.clock import utcnow
from barsuite.core.database import Base, get_db
from barsuite.models.organization import Organization
from barsuite.models.subscription import Subscription, STATUS_TRIAL
from barsuite.models.user import User
from barsuite.services import email as email_service
from barsuite.services.organization import create_organization
from barsuite.services.subscription import stripe_gateway
from barsuite.services.user import create_user


STRIPE_TEST_KEY = "sk_test_dummy"


class FakeStripeApi:
    """Stands in for the Stripe API resources, returning real SDK objects."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple, dict]] = []
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def _stored(self, subscription_id: str) -> dict[str, Any]:
        # Rows created by fixtures were never sent through create
        return self.subscriptions.setdefault(subscription_id, {
            "id": subscription_id,
            "object": "subscription",
            "status": "active",
            "cancel_at_period_end": False,
            "items": {
                "object": "list",
                "data": [{"id": f"si_{subscription_id}", "object": "subscription_item"}],
            },
        })

    def _subscription(self, values: dict[str, Any]) -> stripe.Subscription:
        return stripe.Subscription.construct_from(values, STRIPE_TEST_KEY)

    def customer_create(self, **params: Any) -> stripe.Customer:
        self.calls.append(("Customer.create", (), params))
        customer_id = f"cus_test_{params['metadata']['user_id']}"
        return stripe.Customer.construct_from(
            {"id": customer_id, "object": "customer", "email": params.get("email")}, STRIPE_TEST_KEY
        )

    def subscription_create(self, **params: Any) -> stripe.Subscription:
        self.calls.append(("Subscription.create", (), params))
        values = self._stored(f"sub_test_{next(self._ids)}")
        values["customer"] = params["customer"]
        if params.get("trial_period_days"):
            values["status"] = "trialing"
            values["trial_end"] = int(time.time()) + params["trial_period_days"] * 86400
        else:
            values["status"] = "incomplete"
        return self._subscription(values)

    def subscription_retrieve(self, subscription_id: str, **params: Any) -> stripe.Subscription:
        self.calls.append(("Subscription.retrieve", (subscription_id,), params))
        return self._subscription(self._stored(subscription_id))

    def subscription_modify(self, subscription_id: str, **params: Any) -> stripe.Subscription:
        self.calls.append(("Subscription.modify", (subscription_id,), params))
        values = self._stored(subscription_id)
        if "cancel_at_period_end" in params:
            values["cancel_at_period_end"] = params["cancel_at_period_end"]
        return self._subscription(values)

    def subscription_cancel(self, subscription_id: str, **params: Any) -> stripe.Subscription:
        self.calls.append(("Subscription.cancel", (subscription_id,), params))
        values = self._stored(subscription_id)
        values["status"] = "canceled"
        return self._subscription(values)

    def call_names(self) -> list[str]:
        return [name for name, _, _ in self.calls]


@pytest.fixture
def engine() -> Iterator[Engine]:
    """Return an in-memory SQLite engine with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Iterator[Session]:
    """Return a session bound to the test engine."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Capture outgoing email instead of talking to SMTP."""
    outbox: list[dict[str, Any]] = []

    def fake_send_email(to_email: str, subject: str, html_body: str, text_body: str | None = None) -> bool:
        outbox.append({"to": to_email, "subject": subject, "html": html_body, "text": text_body})
        return True

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return outbox


@pytest.fixture(autouse=True)
def fake_stripe(monkeypatch: pytest.MonkeyPatch) -> FakeStripeApi:
    """Configure the gateway and answer its SDK calls locally."""
    fake = FakeStripeApi()
    monkeypatch.setattr(stripe, "api_key", None)
    monkeypatch.setattr(stripe_gateway, "STRIPE_SECRET_KEY", STRIPE_TEST_KEY)
    monkeypatch.setattr(stripe_gateway, "PRICE_IDS", {
        (tier, period): f"price_{tier}_{period}"
        for tier in ("trial", "basic", "premium")
        for period in ("monthly", "yearly")
    })
    monkeypatch.setattr(stripe.Customer, "create", fake.customer_create)
    monkeypatch.setattr(stripe.Subscription, "create", fake.subscription_create)
    monkeypatch.setattr(stripe.Subscription, "retrieve", fake.subscription_retrieve)
    monkeypatch.setattr(stripe.Subscription, "modify", fake.subscription_modify)
    monkeypatch.setattr(stripe.Subscription, "cancel", fake.subscription_cancel)
    return fake


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """Return a factory for users; verified by default."""
    counter = itertools.count(1)

    def _make_user(
        email: str | None = None,
        password: str = "correct-horse-battery",
        verified: bool = True,
        role: str = "user",
        **fields: Any,
    ) -> User:
        email = email or f"user{next(counter)}@example.com"
        return create_user(db, email=email, password=password, role=role, email_verified=verified, **fields)

    return _make_user


@pytest.fixture
def make_subscription(db: Session) -> Callable[..., Subscription]:
    """Return a factory for subscription rows, bypassing the payment provider."""
    counter = itertools.count(1)

    def _make_subscription(user: User, status: str = STATUS_TRIAL, tier: str = "trial") -> Subscription:
        subscription = Subscription(
            user_id=user.id,
            stripe_subscription_id=f"sub_fixture_{next(counter)}",
            stripe_customer_id=f"cus_fixture_{user.id}",
            status=status,
            tier=tier,
            price=Decimal("0.00"),
            currency="EUR",
            billing_period="monthly",
            auto_renew=True,
            started_at=utcnow(),
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    return _make_subscription


@pytest.fixture
def make_org(
    db: Session,
    make_subscription: Callable[..., Subscription],
) -> Callable[..., Organization]:
    """Return a factory creating an organization with a fresh subscription for the owner."""

    def _make_org(owner: User, name: str = "Bar One", **kwargs: Any) -> Organization:
        subscription = make_subscription(owner)
        return create_organization(db, owner=owner, name=name, subscription_id=subscription.id, **kwargs)

    return _make_org


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """Return a TestClient whose requests share the test session."""
    from barsuite.main import app

    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper building a Bearer header for a user."""

    def _auth_headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _auth_headers
