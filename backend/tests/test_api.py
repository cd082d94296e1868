"""End-to-end tests through the HTTP layer."""

from __future__ import annotations

import hashlib
import hmac
import json
import time

import jwt
import pytest

from barsuite.core import auth as core_auth
from barsuite.models.organization_invitation import OrganizationInvitation
from barsuite.models.subscription import STATUS_ACTIVE, STATUS_CANCELED
from barsuite.models.user import User
from barsuite.services.subscription import stripe_gateway

WEBHOOK_SECRET = "whsec_test_secret"

SECRET_USER_FIELDS = {
    "hashed_password",
    "email_verification_token",
    "password_reset_token",
    "google_id",
    "stripe_customer_id",
}


def _register(client, email: str, password: str = "correct-horse-battery", **fields) -> dict:
    response = client.post("/api/auth/register", json={"email": email, "password": password, **fields})
    assert response.status_code == 201, response.text
    return response.json()


def _verify(client, db, email: str) -> None:
    db.expire_all()
    token = db.query(User).filter(User.email == email).one().email_verification_token
    response = client.post("/api/auth/verify-email", json={"token": token})
    assert response.status_code == 200, response.text


def _invitation_token(db, email: str) -> str:
    db.expire_all()
    return db.query(OrganizationInvitation).filter(OrganizationInvitation.email == email).one().token


def _bearer(auth: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth['access_token']}"}


def _signature_header(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


class TestRegistrationScenario:
    """Invitations addressed to an email turn into memberships on sign-up."""

    def test_invited_user_joins_on_registration(self, client, db, sent_emails) -> None:
        """Test Alice invites Bob, Bob registers and is a manager without accepting."""
        alice = _register(client, "alice@example.com", first_name="Alice")
        _verify(client, db, "alice@example.com")

        trial = client.post("/api/subscription/start-owner-trial", json={}, headers=_bearer(alice))
        assert trial.status_code == 201, trial.text
        assert trial.json()["status"] == "trial"

        org = client.post("/api/organizations", json={"name": "Bar One"}, headers=_bearer(alice))
        assert org.status_code == 201, org.text
        org_id = org.json()["id"]
        assert org.json()["role"] == "owner"

        invite = client.post(
            f"/api/organizations/{org_id}/invitations",
            json={"email": "bob@example.com", "role": "manager"},
            headers=_bearer(alice),
        )
        assert invite.status_code == 201, invite.text
        assert "token" not in invite.json()
        assert any(mail["to"] == "bob@example.com" for mail in sent_emails)

        _register(client, "bob@example.com")

        members = client.get(f"/api/organizations/{org_id}/users", headers=_bearer(alice))
        assert members.status_code == 200
        roles = {m["email"]: m["role"] for m in members.json()}
        assert roles == {"alice@example.com": "owner", "bob@example.com": "manager"}

        pending = client.get(f"/api/organizations/{org_id}/invitations", headers=_bearer(alice))
        assert pending.json() == []

    def test_public_link_then_registration(self, client, db) -> None:
        """Test accepting from the link before the account exists."""
        alice = _register(client, "alice@example.com")
        _verify(client, db, "alice@example.com")
        client.post("/api/subscription/start-owner-trial", json={}, headers=_bearer(alice))
        org_id = client.post("/api/organizations", json={"name": "Bar One"}, headers=_bearer(alice)).json()["id"]
        client.post(
            f"/api/organizations/{org_id}/invitations",
            json={"email": "carol@example.com", "role": "staff"},
            headers=_bearer(alice),
        )
        token = _invitation_token(db, "carol@example.com")

        preview = client.get(f"/api/invitations/public/{token}")
        assert preview.status_code == 200
        assert preview.json()["organization_name"] == "Bar One"
        assert preview.json()["account_exists"] is False

        accepted = client.post(f"/api/invitations/public/{token}/accept")
        assert accepted.json()["status"] == "accepted_pending_registration"

        carol = _register(client, "carol@example.com")
        _verify(client, db, "carol@example.com")
        orgs = client.get("/api/organizations", headers=_bearer(carol))
        assert [(o["name"], o["role"]) for o in orgs.json()] == [("Bar One", "staff")]


class TestAuthBoundary:
    """Tests for authentication, validation and response shaping."""

    def test_me_excludes_secrets(self, client) -> None:
        """Test that user payloads never carry hashes or tokens."""
        auth = _register(client, "alice@example.com")

        response = client.get("/api/auth/me", headers=_bearer(auth))

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "alice@example.com"
        assert isinstance(body["id"], str)
        assert SECRET_USER_FIELDS.isdisjoint(body)
        assert SECRET_USER_FIELDS.isdisjoint(auth["user"])

    def test_missing_token(self, client) -> None:
        """Test unauthenticated access."""
        assert client.get("/api/auth/me").status_code == 401

    def test_refresh_token_cannot_be_used_as_access(self, client) -> None:
        """Test token type separation."""
        auth = _register(client, "alice@example.com")

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {auth['refresh_token']}"})
        assert response.status_code == 401

        refreshed = client.post("/api/auth/refresh-token", json={"refresh_token": auth["refresh_token"]})
        assert refreshed.status_code == 200
        assert refreshed.json()["user"]["email"] == "alice@example.com"

    def test_login(self, client) -> None:
        """Test login with right and wrong passwords."""
        _register(client, "alice@example.com", password="password-123")

        ok = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "password-123"})
        bad = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})

        assert ok.status_code == 200
        assert bad.status_code == 401
        assert bad.json()["code"] == "INVALID_CREDENTIALS"

    def test_duplicate_registration(self, client) -> None:
        """Test email uniqueness over HTTP."""
        _register(client, "alice@example.com")

        response = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "password-123"})

        assert response.status_code == 409
        assert response.json()["code"] == "EMAIL_ALREADY_EXISTS"

    def test_validation_error_is_bad_request(self, client) -> None:
        """Test that malformed input is a 400, not a 422."""
        response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "short"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_overlong_password_is_rejected(self, client) -> None:
        """Test that passwords past bcrypt's 72-byte limit are a 400, not a crash."""
        response = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "x" * 100})

        assert response.status_code == 400
        assert response.json()["code"] == "PASSWORD_TOO_LONG"

    def test_token_signed_with_another_secret(self, client, make_user) -> None:
        """Test that only tokens signed with the configured secret are accepted."""
        admin = make_user(role="admin")
        forged = jwt.encode(
            {"sub": str(admin.id), "type": "access", "exp": int(time.time()) + 600},
            "dev-secret-change-in-production",
            algorithm="HS256",
        )

        response = client.get("/api/users", headers={"Authorization": f"Bearer {forged}"})

        assert response.status_code == 401

    def test_unconfigured_secret_refuses_to_sign(self, make_user, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that no token is issued without a signing secret."""
        user = make_user()
        monkeypatch.setattr(core_auth, "JWT_SECRET", None)

        with pytest.raises(ValueError):
            core_auth.create_access_token(user)

    def test_unverified_user_cannot_create_organization(self, client) -> None:
        """Test the verified-email guard on organization routes."""
        auth = _register(client, "alice@example.com")

        response = client.post("/api/organizations", json={"name": "Bar One"}, headers=_bearer(auth))

        assert response.status_code == 403

    def test_malformed_id_is_not_found(self, client, make_user, auth_headers) -> None:
        """Test that non-numeric ids are reported as missing."""
        user = make_user()

        response = client.get("/api/organizations/not-a-number", headers=auth_headers(user))

        assert response.status_code == 404

    def test_non_member_is_forbidden(self, client, make_user, make_org, auth_headers) -> None:
        """Test that outsiders get 403 with a code."""
        org = make_org(make_user())
        outsider = make_user()

        response = client.get(f"/api/organizations/{org.id}", headers=auth_headers(outsider))

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_ORGANIZATION_MEMBER"

    def test_users_admin_routes(self, client, make_user, auth_headers) -> None:
        """Test that the user list is admin-only."""
        admin = make_user(role="admin")
        user = make_user()

        assert client.get("/api/users", headers=auth_headers(user)).status_code == 403
        listing = client.get("/api/users", headers=auth_headers(admin))
        assert listing.status_code == 200
        assert listing.json()["total"] == 2
        assert SECRET_USER_FIELDS.isdisjoint(listing.json()["users"][0])


class TestSubscriptionRoutes:
    """Tests for the subscription endpoints."""

    def test_plans_are_public(self, client) -> None:
        """Test the plan catalogue without authentication."""
        response = client.get("/api/subscription/plans")

        assert response.status_code == 200
        assert [p["tier"] for p in response.json()] == ["trial", "basic", "premium"]

    def test_cancel_and_reactivate(self, client, make_user, auth_headers) -> None:
        """Test the cancel and reactivate endpoints."""
        user = make_user()
        headers = auth_headers(user)
        client.post("/api/subscription/start-owner-trial", json={"billing_period": "yearly"}, headers=headers)

        canceled = client.delete("/api/subscription/cancel", headers=headers)
        assert canceled.json()["status"] == "suspended"

        blocked = client.post("/api/subscription/change-tier", json={"tier": "premium"}, headers=headers)
        assert blocked.status_code == 400

        reactivated = client.post("/api/subscription/reactivate", headers=headers)
        assert reactivated.json()["status"] == "active"

        final = client.delete("/api/subscription/cancel", params={"immediately": True}, headers=headers)
        assert final.json()["status"] == "canceled"

        again = client.delete("/api/subscription/cancel", headers=headers)
        assert again.status_code == 400


class TestStripeWebhook:
    """Tests for the Stripe webhook endpoint."""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Configure the signing secret."""
        monkeypatch.setattr(stripe_gateway, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)

    def test_missing_signature(self, client) -> None:
        """Test that unsigned requests are rejected."""
        response = client.post("/api/webhooks/stripe", content=b"{}")

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing stripe-signature header"

    def test_invalid_signature(self, client) -> None:
        """Test that a forged signature is rejected."""
        payload = json.dumps({"id": "evt_1", "type": "invoice.paid", "data": {"object": {}}}).encode()

        response = client.post(
            "/api/webhooks/stripe",
            content=payload,
            headers={"stripe-signature": _signature_header(payload, secret="whsec_wrong")},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_WEBHOOK_SIGNATURE"

    def test_signed_event_is_applied_idempotently(self, client, db, make_user, make_subscription) -> None:
        """Test that a verified deletion cancels and replays change nothing."""
        subscription = make_subscription(make_user(), status=STATUS_ACTIVE)
        payload = json.dumps({
            "id": "evt_deleted",
            "object": "event",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": subscription.stripe_subscription_id, "status": "canceled"}},
        }).encode()

        for _ in range(2):
            response = client.post(
                "/api/webhooks/stripe",
                content=payload,
                headers={"stripe-signature": _signature_header(payload)},
            )
            assert response.status_code == 200
            assert response.json() == {"received": True}

        db.refresh(subscription)
        assert subscription.status == STATUS_CANCELED


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client) -> None:
        """Test liveness with the database reachable."""
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "ok"}
