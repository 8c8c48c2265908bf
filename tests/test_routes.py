"""
Tests for API Routes.

Drives the FastAPI app through TestClient with the in-memory fakes wired in
via dependency overrides.
"""

from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.exceptions import PaymentProviderError
from app.models.domain import SessionClaims, UserAccount
from app.observability.metrics import render_metrics
from app.services.session_tokens import SessionTokenIssuer

PASSWORD = "correcthorse42"
REGISTRATION = {"email": "ada@example.com", "password": PASSWORD, "fullName": "Ada Obi"}


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def token_for(issuer: SessionTokenIssuer, account: UserAccount) -> str:
    return issuer.sign(
        SessionClaims(
            account_id=account.account_id, email=account.email, full_name=account.full_name
        )
    )


# ============================================================================
# Status
# ============================================================================


class TestStatusRoutes:
    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "MZone API Server Running"

    def test_health_ok(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    def test_health_database_down(self, client: TestClient, db_session: AsyncMock):
        db_session.execute = AsyncMock(side_effect=ConnectionError("refused"))

        response = client.get("/health")

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["database"] == "disconnected"

    def test_metrics(self, client: TestClient):
        client.get("/")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "mzone_http_requests_total" in response.text

    def test_metrics_labelled_by_route_template(self, client: TestClient):
        statuses = {client.get(f"/payment/verify/junk{i}").status_code for i in range(5)}
        assert len(statuses) == 1
        status_code = statuses.pop()
        client.get("/nope")

        series = [
            line
            for line in render_metrics().decode().splitlines()
            if line.startswith("mzone_http_requests_total{")
        ]
        verify_series = [
            line
            for line in series
            if "/payment/verify/" in line and f'status_code="{status_code}"' in line
        ]

        assert len(verify_series) == 1
        assert 'endpoint="/payment/verify/{reference}"' in verify_series[0]
        assert not any("junk" in line for line in series)
        assert any('endpoint="unmatched"' in line for line in series)
        assert not any('endpoint="/nope"' in line for line in series)

    def test_request_id_echoed(self, client: TestClient):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


# ============================================================================
# Auth
# ============================================================================


class TestAuthRoutes:
    def test_register_verify_login_scenario(self, otp_code, client: TestClient):
        register = client.post("/auth/register", json=REGISTRATION)
        assert register.status_code == 200
        body = register.json()
        assert body["success"] is True
        assert body["needs_verification"] is True
        assert body["token"] is None

        early_login = client.post(
            "/auth/login", json={"email": "ada@example.com", "password": PASSWORD}
        )
        assert early_login.status_code == 400
        assert early_login.json() == {
            "success": False,
            "message": "Please verify your email first",
            "needs_verification": True,
            "email": "ada@example.com",
        }

        verify = client.post("/auth/verify-otp", json={"email": "ada@example.com", "otp": otp_code})
        assert verify.status_code == 200
        assert verify.json()["user"]["email_verified"] is True

        login = client.post(
            "/auth/login", json={"email": "ADA@example.com", "password": PASSWORD}
        )
        assert login.status_code == 200
        token = login.json()["token"]

        me = client.get("/auth/me", headers=auth_header(token))
        assert me.status_code == 200
        assert me.json()["user"]["full_name"] == "Ada Obi"
        assert me.json()["user"]["is_subscribed"] is False

    def test_register_without_verification_returns_token(self, client_factory):
        client = client_factory(otp_enabled=False)

        response = client.post("/auth/register", json=REGISTRATION)

        assert response.status_code == 200
        body = response.json()
        assert body["needs_verification"] is False
        assert body["token"]
        assert body["user"]["email_verified"] is True

    def test_duplicate_registration_conflicts(self, client: TestClient):
        client.post("/auth/register", json=REGISTRATION)

        response = client.post("/auth/register", json={**REGISTRATION, "email": "ADA@EXAMPLE.COM"})

        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Email already registered"}

    def test_weak_password(self, client: TestClient):
        response = client.post("/auth/register", json={**REGISTRATION, "password": "letmein"})
        assert response.status_code == 400
        assert response.json()["message"] == "Password must be at least 10 characters"

    def test_missing_field_is_validation_error(self, client: TestClient):
        response = client.post("/auth/register", json={"email": "ada@example.com"})
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_wrong_otp(self, client: TestClient):
        client.post("/auth/register", json=REGISTRATION)

        response = client.post("/auth/verify-otp", json={"email": "ada@example.com", "otp": "000000"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid OTP code"

    def test_expired_otp(self, otp_code, client: TestClient, clock):
        client.post("/auth/register", json=REGISTRATION)
        clock.advance(timedelta(minutes=11))

        response = client.post("/auth/verify-otp", json={"email": "ada@example.com", "otp": otp_code})

        assert response.status_code == 400
        assert response.json()["message"] == "OTP expired. Please request a new one."

    def test_verify_unknown_user(self, otp_code, client: TestClient):
        response = client.post(
            "/auth/verify-otp", json={"email": "nobody@example.com", "otp": otp_code}
        )
        assert response.status_code == 400
        assert response.json()["message"] == "User not found"

    def test_resend_otp(self, client: TestClient, sender):
        client.post("/auth/register", json=REGISTRATION)

        response = client.post("/auth/resend-otp", json={"email": "ada@example.com"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "New OTP sent to your email"}
        assert len(sender.sent) == 2

    def test_resend_after_verification(self, otp_code, client: TestClient):
        client.post("/auth/register", json=REGISTRATION)
        client.post("/auth/verify-otp", json={"email": "ada@example.com", "otp": otp_code})

        response = client.post("/auth/resend-otp", json={"email": "ada@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Email already verified"

    def test_bad_credentials(self, client: TestClient):
        response = client.post(
            "/auth/login", json={"email": "nobody@example.com", "password": PASSWORD}
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid email or password"

    def test_me_requires_token(self, client: TestClient):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["message"] == "No token provided"

    def test_me_rejects_bad_token(self, client: TestClient):
        response = client.get("/auth/me", headers=auth_header("garbage"))
        assert response.status_code == 401

    def test_me_for_deleted_account(self, client: TestClient, token_issuer: SessionTokenIssuer):
        ghost = SessionClaims(account_id=uuid4(), email="ghost@example.com", full_name="Ghost")

        response = client.get("/auth/me", headers=auth_header(token_issuer.sign(ghost)))

        assert response.status_code == 404


# ============================================================================
# Payments
# ============================================================================


class TestPaymentRoutes:
    @pytest.fixture
    def account(self, store) -> UserAccount:
        return store.seed()

    @pytest.fixture
    def headers(self, account: UserAccount, token_issuer: SessionTokenIssuer) -> dict[str, str]:
        return auth_header(token_for(token_issuer, account))

    def test_list_plans(self, client: TestClient):
        response = client.get("/plans")

        assert response.status_code == 200
        body = response.json()
        assert body["currency"] == "NGN"
        assert {plan["plan_id"] for plan in body["plans"]} == {
            "monthly",
            "yearly",
            "pro_monthly",
            "pro_yearly",
        }

    def test_initialize_then_verify_scenario(
        self,
        client: TestClient,
        headers,
        account: UserAccount,
        payment_provider,
        clock,
    ):
        init = client.post("/payment/initialize", json={"plan": "pro_yearly"}, headers=headers)
        assert init.status_code == 200
        reference = init.json()["reference"]
        assert init.json()["amount_minor"] == 15_360_000

        payment_provider.complete(reference)
        verify = client.get(f"/payment/verify/{reference}", headers=headers)

        assert verify.status_code == 200
        body = verify.json()
        assert body["message"] == "Payment verified! Subscription activated."
        assert body["already_processed"] is False
        assert body["subscription"] == {
            "active": True,
            "plan": "pro_yearly",
            "expires_at": (clock() + timedelta(days=365)).isoformat(),
        }

        me = client.get("/auth/me", headers=headers).json()["user"]
        assert me["is_subscribed"] is True
        assert me["subscription_plan"] == "pro_yearly"

    def test_initialize_with_discount_code(self, client: TestClient, headers):
        response = client.post(
            "/payment/initialize",
            json={"plan": "monthly", "discountCode": "welcome10"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["amount_minor"] == 1_440_000
        assert response.json()["discount_code"] == "WELCOME10"

    def test_initialize_requires_verified_email(
        self, client: TestClient, store, token_issuer
    ):
        account = store.seed(email_verified=False)

        response = client.post(
            "/payment/initialize",
            json={"plan": "monthly"},
            headers=auth_header(token_for(token_issuer, account)),
        )

        assert response.status_code == 400
        assert response.json()["needs_verification"] is True

    def test_initialize_requires_token(self, client: TestClient):
        response = client.post("/payment/initialize", json={"plan": "monthly"})
        assert response.status_code == 401

    def test_initialize_provider_down(
        self, client: TestClient, headers, payment_provider
    ):
        payment_provider.fail_with = PaymentProviderError("Paystack returned HTTP 503")

        response = client.post("/payment/initialize", json={"plan": "monthly"}, headers=headers)

        assert response.status_code == 502
        assert response.json()["message"] == "Failed to initialize payment"

    def test_webhook_then_verify_is_noop(
        self,
        client: TestClient,
        headers,
        account: UserAccount,
        payment_provider,
        store,
        clock,
    ):
        payment_provider.add_transaction("ref_web", account.account_id, plan="yearly")
        payload, webhook_headers = payment_provider.webhook_request("ref_web")

        webhook = client.post("/payment/webhook", content=payload, headers=webhook_headers)
        assert webhook.status_code == 200
        assert webhook.json() == {"status": "ok", "outcome": "activated"}
        after_webhook = store.accounts[account.account_id]

        clock.advance(timedelta(minutes=2))
        verify = client.get("/payment/verify/ref_web", headers=headers)

        assert verify.status_code == 200
        assert verify.json()["already_processed"] is True
        assert verify.json()["message"] == "Payment already processed"
        assert store.accounts[account.account_id] == after_webhook
        assert store.subscription_writes == 1

    def test_verify_then_webhook_is_noop(
        self,
        client: TestClient,
        headers,
        account: UserAccount,
        payment_provider,
        store,
    ):
        payment_provider.add_transaction("ref_poll", account.account_id)
        client.get("/payment/verify/ref_poll", headers=headers)

        payload, webhook_headers = payment_provider.webhook_request("ref_poll")
        webhook = client.post("/payment/webhook", content=payload, headers=webhook_headers)

        assert webhook.json() == {"status": "ok", "outcome": "already_applied"}
        assert store.subscription_writes == 1

    def test_verify_someone_elses_payment(
        self,
        client: TestClient,
        headers,
        payment_provider,
        store,
    ):
        other = store.seed(email="other@example.com")
        payment_provider.add_transaction("ref_other", other.account_id)

        response = client.get("/payment/verify/ref_other", headers=headers)

        assert response.status_code == 403
        assert store.accounts[other.account_id].is_subscribed is False

    def test_verify_failed_payment(
        self,
        client: TestClient,
        headers,
        account: UserAccount,
        payment_provider,
    ):
        payment_provider.add_transaction("ref_fail", account.account_id, status="abandoned")

        response = client.get("/payment/verify/ref_fail", headers=headers)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Payment not successful",
            "status": "failed",
        }

    def test_verify_provider_error(self, client: TestClient, headers):
        response = client.get("/payment/verify/ref_missing", headers=headers)

        assert response.status_code == 502
        assert response.json()["message"] == "Failed to verify payment"

    def test_verify_transaction_without_metadata(
        self, client: TestClient, headers, payment_provider
    ):
        payment_provider.add_transaction("ref_foreign", None)

        response = client.get("/payment/verify/ref_foreign", headers=headers)

        assert response.status_code == 400

    def test_webhook_bad_signature(
        self, client: TestClient, account: UserAccount, payment_provider
    ):
        payment_provider.add_transaction("ref_x", account.account_id)
        payload, webhook_headers = payment_provider.webhook_request("ref_x")
        webhook_headers["x-paystack-signature"] = "0" * 128

        response = client.post("/payment/webhook", content=payload, headers=webhook_headers)

        assert response.status_code == 401

    def test_webhook_other_event_acknowledged(
        self,
        client: TestClient,
        account: UserAccount,
        payment_provider,
        store,
    ):
        payment_provider.add_transaction("ref_refund", account.account_id)
        payload, webhook_headers = payment_provider.webhook_request(
            "ref_refund", event="refund.processed"
        )

        response = client.post("/payment/webhook", content=payload, headers=webhook_headers)

        assert response.status_code == 200
        assert response.json() == {"status": "ignored", "outcome": None}
        assert store.accounts[account.account_id].is_subscribed is False

    def test_webhook_for_unknown_account(
        self, client: TestClient, payment_provider
    ):
        payment_provider.add_transaction("ref_ghost", uuid4())
        payload, webhook_headers = payment_provider.webhook_request("ref_ghost")

        response = client.post("/payment/webhook", content=payload, headers=webhook_headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "unknown_account"

    def test_webhook_without_metadata_acknowledged(
        self, client: TestClient, payment_provider
    ):
        payment_provider.add_transaction("ref_nometa", None)
        payload, webhook_headers = payment_provider.webhook_request("ref_nometa")

        response = client.post("/payment/webhook", content=payload, headers=webhook_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
