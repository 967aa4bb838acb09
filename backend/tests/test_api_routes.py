"""
API surface over the in-memory database: auth, credits, payments, webhook,
admin stats, and the JSON error envelope ({"error": ...}) for every failure.
"""
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from doclens.models.webhook_events import LineItems
from fakes import make_user
from server import app


def _login_as(services, **user_fields):
    user = make_user(**user_fields)
    services.db.users.docs.append(user)
    token = create_access_token({"sub": user["user_id"], "email": user["email"]})
    return user, {"Authorization": f"Bearer {token}"}


# =============================================================================
# Health / auth
# =============================================================================

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_login_me(client, services):
    response = client.post("/api/auth/register", json={
        "email": "New.User@Example.com", "username": "newbie", "password": "correct-horse",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "new.user@example.com"
    assert body["user"]["credits"] == 3
    assert "password_hash" not in body["user"]

    login = client.post("/api/auth/login", json={"email": "new.user@example.com", "password": "correct-horse"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "newbie"


def test_register_duplicate_email_is_conflict(client):
    payload = {"email": "dup@example.com", "password": "long-enough-pw"}
    assert client.post("/api/auth/register", json=payload).status_code == 200

    response = client.post("/api/auth/register", json=payload)

    assert response.status_code == 422
    assert response.json() == {"error": "Email already registered"}


def test_register_admin_email_gets_admin_flag(client, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "boss@example.com, other@example.com")
    response = client.post("/api/auth/register", json={"email": "Boss@example.com", "password": "long-enough-pw"})
    assert response.json()["user"]["is_admin"] is True


def test_login_wrong_password(client):
    client.post("/api/auth/register", json={"email": "a@example.com", "password": "long-enough-pw"})
    response = client.post("/api/auth/login", json={"email": "a@example.com", "password": "nope-nope-nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password"}


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Token abc"}, {"Authorization": "Bearer not-a-jwt"}])
def test_me_requires_valid_bearer_token(client, headers):
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": "UNAUTHENTICATED"}


# =============================================================================
# Credits
# =============================================================================

def test_spend_credit(client, services):
    user, headers = _login_as(services, credits=1)

    first = client.post("/api/credits/spend", headers=headers)
    second = client.post("/api/credits/spend", headers=headers)

    assert (first.status_code, first.json()) == (200, {"ok": True})
    assert (second.status_code, second.json()) == (402, {"error": "NO_CREDITS"})
    assert client.get("/api/credits/balance", headers=headers).json() == {"credits": 0}


def test_spend_credit_unauthenticated(client):
    response = client.post("/api/credits/spend")
    assert (response.status_code, response.json()) == (401, {"error": "UNAUTHENTICATED"})


# =============================================================================
# Payments
# =============================================================================

def test_plans_are_public(client):
    response = client.get("/api/payments/plans")
    assert response.status_code == 200
    assert [p["plan_id"] for p in response.json()["plans"]] == ["hobby", "pro", "credits10"]


def test_checkout_session_links_stripe_customer(client, services):
    user, headers = _login_as(services)
    services.payment_processor.create_checkout_session = AsyncMock(return_value={
        "session_url": "https://checkout.stripe.com/cs_1", "session_id": "cs_1", "customer_id": "cus_9",
    })

    response = client.post("/api/payments/checkout-session", json={"plan_id": "credits10"}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"session_url": "https://checkout.stripe.com/cs_1", "session_id": "cs_1"}
    kwargs = services.payment_processor.create_checkout_session.await_args.kwargs
    assert kwargs["plan"].plan_id.value == "credits10"
    assert kwargs["user_email"] == user["email"]
    assert services.db.users.docs[0]["payment_processor_user_id"] == "cus_9"


def test_checkout_session_rejects_unknown_plan(client, services):
    _, headers = _login_as(services)
    response = client.post("/api/payments/checkout-session", json={"plan_id": "enterprise"}, headers=headers)
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_FAILED"


def test_checkout_session_requires_auth(client):
    response = client.post("/api/payments/checkout-session", json={"plan_id": "pro"})
    assert response.status_code == 401


def test_customer_portal(client, services):
    _, headers = _login_as(services)
    services.payment_processor.fetch_customer_portal_url = AsyncMock(return_value="https://billing.stripe.com/p/x")

    response = client.get("/api/payments/customer-portal", headers=headers)

    assert response.json() == {"url": "https://billing.stripe.com/p/x"}


# =============================================================================
# Webhook
# =============================================================================

def test_webhook_route_applies_event(client, services):
    services.db.users.docs.append(make_user(payment_processor_user_id="cus_1"))
    event = {
        "id": "evt_api_1",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_1", "customer": "cus_1"}},
    }
    services.payment_processor.construct_event = MagicMock(return_value=event)
    services.payment_processor.fetch_line_items = AsyncMock(
        return_value=LineItems.model_validate({"data": [{"price": {"id": "price_hobby"}}]})
    )
    payload = json.dumps(event).encode()

    response = client.post("/api/payments/webhook", content=payload, headers={"stripe-signature": "t=1,v1=x"})

    assert (response.status_code, response.json()) == (200, {"received": True})
    services.payment_processor.construct_event.assert_called_once_with(payload, "t=1,v1=x")
    assert services.db.users.docs[0]["subscription_plan"] == "hobby"


def test_webhook_route_without_signature(client):
    response = client.post("/api/payments/webhook", content=b"{}")
    assert response.status_code == 400
    assert response.json() == {"error": "Stripe webhook signature not provided"}


def test_webhook_route_unhandled_event(client, services):
    services.payment_processor.construct_event = MagicMock(
        return_value={"id": "evt_x", "type": "charge.refunded", "data": {"object": {}}}
    )
    response = client.post("/api/payments/webhook", content=b"{}", headers={"stripe-signature": "sig"})
    assert (response.status_code, response.json()) == (422, {"error": "Unhandled event type: charge.refunded"})


# =============================================================================
# Admin
# =============================================================================

def test_admin_stats_requires_admin(client, services):
    _, headers = _login_as(services, is_admin=False)
    assert client.get("/api/admin/stats").status_code == 401
    response = client.get("/api/admin/stats", headers=headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Only admins are allowed to perform this operation"}


def test_admin_stats(client, services):
    _, headers = _login_as(services, is_admin=True)
    services.db.daily_stats.docs.append({
        "stats_id": "DST-1", "date": datetime(2026, 5, 1, tzinfo=timezone.utc), "user_count": 4, "total_revenue": 9.5,
    })

    response = client.get("/api/admin/stats", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["daily_stats"]["stats_id"] == "DST-1"
    assert body["daily_stats"]["total_revenue"] == 9.5
    assert len(body["weekly_stats"]) == 1


def test_admin_run_daily_stats_now(client, services):
    _, headers = _login_as(services, is_admin=True)
    services.daily_stats_job.run = AsyncMock(return_value={"date": "2026-05-10"})

    response = client.post("/api/admin/jobs/daily-stats/run", headers=headers)

    assert response.status_code == 200
    assert response.json()["ok"] is True
    services.daily_stats_job.run.assert_awaited_once()


# =============================================================================
# Files
# =============================================================================

def _mock_s3(services):
    s3 = MagicMock()
    s3.generate_presigned_post.return_value = {"url": "https://files.s3.test/", "fields": {"policy": "p"}}
    s3.generate_presigned_url.return_value = "https://files.s3.test/signed"
    services.file_storage.bucket = "doclens-files"
    services.file_storage.s3_client = s3
    return s3


def test_create_list_and_download_file(client, services):
    user, headers = _login_as(services)
    _mock_s3(services)

    created = client.post("/api/files", json={"file_type": "application/pdf", "file_name": "lease.pdf"}, headers=headers)
    assert created.status_code == 200
    assert created.json() == {"upload_url": "https://files.s3.test/", "upload_fields": {"policy": "p"}}

    listed = client.get("/api/files", headers=headers).json()["files"]
    assert [f["name"] for f in listed] == ["lease.pdf"]
    assert listed[0]["user_id"] == user["user_id"]

    download = client.get("/api/files/download-url", params={"key": listed[0]["key"]}, headers=headers)
    assert download.json() == {"url": "https://files.s3.test/signed"}


def test_create_file_rejects_disallowed_type(client, services):
    _, headers = _login_as(services)
    response = client.post("/api/files", json={"file_type": "application/zip", "file_name": "a.zip"}, headers=headers)
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_FAILED"


def test_download_url_for_unknown_key_is_404(client, services):
    _, headers = _login_as(services)
    _mock_s3(services)
    response = client.get("/api/files/download-url", params={"key": "DLU-X/a.pdf"}, headers=headers)
    assert (response.status_code, response.json()) == (404, {"error": "File not found"})


def test_files_require_auth(client):
    assert client.get("/api/files").status_code == 401
    assert client.post("/api/files", json={"file_type": "image/png", "file_name": "a.png"}).status_code == 401


# =============================================================================
# Chatbot
# =============================================================================

def test_chatbot_reply(client, services):
    _, headers = _login_as(services)
    services.chatbot.generate_response = AsyncMock(return_value="Hello from DocLens")

    response = client.post("/api/chatbot", json={"messages": [{"role": "user", "content": "hi"}]}, headers=headers)

    assert (response.status_code, response.json()) == (200, {"content": "Hello from DocLens"})
    messages = services.chatbot.generate_response.await_args.args[0]
    assert [(m.role, m.content) for m in messages] == [("user", "hi")]


def test_chatbot_rejects_unknown_role(client, services):
    _, headers = _login_as(services)
    response = client.post("/api/chatbot", json={"messages": [{"role": "tool", "content": "x"}]}, headers=headers)
    assert response.status_code == 422


def test_chatbot_requires_auth(client):
    response = client.post("/api/chatbot", json={"messages": []})
    assert (response.status_code, response.json()) == (401, {"error": "UNAUTHENTICATED"})


# =============================================================================
# Error envelope
# =============================================================================

def test_unexpected_error_is_generic_500(services):
    _, headers = _login_as(services)
    services.credit_service.get_balance = AsyncMock(side_effect=RuntimeError("db on fire"))
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/api/credits/balance", headers=headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}
