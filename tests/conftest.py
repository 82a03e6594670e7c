"""
Pytest configuration and fixtures.
"""
import hashlib
import hmac
import json
import os
import time
from typing import Any, AsyncGenerator

os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake_key_for_testing")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_fake_secret")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.auth.auth_utils import create_access_token, hash_password
from app.core.database import get_db
from app.courses.database import create_course, create_user
from app.main import app
from app.payments.gateway import StripeGateway, get_payment_gateway

WEBHOOK_SECRET = "whsec_test_fake_secret"


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def mongo_db():
    """Fresh in-memory database per test."""
    return AsyncMongoMockClient()["lms_test"]


@pytest.fixture
def gateway() -> StripeGateway:
    return StripeGateway(
        api_key="sk_test_fake_key_for_testing",
        webhook_secret=WEBHOOK_SECRET,
        currency="egp",
        client_domain="http://frontend.test",
    )


@pytest_asyncio.fixture
async def client(mongo_db, gateway) -> AsyncGenerator[AsyncClient, Any]:
    """HTTP client bound to the app with test database and gateway."""
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def student(mongo_db) -> dict:
    return await create_user(
        mongo_db,
        {"user_name": "student", "email": "student@example.com", "role": "student"},
        hash_password("secret123"),
    )


@pytest_asyncio.fixture
async def instructor(mongo_db) -> dict:
    return await create_user(
        mongo_db,
        {"user_name": "instructor", "email": "instructor@example.com", "role": "instructor"},
        hash_password("secret123"),
    )


@pytest_asyncio.fixture
async def course(mongo_db, instructor) -> dict:
    return await create_course(
        mongo_db,
        {"title": "Async Python", "description": "Event loops", "price": 100.00},
        instructor["user_id"],
    )


def auth_headers_for(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user['user_id'], user['role'])}"}


@pytest.fixture
def student_headers(student) -> dict:
    return auth_headers_for(student)


@pytest.fixture
def instructor_headers(instructor) -> dict:
    return auth_headers_for(instructor)


@pytest.fixture
def send_webhook(client):
    """Post a signed Stripe event to the webhook endpoint."""

    async def _send(event_type: str, obj: dict, secret: str = WEBHOOK_SECRET, event_id: str = "evt_test_1"):
        payload = json.dumps({
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        })
        return await client.post(
            "/api/payments/webhook",
            content=payload,
            headers={"stripe-signature": sign_payload(payload, secret), "content-type": "application/json"},
        )

    return _send
