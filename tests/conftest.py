"""Shared fixtures: in-memory SQLite, Redis-backed features off, Supabase-style tokens"""

import os
import time

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret-for-pytest-only"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.database import Base, SessionLocal, engine
from app.main import app

PROVIDER_ID = "11111111-1111-1111-1111-111111111111"
CLIENT_ID = "22222222-2222-2222-2222-222222222222"
OTHER_ID = "33333333-3333-3333-3333-333333333333"
ADMIN_ID = "44444444-4444-4444-4444-444444444444"


def make_token(user_id: str, role: str = "client", expires_in: int = 3600, **claims) -> str:
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "email": f"{user_id[:8]}@example.com",
        "exp": int(time.time()) + expires_in,
        "user_metadata": {"role": role, "full_name": f"User {user_id[:4]}"},
    }
    payload.update(claims)
    return jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


def auth(user_id: str, role: str = "client") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


PROVIDER = auth(PROVIDER_ID, "provider")
CLIENT = auth(CLIENT_ID, "client")
OTHER = auth(OTHER_ID, "client")
ADMIN = auth(ADMIN_ID, "admin")


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


SERVICE_PAYLOAD = {
    "title": "Website Redesign",
    "description": "Full redesign of a small business website",
    "category": "design",
    "base_price": 250.5,
    "currency": "OMR",
    "status": "active",
    "tags": ["web", "design"],
    "packages": [{"name": "Premium", "price": 400.125, "delivery_days": 14}],
}


@pytest.fixture
def service(client):
    resp = client.post("/services", json=SERVICE_PAYLOAD, headers=PROVIDER)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def booking(client, service):
    resp = client.post(
        "/bookings",
        json={"service_id": service["id"], "scheduled_date": "2030-01-15T09:00:00Z", "notes": "Please call first"},
        headers=CLIENT,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def approved_booking(client, booking):
    resp = client.patch(f"/bookings/{booking['id']}", json={"action": "approve"}, headers=PROVIDER)
    assert resp.status_code == 200, resp.text
    return resp.json()


def add_milestone(client, booking_id, headers=PROVIDER, **fields):
    payload = {"title": "Milestone"}
    payload.update(fields)
    resp = client.post(f"/bookings/{booking_id}/milestones", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def add_task(client, milestone_id, headers=PROVIDER, **fields):
    payload = {"title": "Task"}
    payload.update(fields)
    resp = client.post(f"/milestones/{milestone_id}/tasks", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
