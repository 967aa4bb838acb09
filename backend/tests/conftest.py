"""
Pytest configuration and shared test helpers for backend tests.
"""
import os

# Skip heavy server startup (MongoDB, scheduler) when running under pytest.
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("PAYMENTS_HOBBY_SUBSCRIPTION_PLAN_ID", "price_hobby")
os.environ.setdefault("PAYMENTS_PRO_SUBSCRIPTION_PLAN_ID", "price_pro")
os.environ.setdefault("PAYMENTS_CREDITS_10_PLAN_ID", "price_credits10")
os.environ.pop("POSTMARK_SERVER_TOKEN", None)

import pytest
from unittest.mock import MagicMock

# Shared TestClient fixture so tests can use in-process requests without a running server.
# The lifespan (MongoDB, scheduler) is not entered: services are wired onto app.state
# with the in-memory database instead.
from fastapi.testclient import TestClient
from server import app

from doclens.dependencies import build_services
from fakes import FakeDatabase


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def services(fake_db):
    """Service container over the in-memory database with a mocked Stripe adapter."""
    container = build_services(fake_db, payment_processor=MagicMock())
    app.state.services = container
    yield container
    app.dependency_overrides.clear()


@pytest.fixture
def client(services):
    """Return a TestClient for the main FastAPI app (server:app). Use for unit-style API tests."""
    return TestClient(app)
