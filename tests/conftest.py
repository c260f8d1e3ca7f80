"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CASE_CREATED_WEBHOOK_URL"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from caseintake.db import models  # noqa: E402,F401
from caseintake.db.database import Base, SessionLocal, engine  # noqa: E402
from caseintake.main import app  # noqa: E402
from caseintake.services.api_key_service import api_key_service  # noqa: E402
from caseintake.services.case_intake_service import case_intake_service  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    """Recreate every table so each test starts from an empty database."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
def restore_intake_clocks():
    clock, today = case_intake_service.clock, case_intake_service.today
    yield
    case_intake_service.clock, case_intake_service.today = clock, today


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture
def issue_key(db):
    """Issue an API key and return ``(ApiKey, plain_key)``."""
    def _issue(name: str = "Test integration", limit: int = 100, expires_at=None):
        return api_key_service.issue_key(db, name=name, rate_limit_per_hour=limit, expires_at=expires_at)
    return _issue


@pytest.fixture
def api_key(issue_key):
    return issue_key()


@pytest.fixture
def auth_headers(api_key) -> dict:
    _, plain_key = api_key
    return {"Authorization": f"Bearer {plain_key}"}


@pytest.fixture
def fixed_today():
    case_intake_service.today = lambda: date(2024, 6, 1)
    return date(2024, 6, 1)

