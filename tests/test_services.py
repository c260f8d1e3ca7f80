"""Tests for API keys, auditing and the case-created webhook."""

import asyncio
import json

import httpx
import pytest
from sqlalchemy.exc import IntegrityError

from caseintake.db.database import engine
from caseintake.db.models import ApiKey, ApiLog
from caseintake.db.seed import main as seed_main
from caseintake.services.api_key_service import (
    api_key_service,
    extract_bearer_token,
    generate_api_key,
    hash_api_key,
)
from caseintake.services.audit_service import AuditEntry, AuditService, mask_sensitive
from caseintake.services.notification_service import NotificationService
from caseintake.utils.exceptions import AuthenticationError, db_error_summary


# ============================================================================
# API keys
# ============================================================================

def test_generated_keys_are_long_alphanumeric():
    key = generate_api_key()

    assert len(key) == 64
    assert key.isalnum()
    assert generate_api_key() != key


def test_only_hash_is_stored(db, api_key):
    key, plain_key = api_key

    assert key.key_hash == hash_api_key(plain_key)
    assert len(key.key_hash) == 64
    assert db.query(ApiKey).filter(ApiKey.key_hash == plain_key).count() == 0


def test_bearer_scheme_is_case_insensitive():
    token = "a" * 40
    assert extract_bearer_token(f"bearer {token}") == token


def test_authenticate_returns_key(db, api_key):
    key, plain_key = api_key

    assert api_key_service.authenticate(db, f"Bearer {plain_key}").id == key.id


def test_authenticate_rejects_unknown(db):
    with pytest.raises(AuthenticationError):
        api_key_service.authenticate(db, "Bearer " + "z" * 64)


def test_seed_cli_issues_and_deactivates(db, capsys):
    assert seed_main(["issue", "--name", "Website form", "--limit", "5"]) == 0
    printed = capsys.readouterr().out
    key = db.query(ApiKey).one()
    assert key.name == "Website form"
    assert key.rate_limit_per_hour == 5
    plain_key = printed.strip().splitlines()[-1].strip()
    assert hash_api_key(plain_key) == key.key_hash

    assert seed_main(["deactivate", str(key.id)]) == 0
    db.expire_all()
    assert db.get(ApiKey, key.id).is_active is False
    assert seed_main(["deactivate", "999"]) == 1


# ============================================================================
# Audit
# ============================================================================

def test_mask_sensitive_nested():
    body = {"intakeData": {"clients": [{"ssn": "123-45-6789", "firstName": "Jane"}, {"ssn": ""}]}}

    masked = mask_sensitive(body)

    assert masked["intakeData"]["clients"][0] == {"ssn": "***-**-6789", "firstName": "Jane"}
    assert masked["intakeData"]["clients"][1] == {"ssn": ""}
    assert body["intakeData"]["clients"][0]["ssn"] == "123-45-6789"


def test_audit_bodies_truncated(db):
    AuditService(max_body_chars=50).log_request(
        engine,
        AuditEntry(
            endpoint="/api/v1/create-case",
            method="POST",
            status_code=201,
            response_time_ms=12,
            request_body={"notes": "x" * 500},
            response_body={"success": True},
        ),
    )

    log = db.query(ApiLog).one()
    assert len(log.request_body) == 50
    assert json.loads(log.response_body) == {"success": True}


def test_audit_failure_is_swallowed(db):
    # status_code is NOT NULL; the insert fails and must not raise
    AuditService().log_request(
        engine, AuditEntry(endpoint="/x", method="POST", status_code=None, response_time_ms=1)
    )

    assert db.query(ApiLog).count() == 0


def test_db_error_summary_drops_statement_and_parameters():
    exc = IntegrityError(
        "INSERT INTO clients (first_name, ssn) VALUES (?, ?)",
        ("Jane", "123-45-6789"),
        Exception("NOT NULL constraint failed: clients.last_name"),
    )

    assert db_error_summary(exc) == "NOT NULL constraint failed: clients.last_name"
    assert "123-45-6789" in str(exc)
    assert db_error_summary(ValueError("bad value\nmore detail")) == "bad value"
    assert db_error_summary(RuntimeError()) == "RuntimeError"


# ============================================================================
# Webhook
# ============================================================================

def test_webhook_posts_case_ids():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((request.headers.get("X-Correlation-ID"), json.loads(request.content)))
        return httpx.Response(204)

    service = NotificationService(
        webhook_url="https://hooks.example.test/case-created",
        transport=httpx.MockTransport(handler),
    )
    asyncio.run(service.notify_case_created(7, [1, 2], [3], correlation_id="c-1"))

    assert received == [("c-1", {"casefileId": 7, "clients": [1, 2], "defendants": [3]})]


def test_webhook_failure_is_logged_only():
    service = NotificationService(
        webhook_url="https://hooks.example.test/case-created",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    asyncio.run(service.notify_case_created(7, [1], []))


def test_webhook_disabled_without_url():
    service = NotificationService(webhook_url="")

    assert service.enabled is False
    asyncio.run(service.notify_case_created(7, [1], []))
