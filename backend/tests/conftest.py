"""Pytest configuration and fixtures for storefront webhook backend tests.

This module provides reusable fixtures for testing:
- DynamoDB/SSM/SES mocking with moto
- Pipeline tables created from the production table definitions
- Provider webhook payload builders
"""

import hashlib
import hmac
import os
import time
from collections.abc import Callable
from typing import Any, Generator

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-storefront")
os.environ.setdefault("ENVIRONMENT", "test")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TABLE_PREFIX = "test-storefront"
TEST_STRIPE_WEBHOOK_SECRET = "whsec_test_secret_for_testing"
TEST_COINBASE_WEBHOOK_SECRET = "cc_test_shared_secret"
TEST_REGION = "eu-west-1"

ADMIN_HEADERS = {
    "x-user-sub": "admin-sub-001",
    "x-user-email": "admin@example.com",
    "x-user-groups": "admin",
}


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_service_singletons() -> Generator[None, None, None]:
    """Reset cached services before and after each test.

    Ensures tests using mock_aws get fresh boto3 clients created inside
    the mock context rather than reusing ones from a previous test.
    """
    from storefront_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()


@pytest.fixture(autouse=True)
def pipeline_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Known secrets, table prefix, and no email sender by default."""
    monkeypatch.setenv("DYNAMODB_TABLE_PREFIX", TABLE_PREFIX)
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", TEST_STRIPE_WEBHOOK_SECRET)
    monkeypatch.setenv("COINBASE_COMMERCE_WEBHOOK_SECRET", TEST_COINBASE_WEBHOOK_SECRET)
    monkeypatch.delenv("SES_FROM_EMAIL", raising=False)
    monkeypatch.delenv("MAX_RETRY_ATTEMPTS", raising=False)


# === AWS Fixtures ===


@pytest.fixture
def aws_mock() -> Generator[None, None, None]:
    """Activate moto for every AWS service."""
    with mock_aws():
        yield


@pytest.fixture
def dynamodb_client(aws_mock: None) -> Any:
    """Create a mocked DynamoDB client."""
    return boto3.client("dynamodb", region_name=TEST_REGION)


@pytest.fixture
def create_tables(dynamodb_client: Any) -> list[str]:
    """Create all pipeline tables for testing."""
    from storefront.services.tables import create_tables as create_pipeline_tables

    return create_pipeline_tables(dynamodb_client, TABLE_PREFIX)


@pytest.fixture
def dynamodb_resource(create_tables: list[str]) -> Any:
    """DynamoDB resource for reading what the pipeline wrote."""
    return boto3.resource("dynamodb", region_name=TEST_REGION)


@pytest.fixture
def db(create_tables: list[str]) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from storefront.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


@pytest.fixture
def scan_table(dynamodb_resource: Any) -> Callable[[str], list[dict[str, Any]]]:
    """Return every item of a pipeline table (by suffix)."""

    def _scan(suffix: str) -> list[dict[str, Any]]:
        table = dynamodb_resource.Table(f"{TABLE_PREFIX}-{suffix}")
        return table.scan().get("Items", [])

    return _scan


@pytest.fixture
def ledger(db: Any) -> Any:
    """EventLedger bound to the mocked tables."""
    from storefront.services.event_ledger import EventLedger

    return EventLedger(db)


# === API Fixtures ===


@pytest.fixture
def client(db: Any) -> TestClient:
    """TestClient for the FastAPI app with pipeline tables in place."""
    from storefront_api.main import app

    return TestClient(app)


# === Signatures ===


def create_stripe_signature(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Create a valid Stripe webhook signature.

    Stripe signatures use HMAC-SHA256 with format: t={timestamp},v1={signature}
    """
    ts = str(timestamp or int(time.time()))
    signed_payload = f"{ts}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={ts},v1={signature}"


def create_coinbase_signature(payload: bytes, secret: str) -> str:
    """Create a valid X-CC-Webhook-Signature (hex HMAC-SHA256 of the body)."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


# === Payload Builders ===


def build_checkout_session(
    session_id: str = "cs_test_abc123",
    amount_total: int | None = 9900,
    currency: str | None = "usd",
    metadata: dict[str, Any] | None = None,
    customer_details: dict[str, Any] | None = None,
    payment_intent: str | None = "pi_3ABC123DEF456",
    customer: str | dict[str, Any] | None = "cus_TEST123",
) -> dict[str, Any]:
    """Create a Checkout Session object as Stripe sends it."""
    return {
        "id": session_id,
        "object": "checkout.session",
        "amount_total": amount_total,
        "currency": currency,
        "customer": customer,
        "customer_details": customer_details
        if customer_details is not None
        else {"email": "buyer@example.com", "name": "Stripe Details Name", "phone": None},
        "metadata": metadata
        if metadata is not None
        else {
            "transaction_id": "txn_001",
            "offeringId": "offering-basic",
            "customer_name": "Ada Lovelace",
        },
        "payment_intent": payment_intent,
        "payment_method_types": ["card"],
        "payment_status": "paid",
    }


def build_stripe_event(
    event_id: str = "evt_1ABC123DEF456",
    event_type: str = "checkout.session.completed",
    session: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a Stripe event envelope."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1767225600,
        "data": {"object": session if session is not None else build_checkout_session()},
    }


def build_coinbase_charge(
    charge_id: str = "f765421f-2d1c-4c25-8d4f-6fb8bd5b4d9e",
    code: str = "ABCD1234",
    pricing_type: str = "fixed_price",
    pricing: dict[str, Any] | None = None,
    payments: list[dict[str, Any]] | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a Coinbase Commerce charge object."""
    return {
        "id": charge_id,
        "code": code,
        "pricing_type": pricing_type,
        "pricing": pricing
        if pricing is not None
        else {
            "local": {"amount": "25.00", "currency": "USD"},
            "bitcoin": {"amount": "0.00041000", "currency": "BTC"},
        },
        "payments": payments
        if payments is not None
        else [
            {
                "network": "ethereum",
                "transaction_id": "0xabc",
                "status": "CONFIRMED",
                "value": {
                    "local": {"amount": "25.00", "currency": "USD"},
                    "crypto": {"amount": "0.0100", "currency": "ETH"},
                },
            }
        ],
        "metadata": metadata
        if metadata is not None
        else {
            "customer_email": "a@b.com",
            "customer_name": "A",
            "customer_phone": "",
            "transaction_id": "txn_cb_001",
            "offeringId": "offering-basic",
        },
        "hosted_url": f"https://commerce.coinbase.com/charges/{code}",
    }


def build_coinbase_body(
    event_id: str = "c1d2e3f4-0000-4000-8000-000000000001",
    event_type: str = "charge:confirmed",
    charge: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a Coinbase webhook body: {id, scheduled_for, event}."""
    return {
        "id": 1,
        "scheduled_for": "2026-01-01T00:00:00Z",
        "event": {
            "id": event_id,
            "type": event_type,
            "api_version": "2018-03-22",
            "created_at": "2026-01-01T00:00:00Z",
            "data": charge if charge is not None else build_coinbase_charge(),
        },
    }
