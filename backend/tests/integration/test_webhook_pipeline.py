"""Integration tests for the webhook pipeline against moto.

Covers the full path from signed HTTP delivery to stored records, and the
retry loop: admin queues a failed event, the retry worker re-runs it on
the same ledger row, and repeated failures end in abandoned.
"""

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import patch

import boto3
import pytest
from fastapi.testclient import TestClient
from starlette.status import HTTP_200_OK, HTTP_500_INTERNAL_SERVER_ERROR

from conftest import (
    ADMIN_HEADERS,
    TEST_COINBASE_WEBHOOK_SECRET,
    TEST_STRIPE_WEBHOOK_SECRET,
    build_checkout_session,
    build_coinbase_body,
    build_coinbase_charge,
    build_stripe_event,
    create_coinbase_signature,
    create_stripe_signature,
)
from storefront.models.enums import PaymentProvider, WebhookEventStatus
from storefront.models.payment import MaterializationResult
from storefront.services.charge_materializer import StripeChargeMaterializer
from storefront.services.notification_service import NotificationService
from storefront.services.retry_worker import RetryWorker, handler as retry_handler, main
from storefront.services.webhook_handler import WebhookHandler

pytestmark = pytest.mark.integration

ScanTable = Callable[[str], list[dict[str, Any]]]


def _post_coinbase(client: TestClient, body: dict[str, Any]) -> Any:
    payload = json.dumps(body).encode()
    return client.post(
        "/webhooks/coinbase",
        content=payload,
        headers={
            "Content-Type": "application/json",
            "X-CC-Webhook-Signature": create_coinbase_signature(
                payload, TEST_COINBASE_WEBHOOK_SECRET
            ),
        },
    )


def _post_stripe(client: TestClient, event: dict[str, Any]) -> Any:
    payload = json.dumps(event).encode()
    return client.post(
        "/webhooks/stripe",
        content=payload,
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": create_stripe_signature(payload, TEST_STRIPE_WEBHOOK_SECRET),
        },
    )


def _only_event_id(scan_table: ScanTable) -> str:
    events = scan_table("webhook-events")
    assert len(events) == 1
    return str(events[0]["webhook_event_id"])


@pytest.fixture
def worker(ledger: Any) -> RetryWorker:
    return RetryWorker(
        ledger=ledger,
        handler=WebhookHandler(ledger=ledger),
        notifier=NotificationService(),
        max_attempts=2,
    )


class TestCoinbaseChargeConfirmed:
    """A confirmed fixed-price charge becomes one customer, order and payment."""

    def test_end_to_end(self, client: TestClient, scan_table: ScanTable) -> None:
        charge = build_coinbase_charge(
            code="WEBTPL99",
            pricing={"local": {"amount": "99.00", "currency": "USD"}},
            metadata={
                "customer_email": "x@y.com",
                "customer_name": "X",
                "offeringId": "basic-website-template",
            },
        )

        response = _post_coinbase(client, build_coinbase_body(charge=charge))

        assert response.status_code == HTTP_200_OK

        customers = scan_table("customers")
        assert [c["email"] for c in customers] == ["x@y.com"]

        orders = scan_table("orders")
        assert len(orders) == 1
        assert orders[0]["total_amount"] == 9900
        assert orders[0]["provider"] == "coinbase"
        assert orders[0]["customer_id"] == customers[0]["customer_id"]
        assert orders[0]["metadata"]["offering_id"] == "basic-website-template"

        payments = scan_table("payments")
        assert len(payments) == 1
        assert payments[0]["amount"] == 9900
        assert payments[0]["currency"] == "USD"
        assert payments[0]["provider_payment_id"] == "WEBTPL99"
        assert payments[0]["order_id"] == orders[0]["order_id"]

        assert scan_table("webhook-events")[0]["status"] == "processed"

    def test_same_customer_across_providers(
        self, client: TestClient, scan_table: ScanTable
    ) -> None:
        _post_coinbase(client, build_coinbase_body())
        session = build_checkout_session(
            customer_details={"email": "a@b.com", "name": "Someone Else", "phone": "+15550100"},
            metadata={},
        )

        _post_stripe(client, build_stripe_event(session=session))

        customers = scan_table("customers")
        assert len(customers) == 1
        assert customers[0]["name"] == "A"
        assert customers[0]["phone"] == "+15550100"
        assert customers[0]["stripe_customer_id"] == "cus_TEST123"
        assert len(scan_table("payments")) == 2

    def test_email_failure_does_not_change_response(
        self, client: TestClient, scan_table: ScanTable, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Unverified sender: SES rejects the confirmation
        monkeypatch.setenv("SES_FROM_EMAIL", "unverified@example.com")

        response = _post_coinbase(client, build_coinbase_body())

        assert response.status_code == HTTP_200_OK
        assert response.json()["processing_result"] == "processed"
        assert len(scan_table("payments")) == 1

    def test_confirmation_email_sent(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SES_FROM_EMAIL", "orders@example.com")
        ses = boto3.client("ses", region_name="eu-west-1")
        ses.verify_email_identity(EmailAddress="orders@example.com")

        _post_coinbase(client, build_coinbase_body())

        assert int(ses.get_send_quota()["SentLast24Hours"]) == 1


class TestRetryWorker:
    """Admin retry followed by the worker run."""

    def test_failed_event_reprocessed_on_same_row(
        self, client: TestClient, ledger: Any, worker: RetryWorker, scan_table: ScanTable
    ) -> None:
        with patch.object(
            StripeChargeMaterializer,
            "materialize",
            return_value=MaterializationResult(success=False, error="store timeout"),
        ):
            failed = _post_stripe(client, build_stripe_event())
        assert failed.status_code == HTTP_500_INTERNAL_SERVER_ERROR
        webhook_event_id = _only_event_id(scan_table)

        queued = client.post(
            "/admin/webhooks/retry",
            json={"webhookEventId": webhook_event_id},
            headers=ADMIN_HEADERS,
        )
        assert queued.status_code == HTTP_200_OK

        summary = worker.run()

        assert summary == {"processed": 1}
        assert _only_event_id(scan_table) == webhook_event_id
        event = ledger.get_event(webhook_event_id)
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.retry_count == 1
        assert len(scan_table("payments")) == 1

        # Provider redelivery after the retry is now a no-op
        redelivered = _post_stripe(client, build_stripe_event())
        assert redelivered.json()["message"] == "Event already processed"

    def test_retry_of_already_paid_charge_is_skipped(
        self, client: TestClient, ledger: Any, worker: RetryWorker, scan_table: ScanTable
    ) -> None:
        _post_stripe(client, build_stripe_event(event_id="evt_paid"))
        raw = json.dumps(build_stripe_event(event_id="evt_late"))
        webhook_event_id = ledger.record_event(
            PaymentProvider.STRIPE, "evt_late", "checkout.session.completed", raw
        )
        ledger.update_status(webhook_event_id, WebhookEventStatus.FAILED, "store timeout")
        ledger.mark_retrying(webhook_event_id, "admin@example.com")

        summary = worker.run()

        assert summary == {"skipped_duplicate": 1}
        assert ledger.get_event(webhook_event_id).status == WebhookEventStatus.SKIPPED_DUPLICATE
        assert len(scan_table("payments")) == 1

    def test_repeated_failure_is_abandoned(
        self, client: TestClient, ledger: Any, worker: RetryWorker, scan_table: ScanTable
    ) -> None:
        charge = build_coinbase_charge(metadata={"customer_name": "No Email"})
        _post_coinbase(client, build_coinbase_body(charge=charge))
        webhook_event_id = _only_event_id(scan_table)

        ledger.mark_retrying(webhook_event_id, "admin@example.com")
        assert worker.run() == {"failed": 1}

        ledger.mark_retrying(webhook_event_id, "admin@example.com")
        assert worker.run() == {"abandoned": 1}

        event = ledger.get_event(webhook_event_id)
        assert event.status == WebhookEventStatus.ABANDONED
        assert event.retry_count == 2
        assert "Missing customer email" in event.error_message

        # Abandoned events can still be queued by hand
        assert ledger.mark_retrying(webhook_event_id, "admin@example.com").status == (
            WebhookEventStatus.RETRYING
        )

    def test_overlapping_runs_do_not_overwrite_result(
        self, client: TestClient, ledger: Any, worker: RetryWorker, scan_table: ScanTable
    ) -> None:
        with patch.object(
            StripeChargeMaterializer,
            "materialize",
            return_value=MaterializationResult(success=False, error="store timeout"),
        ):
            _post_stripe(client, build_stripe_event())
        webhook_event_id = _only_event_id(scan_table)
        ledger.mark_retrying(webhook_event_id, "admin@example.com")
        # Second run listed the queue before the first run finished
        stale = ledger.list_events(WebhookEventStatus.RETRYING)

        assert worker.run() == {"processed": 1}
        assert worker.retry_event(stale[0]) is None

        event = ledger.get_event(webhook_event_id)
        assert event.status == WebhookEventStatus.PROCESSED
        assert len(scan_table("payments")) == 1

    def test_max_attempts_from_environment(
        self, client: TestClient, ledger: Any, scan_table: ScanTable, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "1")
        charge = build_coinbase_charge(metadata={})
        _post_coinbase(client, build_coinbase_body(charge=charge))
        webhook_event_id = _only_event_id(scan_table)
        ledger.mark_retrying(webhook_event_id, "admin@example.com")

        summary = RetryWorker(ledger=ledger).run()

        assert summary == {"abandoned": 1}

    def test_only_retrying_events_are_picked_up(
        self, client: TestClient, worker: RetryWorker, scan_table: ScanTable
    ) -> None:
        charge = build_coinbase_charge(metadata={})
        _post_coinbase(client, build_coinbase_body(charge=charge))

        assert worker.run() == {}
        assert scan_table("webhook-events")[0]["status"] == "failed"


class TestRetryWorkerEntryPoints:
    def test_lambda_handler(self, client: TestClient, ledger: Any, scan_table: ScanTable) -> None:
        with patch.object(
            StripeChargeMaterializer,
            "materialize",
            return_value=MaterializationResult(success=False, error="store timeout"),
        ):
            _post_stripe(client, build_stripe_event())
        ledger.mark_retrying(_only_event_id(scan_table), "admin@example.com")

        result = retry_handler({"limit": 10}, None)

        assert result == {"retried": 1, "results": {"processed": 1}}

    def test_cli(self, db: Any, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--limit", "5"]) == 0

        assert "Retried 0 events" in capsys.readouterr().out
