"""Unit tests for EventLedger.

Uses moto DynamoDB tables created from the production definitions.
"""

from typing import Any
from unittest.mock import patch

import pytest

from storefront.models.enums import PaymentProvider, WebhookEventStatus
from storefront.models.errors import InvalidStateTransition, WebhookEventNotFound
from storefront.services.event_ledger import EventLedger
from storefront.services.tables import LEDGER_PARTITION, RECEIVED_INDEX

RAW_PAYLOAD = '{"id": "evt_1", "type": "checkout.session.completed"}'


def _record(ledger: EventLedger, event_id: str = "evt_1") -> str:
    return ledger.record_event(
        PaymentProvider.STRIPE, event_id, "checkout.session.completed", RAW_PAYLOAD
    )


class TestRecordEvent:
    """record_event()."""

    def test_new_row_is_received_with_verbatim_payload(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)

        event = ledger.get_event(webhook_event_id)
        assert event is not None
        assert event.status == WebhookEventStatus.RECEIVED
        assert event.raw_payload == RAW_PAYLOAD
        assert len(event.payload_hash) == 64
        assert event.retry_count == 0
        assert event.error_message is None

    def test_each_delivery_gets_its_own_row(self, ledger: EventLedger) -> None:
        first = _record(ledger)
        second = _record(ledger)

        assert first != second
        assert len(ledger.list_events()) == 2


class TestIsAlreadyProcessed:
    """is_already_processed()."""

    def test_unknown_event_not_processed(self, ledger: EventLedger) -> None:
        assert ledger.is_already_processed(PaymentProvider.STRIPE, "evt_unknown") is False

    @pytest.mark.parametrize(
        "status,expected",
        [
            (WebhookEventStatus.RECEIVED, False),
            (WebhookEventStatus.PROCESSING, False),
            (WebhookEventStatus.FAILED, False),
            (WebhookEventStatus.PROCESSED, True),
            (WebhookEventStatus.SKIPPED_DUPLICATE, True),
        ],
    )
    def test_only_success_statuses_count(
        self, ledger: EventLedger, status: WebhookEventStatus, expected: bool
    ) -> None:
        webhook_event_id = _record(ledger)
        ledger.update_status(webhook_event_id, status)

        assert ledger.is_already_processed(PaymentProvider.STRIPE, "evt_1") is expected

    def test_scoped_by_provider(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)
        ledger.update_status(webhook_event_id, WebhookEventStatus.PROCESSED)

        assert ledger.is_already_processed(PaymentProvider.COINBASE, "evt_1") is False

    def test_any_processed_row_counts(self, ledger: EventLedger) -> None:
        failed = _record(ledger)
        ledger.update_status(failed, WebhookEventStatus.FAILED, "boom")
        processed = _record(ledger)
        ledger.update_status(processed, WebhookEventStatus.PROCESSED)

        assert ledger.is_already_processed(PaymentProvider.STRIPE, "evt_1") is True


class TestUpdateStatus:
    """update_status()."""

    def test_error_message_stored_for_failed(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)

        assert ledger.update_status(webhook_event_id, WebhookEventStatus.FAILED, "boom")

        event = ledger.get_event(webhook_event_id)
        assert event is not None
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "boom"

    def test_error_message_ignored_for_processed(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)

        ledger.update_status(webhook_event_id, WebhookEventStatus.PROCESSED, "ignored")

        event = ledger.get_event(webhook_event_id)
        assert event is not None
        assert event.error_message is None

    def test_idempotent(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)

        assert ledger.update_status(webhook_event_id, WebhookEventStatus.PROCESSED)
        assert ledger.update_status(webhook_event_id, WebhookEventStatus.PROCESSED)

    def test_unknown_row_returns_false_without_creating(self, ledger: EventLedger) -> None:
        assert ledger.update_status("WHE-MISSING", WebhookEventStatus.PROCESSED) is False
        assert ledger.get_event("WHE-MISSING") is None


class TestMarkRetrying:
    """mark_retrying()."""

    @pytest.mark.parametrize(
        "status", [WebhookEventStatus.FAILED, WebhookEventStatus.ABANDONED]
    )
    def test_failed_or_abandoned_moves_to_retrying(
        self, ledger: EventLedger, status: WebhookEventStatus
    ) -> None:
        webhook_event_id = _record(ledger)
        ledger.update_status(webhook_event_id, status, "boom")

        event = ledger.mark_retrying(webhook_event_id, "admin@example.com")

        assert event.status == WebhookEventStatus.RETRYING
        assert event.retry_count == 1
        assert event.retry_metadata is not None
        assert event.retry_metadata.triggered_by == "admin@example.com"
        assert event.retry_metadata.previous_status == status

    def test_retry_count_increments(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)
        ledger.update_status(webhook_event_id, WebhookEventStatus.FAILED, "boom")
        ledger.mark_retrying(webhook_event_id, "admin@example.com")
        ledger.update_status(webhook_event_id, WebhookEventStatus.FAILED, "boom again")

        event = ledger.mark_retrying(webhook_event_id, "admin@example.com")

        assert event.retry_count == 2

    @pytest.mark.parametrize(
        "status",
        [
            WebhookEventStatus.RECEIVED,
            WebhookEventStatus.PROCESSING,
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.SKIPPED_DUPLICATE,
            WebhookEventStatus.RETRYING,
        ],
    )
    def test_other_statuses_rejected(
        self, ledger: EventLedger, status: WebhookEventStatus
    ) -> None:
        webhook_event_id = _record(ledger)
        ledger.update_status(webhook_event_id, status)

        with pytest.raises(InvalidStateTransition):
            ledger.mark_retrying(webhook_event_id, "admin@example.com")

        event = ledger.get_event(webhook_event_id)
        assert event is not None
        assert event.status == status

    def test_unknown_row_not_found(self, ledger: EventLedger) -> None:
        with pytest.raises(WebhookEventNotFound):
            ledger.mark_retrying("WHE-MISSING", "admin@example.com")


class TestClaimRetry:
    """claim_retry()."""

    def test_retrying_row_claimed_once(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)
        ledger.update_status(webhook_event_id, WebhookEventStatus.FAILED, "boom")
        ledger.mark_retrying(webhook_event_id, "admin@example.com")

        assert ledger.claim_retry(webhook_event_id) is True
        assert ledger.claim_retry(webhook_event_id) is False
        assert ledger.get_event(webhook_event_id).status == WebhookEventStatus.PROCESSING

    def test_finished_row_not_claimed(self, ledger: EventLedger) -> None:
        webhook_event_id = _record(ledger)
        ledger.update_status(webhook_event_id, WebhookEventStatus.PROCESSED)

        assert ledger.claim_retry(webhook_event_id) is False
        assert ledger.get_event(webhook_event_id).status == WebhookEventStatus.PROCESSED


class TestListEvents:
    """list_events()."""

    def test_newest_first_with_limit(self, ledger: EventLedger) -> None:
        ids = [_record(ledger, f"evt_{n}") for n in range(3)]

        events = ledger.list_events(limit=2)

        assert [e.webhook_event_id for e in events] == [ids[2], ids[1]]

    def test_status_filter(self, ledger: EventLedger) -> None:
        failed = _record(ledger, "evt_failed")
        ledger.update_status(failed, WebhookEventStatus.FAILED, "boom")
        _record(ledger, "evt_received")

        events = ledger.list_events(status=WebhookEventStatus.FAILED)

        assert [e.webhook_event_id for e in events] == [failed]

    def test_unfiltered_listing_queries_received_index(
        self, db: Any, ledger: EventLedger
    ) -> None:
        for n in range(3):
            _record(ledger, f"evt_{n}")

        with patch.object(db, "query_by_gsi", wraps=db.query_by_gsi) as query:
            events = ledger.list_events(limit=2)

        assert len(events) == 2
        query.assert_called_once_with(
            "webhook-events",
            RECEIVED_INDEX,
            "ledger_partition",
            LEDGER_PARTITION,
            limit=2,
            scan_index_forward=False,
        )
