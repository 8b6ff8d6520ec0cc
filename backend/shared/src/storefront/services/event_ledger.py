"""Webhook event ledger backed by DynamoDB.

Every verified delivery of a handled provider event gets its own row.
Idempotency is decided per provider event: a provider event counts as
handled once any of its rows reached processed or skipped_duplicate.
"""

import datetime as dt
import hashlib
import uuid
from typing import Any

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from storefront.models.enums import (
    RETRYABLE_STATUSES,
    TERMINAL_SUCCESS_STATUSES,
    PaymentProvider,
    WebhookEventStatus,
)
from storefront.models.errors import (
    InvalidStateTransition,
    StoreUnavailable,
    WebhookEventNotFound,
)
from storefront.models.webhook_event import RetryMetadata, WebhookEvent
from storefront.utils.logging import get_logger

from .dynamodb import DynamoDBService, get_dynamodb_service
from .tables import (
    LEDGER_PARTITION,
    PROVIDER_EVENT_INDEX,
    RECEIVED_INDEX,
    STATUS_INDEX,
    WEBHOOK_EVENTS_TABLE,
)

logger = get_logger(__name__)

# Statuses whose error_message is worth keeping
_ERROR_STATUSES = frozenset({WebhookEventStatus.FAILED, WebhookEventStatus.ABANDONED})


def provider_event_key(provider: PaymentProvider, provider_event_id: str) -> str:
    """GSI key identifying one provider event across delivery attempts."""
    return f"{provider.value}#{provider_event_id}"


def _parse_datetime(value: str) -> dt.datetime:
    return dt.datetime.fromisoformat(value)


def item_to_event(item: dict[str, Any]) -> WebhookEvent:
    """Convert a DynamoDB item to a WebhookEvent model."""
    retry_metadata = None
    raw_meta = item.get("retry_metadata")
    if raw_meta:
        retry_metadata = RetryMetadata(
            triggered_by=raw_meta["triggered_by"],
            triggered_at=_parse_datetime(raw_meta["triggered_at"]),
            previous_status=WebhookEventStatus(raw_meta["previous_status"]),
        )

    return WebhookEvent(
        webhook_event_id=item["webhook_event_id"],
        provider=PaymentProvider(item["provider"]),
        provider_event_id=item["provider_event_id"],
        event_type=item["event_type"],
        status=WebhookEventStatus(item["status"]),
        raw_payload=item["raw_payload"],
        payload_hash=item["payload_hash"],
        received_at=_parse_datetime(item["received_at"]),
        updated_at=_parse_datetime(item["updated_at"]),
        error_message=item.get("error_message"),
        retry_count=int(item.get("retry_count", 0)),
        retry_metadata=retry_metadata,
    )


class EventLedger:
    """Append-first record of inbound webhooks and their processing status."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def record_event(
        self,
        provider: PaymentProvider,
        provider_event_id: str,
        event_type: str,
        raw_payload: str,
    ) -> str:
        """Insert a new ledger row with status received.

        Args:
            provider: Provider that sent the event
            provider_event_id: Provider event ID
            event_type: Provider event type
            raw_payload: Request body text exactly as verified

        Returns:
            The ledger-assigned webhook_event_id

        Raises:
            StoreUnavailable: If the row could not be written.
        """
        webhook_event_id = f"WHE-{uuid.uuid4().hex[:16].upper()}"
        now = dt.datetime.now(dt.UTC).isoformat()

        item: dict[str, Any] = {
            "webhook_event_id": webhook_event_id,
            "provider": provider.value,
            "provider_event_id": provider_event_id,
            "provider_event_key": provider_event_key(provider, provider_event_id),
            "ledger_partition": LEDGER_PARTITION,
            "event_type": event_type,
            "status": WebhookEventStatus.RECEIVED.value,
            "raw_payload": raw_payload,
            "payload_hash": hashlib.sha256(raw_payload.encode("utf-8")).hexdigest(),
            "received_at": now,
            "updated_at": now,
            "retry_count": 0,
        }

        try:
            self._db.put_item(
                WEBHOOK_EVENTS_TABLE,
                item,
                condition_expression="attribute_not_exists(webhook_event_id)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to record webhook event %s: %s", provider_event_id, e)
            raise StoreUnavailable(
                f"Failed to record webhook event: {e}",
                details={"provider": provider.value, "event_id": provider_event_id},
            ) from e

        return webhook_event_id

    def is_already_processed(
        self, provider: PaymentProvider, provider_event_id: str
    ) -> bool:
        """Check whether any row for this provider event finished successfully.

        Raises:
            StoreUnavailable: If the ledger cannot be queried.
        """
        try:
            items = self._db.query_by_gsi(
                WEBHOOK_EVENTS_TABLE,
                PROVIDER_EVENT_INDEX,
                "provider_event_key",
                provider_event_key(provider, provider_event_id),
                filter_expression=Attr("status").is_in(
                    [status.value for status in TERMINAL_SUCCESS_STATUSES]
                ),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to query webhook ledger for %s: %s", provider_event_id, e)
            raise StoreUnavailable(f"Failed to query webhook ledger: {e}") from e

        return len(items) > 0

    def update_status(
        self,
        webhook_event_id: str,
        status: WebhookEventStatus,
        error_message: str | None = None,
    ) -> bool:
        """Set the status of a ledger row.

        Never raises: a failed status write is logged and reported through
        the return value so it cannot undo a committed materialization.

        Returns:
            True if the row was updated
        """
        update_expression = "SET #status = :status, updated_at = :now"
        values: dict[str, Any] = {
            ":status": status.value,
            ":now": dt.datetime.now(dt.UTC).isoformat(),
        }
        if error_message and status in _ERROR_STATUSES:
            update_expression += ", error_message = :error"
            values[":error"] = error_message

        try:
            updated = self._db.update_item(
                WEBHOOK_EVENTS_TABLE,
                {"webhook_event_id": webhook_event_id},
                update_expression,
                values,
                {"#status": "status"},  # status is reserved word
                condition_expression="attribute_exists(webhook_event_id)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to update webhook event %s to %s: %s",
                webhook_event_id,
                status.value,
                e,
            )
            return False

        if updated is None:
            logger.warning(
                "Webhook event %s not found while setting status %s",
                webhook_event_id,
                status.value,
            )
            return False
        return True

    def get_event(self, webhook_event_id: str) -> WebhookEvent | None:
        """Fetch one ledger row, or None if it does not exist."""
        try:
            item = self._db.get_item(
                WEBHOOK_EVENTS_TABLE,
                {"webhook_event_id": webhook_event_id},
                consistent_read=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreUnavailable(f"Failed to read webhook event: {e}") from e
        return item_to_event(item) if item else None

    def mark_retrying(self, webhook_event_id: str, triggered_by: str) -> WebhookEvent:
        """Move a failed or abandoned row to retrying.

        Args:
            webhook_event_id: Ledger row to retry
            triggered_by: Identity of the administrator asking for the retry

        Returns:
            The updated ledger row

        Raises:
            WebhookEventNotFound: If no row has this ID.
            InvalidStateTransition: If the row is not failed or abandoned.
        """
        event = self.get_event(webhook_event_id)
        if event is None:
            raise WebhookEventNotFound(details={"webhook_event_id": webhook_event_id})

        if event.status not in RETRYABLE_STATUSES:
            raise InvalidStateTransition(
                details={"webhook_event_id": webhook_event_id, "status": event.status.value}
            )

        now = dt.datetime.now(dt.UTC).isoformat()
        try:
            updated = self._db.update_item(
                WEBHOOK_EVENTS_TABLE,
                {"webhook_event_id": webhook_event_id},
                "SET #status = :retrying, retry_metadata = :meta, updated_at = :now "
                "ADD retry_count :one",
                {
                    ":retrying": WebhookEventStatus.RETRYING.value,
                    ":meta": {
                        "triggered_by": triggered_by,
                        "triggered_at": now,
                        "previous_status": event.status.value,
                    },
                    ":now": now,
                    ":one": 1,
                    ":failed": WebhookEventStatus.FAILED.value,
                    ":abandoned": WebhookEventStatus.ABANDONED.value,
                },
                {"#status": "status"},
                # Guards against a concurrent status change since the read
                condition_expression="#status IN (:failed, :abandoned)",
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreUnavailable(f"Failed to update webhook event: {e}") from e

        if updated is None:
            raise InvalidStateTransition(details={"webhook_event_id": webhook_event_id})

        logger.info(
            "Webhook event %s queued for retry by %s (was %s)",
            webhook_event_id,
            triggered_by,
            event.status.value,
        )
        return item_to_event(updated)

    def claim_retry(self, webhook_event_id: str) -> bool:
        """Move a retrying row to processing if no other run took it first.

        Returns:
            True if this caller now owns the row

        Raises:
            StoreUnavailable: If the ledger cannot be written.
        """
        try:
            updated = self._db.update_item(
                WEBHOOK_EVENTS_TABLE,
                {"webhook_event_id": webhook_event_id},
                "SET #status = :processing, updated_at = :now",
                {
                    ":processing": WebhookEventStatus.PROCESSING.value,
                    ":retrying": WebhookEventStatus.RETRYING.value,
                    ":now": dt.datetime.now(dt.UTC).isoformat(),
                },
                {"#status": "status"},
                condition_expression="#status = :retrying",
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreUnavailable(f"Failed to claim webhook event: {e}") from e

        if updated is None:
            logger.info("Webhook event %s no longer retrying, not claimed", webhook_event_id)
            return False
        return True

    def list_events(
        self,
        status: WebhookEventStatus | None = None,
        limit: int = 50,
    ) -> list[WebhookEvent]:
        """List ledger rows, newest first.

        Args:
            status: Only rows with this status
            limit: Maximum number of rows
        """
        if status is not None:
            index_name, key_name, key_value = STATUS_INDEX, "status", status.value
        else:
            index_name, key_name, key_value = RECEIVED_INDEX, "ledger_partition", LEDGER_PARTITION

        try:
            items = self._db.query_by_gsi(
                WEBHOOK_EVENTS_TABLE,
                index_name,
                key_name,
                key_value,
                limit=limit,
                scan_index_forward=False,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreUnavailable(f"Failed to list webhook events: {e}") from e

        return [item_to_event(item) for item in items]
