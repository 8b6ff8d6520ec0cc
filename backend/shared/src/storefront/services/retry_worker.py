"""Re-executes webhook events an administrator queued for retry.

Runs on a schedule as a Lambda (handler) or by hand:

    python -m storefront.services.retry_worker --limit 25

Each retrying event is processed again on its own ledger row. A failure
once the event has been retried MAX_RETRY_ATTEMPTS times marks it
abandoned instead of failed.
"""

import argparse
import os
from typing import Any

from storefront.models.enums import WebhookEventStatus
from storefront.models.errors import StorefrontError
from storefront.models.webhook_event import WebhookEvent
from storefront.utils.logging import configure_logging, get_logger, set_correlation_id

from .event_ledger import EventLedger
from .notification_service import NotificationService, get_notification_service
from .webhook_handler import ProcessingResult, WebhookHandler

logger = get_logger(__name__)

DEFAULT_MAX_RETRY_ATTEMPTS = 3
DEFAULT_BATCH_SIZE = 25


def get_max_retry_attempts() -> int:
    return int(os.environ.get("MAX_RETRY_ATTEMPTS", DEFAULT_MAX_RETRY_ATTEMPTS))


class RetryWorker:
    """Drains the retrying queue of the webhook ledger."""

    def __init__(
        self,
        ledger: EventLedger | None = None,
        handler: WebhookHandler | None = None,
        notifier: NotificationService | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._ledger = ledger or EventLedger()
        self._handler = handler or WebhookHandler(ledger=self._ledger)
        self._notifier = notifier or get_notification_service()
        self._max_attempts = max_attempts or get_max_retry_attempts()

    def retry_event(self, event: WebhookEvent) -> WebhookEventStatus | None:
        """Process one retrying event and return the status it ended in.

        Returns None when another run claimed the event first.
        """
        failure_status = (
            WebhookEventStatus.ABANDONED
            if event.retry_count >= self._max_attempts
            else WebhookEventStatus.FAILED
        )

        try:
            outcome = self._handler.reprocess(event, failure_status=failure_status)
        except StorefrontError as e:
            logger.warning(
                "Retry of %s failed (%d/%d): %s",
                event.webhook_event_id,
                event.retry_count,
                self._max_attempts,
                e.message,
            )
            return failure_status

        if outcome.result == ProcessingResult.NOT_CLAIMED:
            return None

        if outcome.result == ProcessingResult.DUPLICATE:
            return WebhookEventStatus.SKIPPED_DUPLICATE

        if outcome.confirmation is not None:
            self._notifier.send_payment_confirmation(outcome.confirmation)
        return WebhookEventStatus.PROCESSED

    def run(self, limit: int = DEFAULT_BATCH_SIZE) -> dict[str, int]:
        """Retry up to limit events.

        Returns:
            Count of events per final status
        """
        events = self._ledger.list_events(WebhookEventStatus.RETRYING, limit=limit)
        summary: dict[str, int] = {}

        for event in events:
            status = self.retry_event(event)
            if status is None:
                continue
            summary[status.value] = summary.get(status.value, 0) + 1

        logger.info("Retried %d webhook events: %s", len(events), summary)
        return summary


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda entry point for the scheduled retry run."""
    configure_logging()
    set_correlation_id(getattr(context, "aws_request_id", None))

    limit = int(event.get("limit", DEFAULT_BATCH_SIZE)) if event else DEFAULT_BATCH_SIZE
    summary = RetryWorker().run(limit=limit)
    return {"retried": sum(summary.values()), "results": summary}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Retry queued webhook events")
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Maximum events to retry (default: {DEFAULT_BATCH_SIZE})",
    )
    args = parser.parse_args(argv)

    configure_logging()
    set_correlation_id()

    summary = RetryWorker().run(limit=args.limit)
    print(f"Retried {sum(summary.values())} events")
    for status, count in sorted(summary.items()):
        print(f"  {status}: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
