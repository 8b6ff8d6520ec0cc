"""Best-effort payment confirmation email via Amazon SES.

Sending never raises. A missing SES_FROM_EMAIL disables email with a log
line; delivery errors are logged and reported through the return value.
"""

import html
import os
from decimal import Decimal
from functools import lru_cache

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from storefront.models.payment import PaymentConfirmation
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def format_amount(amount: int, currency: str) -> str:
    """Format minor units for display, e.g. 2500, usd -> 25.00 USD."""
    major = (Decimal(amount) / 100).quantize(Decimal("0.01"))
    return f"{major:,} {currency.upper()}"


def confirmation_subject(confirmation: PaymentConfirmation) -> str:
    return confirmation.subject or f"Payment Confirmation - Order {confirmation.transaction_id}"


def render_confirmation_html(
    confirmation: PaymentConfirmation,
    company_name: str,
    support_email: str | None,
) -> str:
    """Render the confirmation email body."""
    subject = html.escape(confirmation_subject(confirmation))
    greeting = (
        f"Hi {html.escape(confirmation.customer_name)},"
        if confirmation.customer_name
        else "Hi,"
    )
    amount = html.escape(format_amount(confirmation.amount, confirmation.currency))

    link = ""
    if confirmation.transaction_url:
        url = html.escape(confirmation.transaction_url, quote=True)
        link = f'<p><a href="{url}" style="color: #007bff;">View transaction</a></p>'

    support = ""
    if support_email:
        contact = html.escape(support_email)
        support = f'<p style="color: #999; font-size: 12px;">Questions? Contact {contact}.</p>'

    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">{subject}</h2>
        <p>{greeting}</p>
        <p>Thank you for your purchase from {html.escape(company_name)}.
           We have received your payment of <strong>{amount}</strong>.</p>
        <table style="font-size: 14px; color: #666;">
            <tr><td>Provider</td><td>{html.escape(confirmation.provider)}</td></tr>
            <tr><td>Transaction</td><td>{html.escape(confirmation.transaction_id)}</td></tr>
            <tr><td>Amount</td><td>{amount}</td></tr>
        </table>
        {link}
        <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
        {support}
    </body>
    </html>
    """


class NotificationService:
    """Sends transactional email through SES."""

    def __init__(self) -> None:
        self._from_email = os.environ.get("SES_FROM_EMAIL")
        self._company_name = os.environ.get("COMPANY_NAME", "Storefront")
        self._support_email = os.environ.get("SUPPORT_EMAIL")
        self._ses = boto3.client("ses", region_name=os.environ.get("SES_REGION"))

    @property
    def enabled(self) -> bool:
        return bool(self._from_email)

    def send(self, to: str, subject: str, html_body: str) -> bool:
        """Send one HTML email.

        Returns:
            True if SES accepted the message
        """
        if not self._from_email:
            logger.info("SES_FROM_EMAIL not set, skipping email to %s", to)
            return False

        try:
            self._ses.send_email(
                Source=self._from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Html": {"Data": html_body, "Charset": "UTF-8"}},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to send email to %s: %s", to, e)
            return False

        logger.info("Sent email to %s: %s", to, subject)
        return True

    def send_payment_confirmation(self, confirmation: PaymentConfirmation) -> bool:
        """Send the payment confirmation for a materialized charge."""
        if not self.enabled:
            logger.info(
                "Skipping confirmation for %s: SES_FROM_EMAIL not configured",
                confirmation.transaction_id,
            )
            return False

        try:
            body = render_confirmation_html(
                confirmation, self._company_name, self._support_email
            )
        except Exception:
            logger.exception(
                "Failed to render confirmation for %s", confirmation.transaction_id
            )
            return False

        return self.send(confirmation.to, confirmation_subject(confirmation), body)


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    """Get the shared NotificationService instance (singleton pattern)."""
    return NotificationService()
