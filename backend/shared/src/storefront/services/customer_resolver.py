"""Customer find-or-create keyed by email.

Emails are claimed in the customer-emails table together with the
Customer row, so two concurrent first purchases from the same address
converge on a single customer. Existing customers are gap-filled: a
field is written only if it is currently absent.
"""

import datetime as dt
import uuid
from typing import Any

from storefront.models.customer import Customer
from storefront.utils.logging import get_logger

from .dynamodb import DynamoDBService, get_dynamodb_service
from .tables import CUSTOMER_EMAILS_TABLE, CUSTOMERS_TABLE

logger = get_logger(__name__)


class CustomerResolver:
    """Resolves a paying party to a customer_id."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def resolve(
        self,
        email: str,
        name: str | None = None,
        phone: str | None = None,
        provider_customer_id: str | None = None,
    ) -> str:
        """Find the customer for an email, creating one if needed.

        Args:
            email: Resolution key, matched exactly after trimming
            name: Full name, gap-filled on existing customers
            phone: Contact phone, gap-filled on existing customers
            provider_customer_id: Stripe customer ID, gap-filled

        Returns:
            customer_id of the existing or new customer

        Raises:
            ValueError: If email is empty.
        """
        email = email.strip()
        if not email:
            raise ValueError("Customer email is required")

        fields = {
            "name": name,
            "phone": phone,
            "stripe_customer_id": provider_customer_id,
        }
        # Absent attributes, not nulls, so if_not_exists can fill them later
        present = {key: value for key, value in fields.items() if value}

        existing_id = self._find_customer_id(email)
        if existing_id:
            self._gap_fill(existing_id, present)
            return existing_id

        customer_id = f"CUST-{uuid.uuid4().hex[:12].upper()}"
        created_at = dt.datetime.now(dt.UTC)
        now = created_at.isoformat()
        customer = Customer(
            customer_id=customer_id,
            email=email,
            created_at=created_at,
            updated_at=created_at,
            **present,
        )

        created = self._db.transact_write(
            [
                self._db.build_put(
                    CUSTOMERS_TABLE,
                    customer.model_dump(mode="json", exclude_none=True),
                    condition_expression="attribute_not_exists(customer_id)",
                ),
                self._db.build_put(
                    CUSTOMER_EMAILS_TABLE,
                    {"email": email, "customer_id": customer_id, "created_at": now},
                    condition_expression="attribute_not_exists(email)",
                ),
            ]
        )
        if created:
            logger.info("Created customer %s for %s", customer_id, email)
            return customer_id

        # Another delivery claimed the email first
        winner_id = self._find_customer_id(email)
        if not winner_id:
            raise RuntimeError(f"Customer creation for {email} was cancelled")
        logger.info("Customer for %s created concurrently as %s", email, winner_id)
        self._gap_fill(winner_id, present)
        return winner_id

    def _find_customer_id(self, email: str) -> str | None:
        claim = self._db.get_item(
            CUSTOMER_EMAILS_TABLE, {"email": email}, consistent_read=True
        )
        return claim["customer_id"] if claim else None

    def _gap_fill(self, customer_id: str, present: dict[str, str]) -> None:
        """Populate fields the customer does not have yet."""
        customer = self._db.get_item(
            CUSTOMERS_TABLE, {"customer_id": customer_id}, consistent_read=True
        )
        if customer is None:
            logger.warning("Customer %s missing for existing email claim", customer_id)
            return

        missing = {key: value for key, value in present.items() if not customer.get(key)}
        if not missing:
            return

        assignments = [f"#{key} = if_not_exists(#{key}, :{key})" for key in missing]
        assignments.append("updated_at = :now")
        values: dict[str, Any] = {f":{key}": value for key, value in missing.items()}
        values[":now"] = dt.datetime.now(dt.UTC).isoformat()

        self._db.update_item(
            CUSTOMERS_TABLE,
            {"customer_id": customer_id},
            "SET " + ", ".join(assignments),
            values,
            {f"#{key}": key for key in missing},  # name is a reserved word
            condition_expression="attribute_exists(customer_id)",
        )
        logger.info("Gap-filled customer %s: %s", customer_id, ", ".join(sorted(missing)))
