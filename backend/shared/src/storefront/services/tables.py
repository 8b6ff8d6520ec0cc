"""DynamoDB table definitions for the webhook pipeline.

Names are suffixes; DynamoDBService prepends the environment prefix
(e.g. storefront-dev-webhook-events). Used by the provisioning script
and by the test fixtures so both create identical schemas.
"""

from typing import Any

WEBHOOK_EVENTS_TABLE = "webhook-events"
CUSTOMERS_TABLE = "customers"
CUSTOMER_EMAILS_TABLE = "customer-emails"
ORDERS_TABLE = "orders"
PAYMENTS_TABLE = "payments"
PAYMENT_KEYS_TABLE = "payment-keys"

PROVIDER_EVENT_INDEX = "provider-event-index"
STATUS_INDEX = "status-index"
RECEIVED_INDEX = "received-index"

# Partition key of RECEIVED_INDEX, the same on every ledger row
LEDGER_PARTITION = "all"


def _string_attrs(*names: str) -> list[dict[str, str]]:
    return [{"AttributeName": name, "AttributeType": "S"} for name in names]


def _gsi(name: str, hash_key: str, range_key: str | None = None) -> dict[str, Any]:
    key_schema = [{"AttributeName": hash_key, "KeyType": "HASH"}]
    if range_key:
        key_schema.append({"AttributeName": range_key, "KeyType": "RANGE"})
    return {
        "IndexName": name,
        "KeySchema": key_schema,
        "Projection": {"ProjectionType": "ALL"},
    }


TABLE_DEFINITIONS: dict[str, dict[str, Any]] = {
    WEBHOOK_EVENTS_TABLE: {
        "KeySchema": [{"AttributeName": "webhook_event_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attrs(
            "webhook_event_id", "provider_event_key", "status", "received_at", "ledger_partition"
        ),
        "GlobalSecondaryIndexes": [
            _gsi(PROVIDER_EVENT_INDEX, "provider_event_key", "received_at"),
            _gsi(STATUS_INDEX, "status", "received_at"),
            _gsi(RECEIVED_INDEX, "ledger_partition", "received_at"),
        ],
    },
    CUSTOMERS_TABLE: {
        "KeySchema": [{"AttributeName": "customer_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attrs("customer_id"),
    },
    # One row per email; the conditional create makes email unique
    CUSTOMER_EMAILS_TABLE: {
        "KeySchema": [{"AttributeName": "email", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attrs("email"),
    },
    ORDERS_TABLE: {
        "KeySchema": [{"AttributeName": "order_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attrs("order_id"),
    },
    PAYMENTS_TABLE: {
        "KeySchema": [{"AttributeName": "payment_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attrs("payment_id"),
    },
    # One row per correlation key, claimed in the same transaction as the payment
    PAYMENT_KEYS_TABLE: {
        "KeySchema": [{"AttributeName": "correlation_key", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attrs("correlation_key"),
    },
}


def create_tables(client: Any, prefix: str) -> list[str]:
    """Create every pipeline table that does not exist yet.

    Args:
        client: boto3 DynamoDB client
        prefix: Table name prefix (e.g. storefront-dev)

    Returns:
        Names of the tables that were created
    """
    existing = set(client.list_tables().get("TableNames", []))
    created: list[str] = []

    for suffix, definition in TABLE_DEFINITIONS.items():
        table_name = f"{prefix}-{suffix}"
        if table_name in existing:
            continue
        client.create_table(
            TableName=table_name,
            BillingMode="PAY_PER_REQUEST",
            **definition,
        )
        created.append(table_name)

    return created
