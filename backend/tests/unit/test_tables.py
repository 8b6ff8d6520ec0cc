"""Unit tests for pipeline table provisioning and DynamoDBService helpers."""

from typing import Any

import pytest

from conftest import TABLE_PREFIX
from storefront.services.tables import TABLE_DEFINITIONS, create_tables


class TestCreateTables:
    def test_creates_every_table(self, dynamodb_client: Any) -> None:
        created = create_tables(dynamodb_client, "unit")

        assert sorted(created) == sorted(f"unit-{suffix}" for suffix in TABLE_DEFINITIONS)

    def test_existing_tables_left_alone(self, dynamodb_client: Any) -> None:
        create_tables(dynamodb_client, "unit")

        assert create_tables(dynamodb_client, "unit") == []

    def test_webhook_events_indexes(self, dynamodb_client: Any) -> None:
        create_tables(dynamodb_client, "unit")

        table = dynamodb_client.describe_table(TableName="unit-webhook-events")["Table"]
        indexes = {index["IndexName"] for index in table["GlobalSecondaryIndexes"]}
        assert indexes == {"provider-event-index", "status-index", "received-index"}

    @pytest.mark.parametrize("suffix", ["customers", "orders", "payments", "payment-keys"])
    def test_record_tables_have_no_indexes(self, dynamodb_client: Any, suffix: str) -> None:
        create_tables(dynamodb_client, "unit")

        table = dynamodb_client.describe_table(TableName=f"unit-{suffix}")["Table"]
        assert table.get("GlobalSecondaryIndexes", []) == []


class TestDynamoDBService:
    def test_table_name_uses_prefix(self, db: Any) -> None:
        assert db.table_name("payments") == f"{TABLE_PREFIX}-payments"

    def test_conditional_put_reports_conflict(self, db: Any) -> None:
        item = {"correlation_key": "stripe:session:cs_1", "payment_id": "PAY-1"}
        condition = "attribute_not_exists(correlation_key)"

        assert db.put_item("payment-keys", item, condition_expression=condition) is True
        assert db.put_item("payment-keys", item, condition_expression=condition) is False

    def test_transaction_cancelled_returns_false(self, db: Any) -> None:
        key = {"correlation_key": "coinbase:charge_code:ABCD1234", "payment_id": "PAY-1"}
        condition = "attribute_not_exists(correlation_key)"
        db.put_item("payment-keys", key)

        committed = db.transact_write(
            [
                db.build_put("orders", {"order_id": "ORD-1"}),
                db.build_put("payment-keys", key, condition_expression=condition),
            ]
        )

        assert committed is False
        assert db.get_item("orders", {"order_id": "ORD-1"}) is None
