from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError

from entitydb_py import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    TransactionCanceledError,
    TransactionSizeLimitError,
    ValidationError,
)
from entitydb_py.executor import DocumentClientExecutor, check_transaction_size
from entitydb_py.mocks import FakeDynamoDBClient
from entitydb_py.operations import DeleteOperation, GetOperation, PutOperation, UpdateOperation


def test_get_item_serializes_key_and_projection() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "get_item",
        {
            "TableName": "app",
            "Key": {"PK": {"S": "USER#u1"}, "SK": {"S": "USER#u1"}},
            "ConsistentRead": True,
            "ProjectionExpression": "#p0, #p1",
            "ExpressionAttributeNames": {"#p0": "email", "#p1": "count"},
        },
        response={"Item": {"email": {"S": "a@x.io"}, "count": {"N": "3"}}},
    )

    item = asyncio.run(
        DocumentClientExecutor(client).get_item(
            "app", {"PK": "USER#u1", "SK": "USER#u1"}, projection=["email", "count"], consistent_read=True
        )
    )

    assert item == {"email": "a@x.io", "count": Decimal("3")}
    client.assert_no_pending()


def test_get_item_returns_none_when_missing() -> None:
    client = FakeDynamoDBClient()
    client.expect("get_item", {"TableName": "app", "ConsistentRead": False}, response={})

    assert asyncio.run(DocumentClientExecutor(client).get_item("app", {"PK": "X"})) is None
    assert "ProjectionExpression" not in client.calls[0][1]


def test_get_item_keeps_an_existing_record_with_no_projected_values() -> None:
    client = FakeDynamoDBClient()
    client.expect("get_item", {"ProjectionExpression": "#p0"}, response={"Item": {}})
    client.expect("transact_get_items", response={"Responses": [{"Item": {}}, {}]})
    executor = DocumentClientExecutor(client)

    assert asyncio.run(executor.get_item("app", {"PK": "A"}, projection=["email"], consistent_read=True)) == {}
    found = asyncio.run(
        executor.transact_get([GetOperation(table_name="app", key={"PK": "A"}), GetOperation("app", {"PK": "B"})])
    )
    assert found == [{}, None]


def test_get_item_maps_client_errors() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "get_item",
        error=ClientError({"Error": {"Code": "ResourceNotFoundException", "Message": "no table"}}, "GetItem"),
    )
    with pytest.raises(NotFoundError, match="no table"):
        asyncio.run(DocumentClientExecutor(client).get_item("missing", {"PK": "X"}))


def test_transact_write_serializes_every_operation() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "transact_write_items",
        {
            "TransactItems": [
                {
                    "Put": {
                        "TableName": "app",
                        "Item": {"PK": {"S": "A"}, "n": {"N": "1"}},
                        "ConditionExpression": "attribute_not_exists(#pk)",
                        "ExpressionAttributeNames": {"#pk": "PK"},
                    }
                },
                {
                    "Update": {
                        "TableName": "app",
                        "Key": {"PK": {"S": "B"}},
                        "UpdateExpression": "SET #a = :a",
                        "ExpressionAttributeNames": {"#a": "a"},
                        "ExpressionAttributeValues": {":a": {"N": "2"}},
                    }
                },
                {"Delete": {"TableName": "app", "Key": {"PK": {"S": "C"}}}},
            ]
        },
    )

    operations = [
        PutOperation(
            table_name="app",
            item={"PK": "A", "n": 1},
            condition_expression="attribute_not_exists(#pk)",
            expression_attribute_names={"#pk": "PK"},
        ),
        UpdateOperation(
            table_name="app",
            key={"PK": "B"},
            update_expression="SET #a = :a",
            expression_attribute_names={"#a": "a"},
            expression_attribute_values={":a": 2},
        ),
        DeleteOperation(table_name="app", key={"PK": "C"}),
    ]
    asyncio.run(DocumentClientExecutor(client).transact_write(operations))
    client.assert_no_pending()


def test_transact_write_reports_the_failed_condition_position() -> None:
    operations = [
        PutOperation(table_name="app", item={"PK": "A"}),
        PutOperation(
            table_name="app",
            item={"PK": "UNIQUE#user#email#a@x.io"},
            condition_expression="attribute_not_exists(#lpk)",
            expression_attribute_names={"#lpk": "PK"},
        ),
    ]
    client = FakeDynamoDBClient()
    client.expect_transaction_canceled("None", "ConditionalCheckFailed")

    with pytest.raises(ConditionFailedError) as exc:
        asyncio.run(DocumentClientExecutor(client).transact_write(operations))

    assert exc.value.failed_index == 1
    assert exc.value.failed_operation is operations[1]
    assert exc.value.reason_codes == ("None", "ConditionalCheckFailed")


def test_transact_write_maps_other_cancellations() -> None:
    client = FakeDynamoDBClient()
    client.expect_transaction_canceled("None", "TransactionConflict")

    with pytest.raises(TransactionCanceledError) as exc:
        asyncio.run(DocumentClientExecutor(client).transact_write([DeleteOperation(table_name="app", key={"PK": "A"})]))
    assert exc.value.reason_codes == ("TransactionConflict",)


def test_transact_write_maps_unknown_client_errors() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "transact_write_items",
        error=ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "TransactWriteItems",
        ),
    )
    with pytest.raises(AwsError) as exc:
        asyncio.run(DocumentClientExecutor(client).transact_write([DeleteOperation(table_name="app", key={"PK": "A"})]))
    assert exc.value.code == "ProvisionedThroughputExceededException"


def test_transact_write_checks_the_size_before_calling_the_client() -> None:
    client = FakeDynamoDBClient()
    executor = DocumentClientExecutor(client)
    operations = [DeleteOperation(table_name="app", key={"PK": str(i)}) for i in range(101)]

    with pytest.raises(TransactionSizeLimitError):
        asyncio.run(executor.transact_write(operations))
    with pytest.raises(ValidationError, match="operations is required"):
        asyncio.run(executor.transact_write([]))
    assert client.calls == []


def test_transact_get_keeps_positions_for_missing_items() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "transact_get_items",
        {
            "TransactItems": [
                {
                    "Get": {
                        "TableName": "app",
                        "Key": {"PK": {"S": "A"}},
                        "ProjectionExpression": "#p0",
                        "ExpressionAttributeNames": {"#p0": "name"},
                    }
                },
                {"Get": {"TableName": "app", "Key": {"PK": {"S": "B"}}}},
            ]
        },
        response={"Responses": [{"Item": {"name": {"S": "Ann"}}}, {}]},
    )

    items = asyncio.run(
        DocumentClientExecutor(client).transact_get(
            [
                GetOperation(
                    table_name="app",
                    key={"PK": "A"},
                    projection_expression="#p0",
                    expression_attribute_names={"#p0": "name"},
                ),
                GetOperation(table_name="app", key={"PK": "B"}),
            ]
        )
    )

    assert items == [{"name": "Ann"}, None]


def test_check_transaction_size_honours_custom_limits() -> None:
    check_transaction_size([1, 2], limit=2)
    with pytest.raises(TransactionSizeLimitError, match="at most 2"):
        check_transaction_size([1, 2, 3], limit=2)


def test_transact_get_maps_cancellations() -> None:
    client = FakeDynamoDBClient()
    client.expect_transaction_canceled("None", "ItemCollectionSizeLimitExceeded", method="transact_get_items")

    with pytest.raises(TransactionCanceledError) as exc:
        asyncio.run(DocumentClientExecutor(client).transact_get([GetOperation(table_name="app", key={"PK": "A"})]))
    assert exc.value.reason_codes == ("ItemCollectionSizeLimitExceeded",)
    assert client.calls[0][0] == "transact_get_items"
