from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal

import pytest

from entitydb_py import (
    ConnectionOptions,
    EntitySchema,
    GetOptions,
    ReadTransaction,
    Table,
    UnknownPhysicalNameError,
    ValidationError,
    WriteTransaction,
    entity_field,
)
from entitydb_py.connection import Connection
from entitydb_py.mocks import FakeDynamoDBClient
from entitydb_py.operations import DeleteOperation, PutOperation, UpdateOperation
from entitydb_py.testkit import FakeExecutor, fixed_now, sequential_ids

TABLE = Table(name="app", partition_key="PK", sort_key="SK")


@dataclass(frozen=True)
class User:
    id: str | None = entity_field(auto_generate="UUID4")
    email: str | None = entity_field(unique=True, default=None)
    visits: int = entity_field(default=0)


@dataclass(frozen=True)
class Tag:
    name: str = entity_field()


USER = EntitySchema.from_dataclass(User, name="user", primary_key={"PK": "USER#{{id}}", "SK": "USER#{{id}}"})
TAG = EntitySchema.from_dataclass(Tag, name="tag", primary_key={"PK": "TAG#{{name}}", "SK": "TAG"})

USER_KEY = {"PK": "USER#u1", "SK": "USER#u1"}


def _connection(executor: FakeExecutor) -> Connection:
    options = ConnectionOptions(table=TABLE, entities=(USER, TAG), executor=executor)
    return Connection(options, now=fixed_now(0), uuid_factory=sequential_ids("user")).connect()


def test_transaction_manager_submits_the_composed_write() -> None:
    executor = FakeExecutor()
    conn = _connection(executor)

    tx = WriteTransaction().add_create_item(User(email="a@x.io")).add_create_item(Tag(name="red"))
    asyncio.run(conn.transaction_manager.write(tx))

    (submitted,) = executor.writes
    assert [type(op) for op in submitted] == [PutOperation, PutOperation, PutOperation]
    items = [op.item for op in submitted if isinstance(op, PutOperation)]
    assert items[0]["PK"] == "USER#user-1"
    assert items[1]["PK"] == "UNIQUE#user#email#a@x.io"
    assert items[2]["PK"] == "TAG#red"


def test_transaction_manager_read_maps_items_back_to_entities() -> None:
    executor = FakeExecutor()
    executor.seed("app", USER_KEY, {"id": "u1", "visits": Decimal("4"), "__en": "user"})
    executor.seed("app", {"PK": "TAG#red", "SK": "TAG"}, {"name": "red", "__en": "tag"})
    conn = _connection(executor)

    tx = (
        ReadTransaction()
        .add_get_item(Tag, {"name": "red"})
        .add_get_item(User, {"id": "missing"})
        .add_get_item(User, {"id": "u1"}, GetOptions(projection=("visits",)))
    )
    results = asyncio.run(conn.transaction_manager.read(tx))

    assert results == [Tag(name="red"), None, User(id="u1", visits=4)]
    assert len(executor.gets) == 1


def test_transaction_manager_read_requires_the_entity_marker() -> None:
    executor = FakeExecutor()
    executor.seed("app", {"PK": "TAG#red", "SK": "TAG"}, {"name": "red"})
    conn = _connection(executor)

    with pytest.raises(ValidationError, match="entity marker"):
        asyncio.run(conn.transaction_manager.read(ReadTransaction().add_get_item(Tag, {"name": "red"})))

    executor.seed("app", {"PK": "TAG#red", "SK": "TAG"}, {"name": "red", "__en": "gone"})
    with pytest.raises(UnknownPhysicalNameError):
        asyncio.run(conn.transaction_manager.read(ReadTransaction().add_get_item(Tag, {"name": "red"})))


def test_entity_manager_create_returns_generated_values() -> None:
    executor = FakeExecutor()
    conn = _connection(executor)

    created = asyncio.run(conn.entity_manager.create(User(email="a@x.io")))

    assert created == User(id="user-1", email="a@x.io", visits=0)
    assert len(executor.writes[0]) == 2


def test_entity_manager_find_one() -> None:
    executor = FakeExecutor()
    executor.seed("app", USER_KEY, {"id": "u1", "email": "a@x.io", "visits": Decimal("2"), "__en": "user"})
    conn = _connection(executor)

    assert asyncio.run(conn.entity_manager.find_one(User, {"id": "u1"})) == User(id="u1", email="a@x.io", visits=2)
    assert asyncio.run(conn.entity_manager.find_one(User, {"id": "nope"})) is None


def test_entity_manager_update_submits_lock_swaps_and_rereads() -> None:
    executor = FakeExecutor()
    executor.seed("app", USER_KEY, {"id": "u1", "email": "a@x.io", "__en": "user"})
    conn = _connection(executor)

    found = asyncio.run(conn.entity_manager.update(User, {"id": "u1"}, {"email": "b@x.io"}))

    (submitted,) = executor.writes
    assert [type(op) for op in submitted] == [UpdateOperation, DeleteOperation, PutOperation]
    # one read for the stored unique values, one for the refreshed entity
    assert executor.reads == [("app", USER_KEY), ("app", USER_KEY)]
    assert isinstance(found, User)


def test_entity_manager_delete_releases_locks() -> None:
    executor = FakeExecutor()
    executor.seed("app", USER_KEY, {"id": "u1", "email": "a@x.io", "__en": "user"})
    conn = _connection(executor)

    asyncio.run(conn.entity_manager.delete(User, {"id": "u1"}))

    (submitted,) = executor.writes
    assert submitted == [
        DeleteOperation(table_name="app", key=USER_KEY),
        DeleteOperation(
            table_name="app",
            key={"PK": "UNIQUE#user#email#a@x.io", "SK": "UNIQUE#user#email#a@x.io"},
        ),
    ]


def _client_connection(client: FakeDynamoDBClient) -> Connection:
    options = ConnectionOptions(table=TABLE, entities=(USER, TAG), document_client=client)
    return Connection(options, now=fixed_now(0), uuid_factory=sequential_ids("user")).connect()


def test_first_value_for_a_unique_attribute_only_adds_a_lock() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "get_item",
        {"ProjectionExpression": "#p0", "ExpressionAttributeNames": {"#p0": "email"}, "ConsistentRead": True},
        response={"Item": {}},
    )
    client.expect(
        "transact_write_items",
        {
            "TransactItems": [
                {
                    "Update": {
                        "Key": {"PK": {"S": "USER#u1"}, "SK": {"S": "USER#u1"}},
                        "ConditionExpression": "attribute_exists(#pk)",
                    }
                },
                {
                    "Put": {
                        "Item": {
                            "PK": {"S": "UNIQUE#user#email#a@x.io"},
                            "SK": {"S": "UNIQUE#user#email#a@x.io"},
                        },
                        "ConditionExpression": "attribute_not_exists(#lpk)",
                    }
                },
            ]
        },
    )
    conn = _client_connection(client)

    tx = WriteTransaction().add_update_item(User, {"id": "u1"}, {"email": "a@x.io"})
    asyncio.run(conn.transaction_manager.write(tx))

    client.assert_no_pending()


def test_delete_of_a_record_without_unique_values_skips_lock_releases() -> None:
    client = FakeDynamoDBClient()
    client.expect("get_item", response={"Item": {}})
    client.expect(
        "transact_write_items",
        {"TransactItems": [{"Delete": {"TableName": "app", "Key": {"PK": {"S": "USER#u1"}, "SK": {"S": "USER#u1"}}}}]},
    )
    conn = _client_connection(client)

    asyncio.run(conn.transaction_manager.write(WriteTransaction().add_delete_item(User, {"id": "u1"})))

    client.assert_no_pending()
