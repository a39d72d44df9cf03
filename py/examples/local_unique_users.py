from __future__ import annotations

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass

import boto3

from entitydb_py import (
    ConditionFailedError,
    EntitySchema,
    ReadTransaction,
    WriteTransaction,
    create_connection,
    entity_field,
    load_connection_options,
)

CONFIG = """
config_version: "0.1"
table:
  name: {table_name}
  partition_key: PK
  sort_key: SK
  indexes:
    - name: GSI1
      partition_key: GSI1PK
      sort_key: GSI1SK
"""


@dataclass(frozen=True)
class User:
    id: str | None = entity_field(auto_generate="UUID4")
    email: str | None = entity_field(unique=True, default=None)
    status: str = entity_field(default="active")
    updated_at: str | None = entity_field(auto_generate="ISO_DATE", auto_update=True)


USER = EntitySchema.from_dataclass(
    User,
    name="user",
    primary_key={"PK": "USER#{{id}}", "SK": "USER#{{id}}"},
    indexes={"GSI1": {"GSI1PK": "STATUS#{{status}}", "GSI1SK": "USER#{{id}}"}},
)


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def _create_table(client, table_name: str) -> None:
    key_attrs = ["PK", "SK", "GSI1PK", "GSI1SK"]
    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "PK", "KeyType": "HASH"}, {"AttributeName": "SK", "KeyType": "RANGE"}],
        AttributeDefinitions=[{"AttributeName": name, "AttributeType": "S"} for name in key_attrs],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "GSI1",
                "KeySchema": [
                    {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)


async def run(table_name: str, client) -> None:
    options = load_connection_options(CONFIG.format(table_name=table_name), entities=[USER], document_client=client)
    conn = create_connection(options)

    ann = await conn.entity_manager.create(User(email="ann@example.com"))
    print("created:", ann)

    try:
        await conn.entity_manager.create(User(email="ann@example.com"))
    except ConditionFailedError as err:
        print("duplicate email rejected at operation", err.failed_index)

    bob = User(email="bob@example.com")
    await conn.transaction_manager.write(
        WriteTransaction()
        .add_create_item(bob)
        .add_update_item(User, {"id": ann.id}, {"email": "ann@example.org", "status": "away"})
    )

    found = await conn.transaction_manager.read(ReadTransaction().add_get_item(User, {"id": ann.id}))
    print("read back:", found)


def main() -> None:
    logging.basicConfig(level=logging.DEBUG if os.environ.get("DEBUG") else logging.INFO)
    client = _client()
    table_name = f"entitydb_py_example_{uuid.uuid4().hex[:12]}"
    _create_table(client, table_name)
    try:
        asyncio.run(run(table_name, client))
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
