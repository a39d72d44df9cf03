from __future__ import annotations

import json

import pytest

from entitydb_py import ConnectionOptions, Table, ValidationError, gsi, lsi, load_connection_options
from entitydb_py.config import DEFAULT_QUERY_ITEMS_IMPLICIT_LIMIT, parse_config_document, parse_table
from entitydb_py.mocks import FakeDynamoDBClient, FakeExecutor

YAML_DOC = """
config_version: "0.1"
name: main
query_items_implicit_limit: 500
table:
  name: app
  partition_key: PK
  sort_key: SK
  indexes:
    - name: GSI1
      partition_key: GSI1PK
      sort_key: GSI1SK
    - name: LSI1
      type: lsi
      sort_key: LSI1SK
"""


def test_load_connection_options_from_yaml() -> None:
    executor = FakeExecutor()
    options = load_connection_options(YAML_DOC, executor=executor)

    assert options.name == "main"
    assert options.query_items_implicit_limit == 500
    assert options.executor is executor
    assert options.entities == ()
    assert options.table == Table(
        name="app",
        partition_key="PK",
        sort_key="SK",
        indexes=(gsi("GSI1", partition_key="GSI1PK", sort_key="GSI1SK"), lsi("LSI1", sort_key="LSI1SK")),
    )


def test_load_connection_options_from_json_with_defaults() -> None:
    doc = json.dumps({"config_version": "0.1", "table": {"name": "app", "partition_key": "id"}})
    client = FakeDynamoDBClient()

    options = load_connection_options(doc, document_client=client)

    assert options.name == "default"
    assert options.query_items_implicit_limit == DEFAULT_QUERY_ITEMS_IMPLICIT_LIMIT
    assert options.document_client is client
    assert options.table == Table(name="app", partition_key="id")


@pytest.mark.parametrize(
    ("raw", "match"),
    [
        ("table: [", "invalid connection config"),
        ("- a\n- b\n", "must be a map"),
        ('config_version: "9"\ntable: {name: t, partition_key: PK}\n', "unsupported config_version"),
        ('config_version: "0.1"\n', "must include table"),
    ],
)
def test_parse_config_document_rejects_invalid_documents(raw: str, match: str) -> None:
    with pytest.raises(ValidationError, match=match):
        parse_config_document(raw)


@pytest.mark.parametrize(
    ("raw", "match"),
    [
        ({"partition_key": "PK"}, "table.name"),
        ({"name": "t"}, "table.partition_key"),
        ({"name": "t", "partition_key": "PK", "sort_key": 1}, "table.sort_key"),
        ({"name": "t", "partition_key": "PK", "indexes": {}}, "must be a list"),
        ({"name": "t", "partition_key": "PK", "indexes": ["GSI1"]}, "must be a map"),
        ({"name": "t", "partition_key": "PK", "indexes": [{"partition_key": "A"}]}, "missing name"),
        (
            {"name": "t", "partition_key": "PK", "indexes": [{"name": "L", "type": "LSI", "sort_key": "L"}]},
            "LSI requires a table sort_key",
        ),
    ],
)
def test_parse_table_rejects_invalid_tables(raw: dict[str, object], match: str) -> None:
    with pytest.raises(ValidationError, match=match):
        parse_table(raw)


def test_load_connection_options_validates_scalars() -> None:
    base = 'config_version: "0.1"\ntable: {name: t, partition_key: PK}\n'
    with pytest.raises(ValidationError, match="name must be a string"):
        load_connection_options(base + "name: 3\n")
    with pytest.raises(ValidationError, match="must be an integer"):
        load_connection_options(base + "query_items_implicit_limit: many\n")
    with pytest.raises(ValidationError, match="must be > 0"):
        load_connection_options(base + "query_items_implicit_limit: 0\n")


def test_connection_options_validation() -> None:
    table = Table(name="t", partition_key="PK")
    with pytest.raises(ValidationError, match="connection name is required"):
        ConnectionOptions(table=table, entities=(), name="")
    with pytest.raises(ValidationError, match="mutually exclusive"):
        ConnectionOptions(table=table, entities=(), document_client=FakeDynamoDBClient(), executor=FakeExecutor())
