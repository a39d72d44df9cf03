from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, cast

import yaml

from .errors import EntityDefinitionError, ValidationError
from .model import EntitySchema, Table, TableIndex

DEFAULT_QUERY_ITEMS_IMPLICIT_LIMIT = 3000


@dataclass(frozen=True)
class ConnectionOptions:
    table: Table | None
    entities: tuple[EntitySchema[Any], ...]
    name: str = "default"
    document_client: Any | None = None
    executor: Any | None = None
    query_items_implicit_limit: int = DEFAULT_QUERY_ITEMS_IMPLICIT_LIMIT

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("connection name is required")
        if self.query_items_implicit_limit <= 0:
            raise ValidationError("query_items_implicit_limit must be > 0")
        if self.document_client is not None and self.executor is not None:
            raise ValidationError("document_client and executor are mutually exclusive")


def parse_config_document(raw: str) -> dict[str, Any]:
    try:
        parsed = yaml.safe_load(raw)
    except Exception as err:
        raise ValidationError("invalid connection config YAML/JSON") from err

    if not isinstance(parsed, dict):
        raise ValidationError("connection config must be a map/object")

    version = parsed.get("config_version")
    if version != "0.1":
        raise ValidationError(f"unsupported config_version: {version!r}")

    if not isinstance(parsed.get("table"), dict):
        raise ValidationError("connection config must include table")

    return cast(dict[str, Any], parsed)


def parse_table(raw: Mapping[str, Any]) -> Table:
    name = raw.get("name")
    partition_key = raw.get("partition_key")
    sort_key = raw.get("sort_key")
    if not isinstance(name, str) or not name:
        raise ValidationError("table.name must be a non-empty string")
    if not isinstance(partition_key, str) or not partition_key:
        raise ValidationError("table.partition_key must be a non-empty string")
    if sort_key is not None and not isinstance(sort_key, str):
        raise ValidationError("table.sort_key must be a string")

    indexes_raw = raw.get("indexes") or []
    if not isinstance(indexes_raw, list):
        raise ValidationError("table.indexes must be a list")

    indexes: list[TableIndex] = []
    for idx in indexes_raw:
        if not isinstance(idx, dict):
            raise ValidationError("table index must be a map")
        idx_name = idx.get("name")
        if not isinstance(idx_name, str) or not idx_name:
            raise ValidationError("table index missing name")
        idx_type = str(idx.get("type", "GSI")).upper()
        indexes.append(
            TableIndex(
                name=idx_name,
                type=idx_type,
                partition_key=cast(str | None, idx.get("partition_key")),
                sort_key=cast(str | None, idx.get("sort_key")),
            )
        )

    try:
        return Table(name=name, partition_key=partition_key, sort_key=sort_key, indexes=tuple(indexes))
    except EntityDefinitionError as err:
        raise ValidationError(str(err)) from err


def load_connection_options(
    raw: str,
    *,
    entities: Sequence[EntitySchema[Any]] = (),
    document_client: Any | None = None,
    executor: Any | None = None,
) -> ConnectionOptions:
    doc = parse_config_document(raw)

    name = doc.get("name", "default")
    if not isinstance(name, str):
        raise ValidationError("name must be a string")

    limit = doc.get("query_items_implicit_limit", DEFAULT_QUERY_ITEMS_IMPLICIT_LIMIT)
    if not isinstance(limit, int) or isinstance(limit, bool):
        raise ValidationError("query_items_implicit_limit must be an integer")

    return ConnectionOptions(
        table=parse_table(doc["table"]),
        entities=tuple(entities),
        name=name,
        document_client=document_client,
        executor=executor,
        query_items_implicit_limit=limit,
    )


@dataclass(frozen=True)
class DefaultConfig:
    query_items_implicit_limit: int = DEFAULT_QUERY_ITEMS_IMPLICIT_LIMIT
