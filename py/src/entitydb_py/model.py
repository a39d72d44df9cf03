from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any, cast, overload

from .errors import EntityDefinitionError


class AutoGenerateStrategy(StrEnum):
    UUID4 = "UUID4"
    EPOCH_DATE = "EPOCH_DATE"
    ISO_DATE = "ISO_DATE"


@dataclass(frozen=True)
class TableIndex:
    name: str
    type: str
    partition_key: str | None
    sort_key: str | None = None


def gsi(name: str, *, partition_key: str, sort_key: str | None = None) -> TableIndex:
    return TableIndex(name=name, type="GSI", partition_key=partition_key, sort_key=sort_key)


def lsi(name: str, *, sort_key: str) -> TableIndex:
    # LSIs always share the table partition key
    return TableIndex(name=name, type="LSI", partition_key=None, sort_key=sort_key)


@dataclass(frozen=True)
class Table:
    name: str
    partition_key: str
    sort_key: str | None = None
    indexes: tuple[TableIndex, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise EntityDefinitionError("table name is required")
        if not self.partition_key:
            raise EntityDefinitionError("table partition_key is required")

        seen: set[str] = set()
        for idx in self.indexes:
            if idx.name in seen:
                raise EntityDefinitionError(f"duplicate index name: {idx.name}")
            seen.add(idx.name)
            if idx.type not in {"GSI", "LSI"}:
                raise EntityDefinitionError(f"unsupported index type: {idx.type}")
            if idx.type == "GSI" and not idx.partition_key:
                raise EntityDefinitionError(f"index {idx.name}: GSI requires a partition_key")
            if idx.type == "LSI":
                if self.sort_key is None:
                    raise EntityDefinitionError(f"index {idx.name}: LSI requires a table sort_key")
                if not idx.sort_key:
                    raise EntityDefinitionError(f"index {idx.name}: LSI requires a sort_key")

    @property
    def key_attributes(self) -> tuple[str, ...]:
        if self.sort_key is None:
            return (self.partition_key,)
        return (self.partition_key, self.sort_key)

    def get_index(self, name: str) -> TableIndex:
        for idx in self.indexes:
            if idx.name == name:
                return idx
        raise EntityDefinitionError(f"unknown index: {name}")

    def index_key_attributes(self, index: TableIndex) -> tuple[str, ...]:
        out: list[str] = []
        if index.type == "GSI" and index.partition_key:
            out.append(index.partition_key)
        if index.sort_key:
            out.append(index.sort_key)
        return tuple(out)


@dataclass(frozen=True)
class FieldDeclaration:
    name: str
    unique: bool = False
    auto_generate: AutoGenerateStrategy | None = None
    auto_update: bool = False


@overload
def entity_field(
    *,
    unique: bool = False,
    auto_generate: AutoGenerateStrategy | str | None = None,
    auto_update: bool = False,
    ignore: bool = False,
) -> Any: ...


@overload
def entity_field(
    *,
    unique: bool = False,
    auto_generate: AutoGenerateStrategy | str | None = None,
    auto_update: bool = False,
    ignore: bool = False,
    default: Any,
) -> Any: ...


@overload
def entity_field(
    *,
    unique: bool = False,
    auto_generate: AutoGenerateStrategy | str | None = None,
    auto_update: bool = False,
    ignore: bool = False,
    default_factory: Any,
) -> Any: ...


def entity_field(
    *,
    unique: bool = False,
    auto_generate: AutoGenerateStrategy | str | None = None,
    auto_update: bool = False,
    ignore: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("entity_field: cannot set both default and default_factory")

    # auto-generated fields are filled in on create, so they may be omitted by the caller
    if auto_generate is not None and default is MISSING and default_factory is MISSING:
        default = None

    entitydb: dict[str, Any] = {
        "unique": unique,
        "auto_generate": auto_generate,
        "auto_update": auto_update,
        "ignore": ignore,
    }
    return field(default=default, default_factory=default_factory, metadata={"entitydb": entitydb})


@dataclass(frozen=True)
class EntitySchema[T]:
    """Declaration of one entity, consumed by ``Connection.connect()``.

    ``primary_key`` maps each table key attribute to its template, e.g.
    ``{"PK": "USER#{{id}}", "SK": "USER#{{id}}"}``. ``indexes`` maps index names to
    the same kind of mapping for that index's key attributes. Templates are only
    validated when the connection builds metadata.
    """

    model_type: type[T]
    name: str
    primary_key: Mapping[str, str]
    indexes: Mapping[str, Mapping[str, str]]
    fields: tuple[FieldDeclaration, ...]
    table: Table | None = None

    @classmethod
    def from_dataclass(
        cls,
        model_type: type[T],
        *,
        primary_key: Mapping[str, str],
        name: str | None = None,
        indexes: Mapping[str, Mapping[str, str]] | None = None,
        table: Table | None = None,
    ) -> EntitySchema[T]:
        if not is_dataclass(model_type):
            raise EntityDefinitionError("model_type must be a dataclass")

        resolved_name = name if name is not None else model_type.__name__
        if not resolved_name:
            raise EntityDefinitionError("entity name must be non-empty")

        declared: list[FieldDeclaration] = []
        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get("entitydb", {}))
            if bool(opts.get("ignore", False)):
                continue

            raw_strategy = opts.get("auto_generate")
            strategy: AutoGenerateStrategy | None = None
            if raw_strategy is not None:
                try:
                    strategy = AutoGenerateStrategy(raw_strategy)
                except ValueError as err:
                    raise EntityDefinitionError(
                        f"{resolved_name}.{dc_field.name}: unsupported auto_generate strategy: {raw_strategy!r}"
                    ) from err

            auto_update = bool(opts.get("auto_update", False))
            if auto_update and strategy is None:
                raise EntityDefinitionError(
                    f"{resolved_name}.{dc_field.name}: auto_update requires an auto_generate strategy"
                )

            declared.append(
                FieldDeclaration(
                    name=dc_field.name,
                    unique=bool(opts.get("unique", False)),
                    auto_generate=strategy,
                    auto_update=auto_update,
                )
            )

        if not declared:
            raise EntityDefinitionError(f"{resolved_name}: entity must declare at least one attribute")

        return cls(
            model_type=model_type,
            name=resolved_name,
            primary_key=MappingProxyType(dict(primary_key)),
            indexes=MappingProxyType({k: MappingProxyType(dict(v)) for k, v in (indexes or {}).items()}),
            fields=tuple(declared),
            table=table,
        )


def schemas_by_type(schemas: Sequence[EntitySchema[Any]]) -> dict[type[Any], EntitySchema[Any]]:
    out: dict[type[Any], EntitySchema[Any]] = {}
    for schema in schemas:
        if schema.model_type in out:
            raise EntityDefinitionError(f"entity declared more than once: {schema.model_type.__name__}")
        out[schema.model_type] = schema
    return out
