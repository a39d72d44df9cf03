from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, is_dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, get_args, get_origin, get_type_hints

from .errors import EntityDefinitionError, UnknownAttributeReferenceError, ValidationError
from .key import KeySchema, is_used_for_primary_key
from .model import AutoGenerateStrategy, EntitySchema, Table

ENTITY_NAME_ATTRIBUTE = "__en"


@dataclass(frozen=True)
class AttributeMetadata:
    name: str
    unique: bool = False
    auto_generate: AutoGenerateStrategy | None = None
    auto_update: bool = False


@dataclass(frozen=True)
class EntitySchemaMetadata:
    primary_key: KeySchema
    indexes: Mapping[str, KeySchema]


@dataclass(frozen=True)
class EntityMetadata[T]:
    target: type[T]
    name: str
    table: Table
    schema: EntitySchemaMetadata
    attributes: tuple[AttributeMetadata, ...]

    @property
    def attribute_names(self) -> tuple[str, ...]:
        return tuple(attr.name for attr in self.attributes)

    def get_attribute(self, name: str) -> AttributeMetadata | None:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    @property
    def unique_attributes(self) -> tuple[AttributeMetadata, ...]:
        """Unique attributes that need lock records; key attributes are unique already."""
        return tuple(
            attr
            for attr in self.attributes
            if attr.unique and not is_used_for_primary_key(self.schema.primary_key, attr.name)
        )

    @property
    def auto_generated_attributes(self) -> tuple[AttributeMetadata, ...]:
        return tuple(attr for attr in self.attributes if attr.auto_generate is not None)

    def to_attributes(self, entity: Any) -> dict[str, Any]:
        if not isinstance(entity, self.target):
            raise ValidationError(f"expected an instance of {self.target.__name__}, got {type(entity).__name__}")
        return {attr.name: getattr(entity, attr.name) for attr in self.attributes}

    def to_entity(self, item: Mapping[str, Any]) -> T:
        try:
            hints = get_type_hints(self.target)
        except Exception:
            hints = {}

        kwargs: dict[str, Any] = {}
        for attr in self.attributes:
            if attr.name not in item:
                continue
            kwargs[attr.name] = _coerce_value(item[attr.name], hints.get(attr.name, Any))

        try:
            return self.target(**kwargs)
        except TypeError as err:
            raise ValidationError(str(err)) from err


def _coerce_value(value: Any, annotation: Any) -> Any:
    if value is None:
        return None

    annotation = _unwrap_optional(annotation)
    if annotation is int and isinstance(value, Decimal):
        return int(value)
    if annotation is float and isinstance(value, Decimal):
        return float(value)

    origin = get_origin(annotation)
    if origin is set and isinstance(value, set):
        (elem_type,) = get_args(annotation) or (Any,)
        return {_coerce_value(v, elem_type) for v in value}

    return value


def _unwrap_optional(annotation: Any) -> Any:
    args = get_args(annotation)
    if not args or type(None) not in args:
        return annotation
    non_none = [a for a in args if a is not type(None)]  # noqa: E721
    if len(non_none) == 1:
        return non_none[0]
    return annotation


def build_entity_metadata[T](schema: EntitySchema[T], table: Table | None) -> EntityMetadata[T]:
    resolved_table = schema.table or table
    if resolved_table is None:
        raise EntityDefinitionError(f"{schema.name}: no table bound to entity or connection")

    if not is_dataclass(schema.model_type):
        raise EntityDefinitionError(f"{schema.name}: model_type must be a dataclass")

    attributes = tuple(
        AttributeMetadata(
            name=decl.name,
            unique=decl.unique,
            auto_generate=decl.auto_generate,
            auto_update=decl.auto_update,
        )
        for decl in schema.fields
    )
    names = [attr.name for attr in attributes]
    if len(set(names)) != len(names):
        raise EntityDefinitionError(f"{schema.name}: duplicate attribute names")

    reserved = {ENTITY_NAME_ATTRIBUTE, *resolved_table.key_attributes}
    for idx in resolved_table.indexes:
        reserved.update(resolved_table.index_key_attributes(idx))
    clashing = sorted(reserved.intersection(names))
    if clashing:
        raise EntityDefinitionError(f"{schema.name}: attribute names clash with table key attributes: {clashing}")

    if set(schema.primary_key) != set(resolved_table.key_attributes):
        raise EntityDefinitionError(
            f"{schema.name}: primary key must define templates for {list(resolved_table.key_attributes)} "
            f"(got {sorted(schema.primary_key)})"
        )
    primary_key = KeySchema.from_templates(schema.primary_key)
    _check_references(schema.name, primary_key, names)

    indexes: dict[str, KeySchema] = {}
    for index_name, templates in schema.indexes.items():
        try:
            table_index = resolved_table.get_index(index_name)
        except EntityDefinitionError as err:
            raise EntityDefinitionError(f"{schema.name}: {err}") from err

        expected = resolved_table.index_key_attributes(table_index)
        if set(templates) != set(expected):
            raise EntityDefinitionError(
                f"{schema.name}: index {index_name} must define templates for {list(expected)} "
                f"(got {sorted(templates)})"
            )
        index_key = KeySchema.from_templates(templates)
        _check_references(schema.name, index_key, names)
        indexes[index_name] = index_key

    return EntityMetadata(
        target=schema.model_type,
        name=schema.name,
        table=resolved_table,
        schema=EntitySchemaMetadata(primary_key=primary_key, indexes=MappingProxyType(indexes)),
        attributes=attributes,
    )


def _check_references(entity: str, key: KeySchema, names: list[str]) -> None:
    for pattern in key.interpolations.values():
        for attribute in pattern.attributes:
            if attribute not in names:
                raise UnknownAttributeReferenceError(entity=entity, template=pattern.template, attribute=attribute)
