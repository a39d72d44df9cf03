from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from .errors import NoSuchItemExistsError, ValidationError
from .key import is_used_for_primary_key
from .metadata import ENTITY_NAME_ATTRIBUTE, AttributeMetadata, EntityMetadata
from .model import AutoGenerateStrategy
from .operations import DeleteOperation, GetOperation, PutOperation, UpdateOperation, WriteOperation
from .transaction import CreateOptions, DeleteOptions, GetOptions, UpdateOptions

if TYPE_CHECKING:
    from .connection import Connection
    from .executor import RequestExecutor

logger = logging.getLogger(__name__)


def unique_lock_key(metadata: EntityMetadata[Any], attribute: str, value: Any) -> dict[str, str]:
    lock_id = f"UNIQUE#{metadata.name}#{attribute}#{value}"
    return {key_attr: lock_id for key_attr in metadata.table.key_attributes}


def unique_lock_put(metadata: EntityMetadata[Any], attribute: str, value: Any) -> PutOperation:
    return PutOperation(
        table_name=metadata.table.name,
        item=unique_lock_key(metadata, attribute, value),
        condition_expression="attribute_not_exists(#lpk)",
        expression_attribute_names={"#lpk": metadata.table.partition_key},
    )


def unique_lock_delete(metadata: EntityMetadata[Any], attribute: str, value: Any) -> DeleteOperation:
    return DeleteOperation(table_name=metadata.table.name, key=unique_lock_key(metadata, attribute, value))


@dataclass(frozen=True)
class Resolved:
    operations: tuple[WriteOperation | GetOperation, ...]


@dataclass(frozen=True)
class DeferredExpansion:
    """A transform result that needs the record's stored unique values before it is final.

    ``resolve`` reads the record once and returns the main operation followed by
    the lock record operations.
    """

    kind: Literal["update", "delete"]
    metadata: EntityMetadata[Any]
    key: Mapping[str, str]
    operation: UpdateOperation | DeleteOperation
    unique_attributes: tuple[AttributeMetadata, ...]
    new_values: Mapping[str, Any] = field(default_factory=dict)

    async def resolve(self, executor: RequestExecutor) -> list[WriteOperation]:
        current = await executor.get_item(
            self.metadata.table.name,
            self.key,
            projection=[attr.name for attr in self.unique_attributes],
            consistent_read=True,
        )
        if current is None:
            raise NoSuchItemExistsError(entity=self.metadata.name, key=dict(self.key))
        return self.expand(current)

    def expand(self, current: Mapping[str, Any]) -> list[WriteOperation]:
        operations: list[WriteOperation] = [self.operation]

        if self.kind == "delete":
            for attr in self.unique_attributes:
                value = current.get(attr.name)
                if value is not None:
                    operations.append(unique_lock_delete(self.metadata, attr.name, value))
            return operations

        deletes: list[WriteOperation] = []
        puts: list[WriteOperation] = []
        for attr in self.unique_attributes:
            old = current.get(attr.name)
            new = self.new_values.get(attr.name)
            if old == new:
                continue
            if old is not None:
                deletes.append(unique_lock_delete(self.metadata, attr.name, old))
            if new is not None:
                puts.append(unique_lock_put(self.metadata, attr.name, new))
        return operations + deletes + puts


type TransformResult = Resolved | DeferredExpansion


class ItemTransformer:
    def __init__(
        self,
        connection: Connection,
        *,
        now: Callable[[], float] | None = None,
        uuid_factory: Callable[[], str] | None = None,
    ) -> None:
        self._connection = connection
        self._now = now or time.time
        self._uuid = uuid_factory or (lambda: str(uuid.uuid4()))

    def to_put_item(self, entity: Any, options: CreateOptions | None = None) -> Resolved:
        options = options or CreateOptions()
        metadata = self._connection.get_entity_metadata(type(entity))

        attributes = metadata.to_attributes(entity)
        for attr in metadata.auto_generated_attributes:
            if attributes.get(attr.name) is None:
                attributes[attr.name] = self._generate(attr)

        item = self._to_item(metadata, attributes)
        main: PutOperation
        if options.overwrite_if_exists:
            main = PutOperation(table_name=metadata.table.name, item=item)
        else:
            main = PutOperation(
                table_name=metadata.table.name,
                item=item,
                condition_expression="attribute_not_exists(#pk)",
                expression_attribute_names={"#pk": metadata.table.partition_key},
            )

        locks = [
            unique_lock_put(metadata, attr.name, attributes[attr.name])
            for attr in metadata.unique_attributes
            if attributes.get(attr.name) is not None
        ]
        return Resolved(operations=(main, *locks))

    def to_update_item(
        self,
        entity_type: type[Any],
        primary_key: Mapping[str, Any],
        body: Mapping[str, Any],
        options: UpdateOptions | None = None,
    ) -> TransformResult:
        options = options or UpdateOptions()
        metadata = self._connection.get_entity_metadata(entity_type)
        if not body:
            raise ValidationError("no updates provided")

        for name in body:
            if metadata.get_attribute(name) is None:
                raise ValidationError(f"unknown field: {name}")
            if is_used_for_primary_key(metadata.schema.primary_key, name):
                raise ValidationError(f"cannot update attribute used in primary key: {name}")

        key = metadata.schema.primary_key.build(primary_key)

        updates: dict[str, Any] = dict(body)
        for attr in metadata.auto_generated_attributes:
            if attr.auto_update and attr.name not in updates:
                updates[attr.name] = self._generate(attr)

        index_keys, cleared_keys = self._updated_index_keys(metadata, primary_key, updates)
        operation = self._build_update_operation(metadata, key, updates, index_keys, cleared_keys, options)

        changed_unique = tuple(attr for attr in metadata.unique_attributes if attr.name in updates)
        if not changed_unique:
            return Resolved(operations=(operation,))

        logger.debug(
            "%s: update touches unique attributes %s, deferring",
            metadata.name,
            [attr.name for attr in changed_unique],
        )
        return DeferredExpansion(
            kind="update",
            metadata=metadata,
            key=key,
            operation=operation,
            unique_attributes=changed_unique,
            new_values={attr.name: updates[attr.name] for attr in changed_unique},
        )

    def to_delete_item(
        self,
        entity_type: type[Any],
        primary_key: Mapping[str, Any],
        options: DeleteOptions | None = None,
    ) -> TransformResult:
        options = options or DeleteOptions()
        metadata = self._connection.get_entity_metadata(entity_type)
        key = metadata.schema.primary_key.build(primary_key)

        operation = DeleteOperation(
            table_name=metadata.table.name,
            key=key,
            condition_expression=options.condition_expression,
            expression_attribute_names=options.expression_attribute_names,
            expression_attribute_values=options.expression_attribute_values,
        )

        unique = metadata.unique_attributes
        if not unique:
            return Resolved(operations=(operation,))

        return DeferredExpansion(
            kind="delete",
            metadata=metadata,
            key=key,
            operation=operation,
            unique_attributes=unique,
        )

    def to_get_item(
        self,
        entity_type: type[Any],
        primary_key: Mapping[str, Any],
        options: GetOptions | None = None,
    ) -> Resolved:
        options = options or GetOptions()
        metadata = self._connection.get_entity_metadata(entity_type)
        key = metadata.schema.primary_key.build(primary_key)

        if options.projection is None:
            return Resolved(operations=(GetOperation(table_name=metadata.table.name, key=key),))

        names = self._projection_names(metadata, options.projection)
        return Resolved(
            operations=(
                GetOperation(
                    table_name=metadata.table.name,
                    key=key,
                    projection_expression=", ".join(names),
                    expression_attribute_names=names,
                ),
            )
        )

    def _generate(self, attr: AttributeMetadata) -> Any:
        strategy = attr.auto_generate
        if strategy == AutoGenerateStrategy.UUID4:
            return self._uuid()
        if strategy == AutoGenerateStrategy.EPOCH_DATE:
            return int(self._now())
        if strategy == AutoGenerateStrategy.ISO_DATE:
            return datetime.fromtimestamp(self._now(), tz=UTC).isoformat()
        raise ValidationError(f"{attr.name}: no auto_generate strategy")

    def _to_item(self, metadata: EntityMetadata[Any], attributes: Mapping[str, Any]) -> dict[str, Any]:
        item: dict[str, Any] = {k: v for k, v in attributes.items() if v is not None}
        item.update(metadata.schema.primary_key.build(attributes))

        for index_key in metadata.schema.indexes.values():
            # sparse index: only written when every referenced attribute has a value
            if index_key.can_build(attributes):
                item.update(index_key.build(attributes))

        item[ENTITY_NAME_ATTRIBUTE] = metadata.name
        return item

    def _updated_index_keys(
        self,
        metadata: EntityMetadata[Any],
        primary_key: Mapping[str, Any],
        updates: Mapping[str, Any],
    ) -> tuple[dict[str, str], list[str]]:
        """Index key attributes to set, and index key attributes to remove.

        Clearing an attribute an index template references drops the record
        from that (sparse) index.
        """
        available = {**primary_key, **updates}
        out: dict[str, str] = {}
        cleared: list[str] = []
        for index_name, index_key in metadata.schema.indexes.items():
            touched = [name for name in index_key.attributes if name in updates]
            if not touched:
                continue
            if any(updates[name] is None for name in touched):
                cleared.extend(index_key.interpolations)
                continue
            if not index_key.can_build(available):
                raise ValidationError(
                    f"index {index_name}: updating {touched} requires values for {list(index_key.attributes)}"
                )
            out.update(index_key.build(available))
        return out, cleared

    def _build_update_operation(
        self,
        metadata: EntityMetadata[Any],
        key: Mapping[str, str],
        updates: Mapping[str, Any],
        index_keys: Mapping[str, str],
        cleared_keys: Sequence[str],
        options: UpdateOptions,
    ) -> UpdateOperation:
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        set_parts: list[str] = []
        remove_parts: list[str] = []

        for field_name, value in updates.items():
            name_ref = f"#d_{field_name}"
            names[name_ref] = field_name
            if value is None:
                remove_parts.append(name_ref)
                continue
            value_ref = f":d_{field_name}"
            values[value_ref] = value
            set_parts.append(f"{name_ref} = {value_ref}")

        for i, (key_attr, key_value) in enumerate(index_keys.items()):
            names[f"#k{i}"] = key_attr
            values[f":k{i}"] = key_value
            set_parts.append(f"#k{i} = :k{i}")

        for i, key_attr in enumerate(cleared_keys):
            names[f"#r{i}"] = key_attr
            remove_parts.append(f"#r{i}")

        expr_parts: list[str] = []
        if set_parts:
            expr_parts.append("SET " + ", ".join(set_parts))
        if remove_parts:
            expr_parts.append("REMOVE " + ", ".join(remove_parts))

        condition = options.condition_expression
        if condition is None:
            # without a caller condition an update never creates a record
            condition = "attribute_exists(#pk)"
            names["#pk"] = metadata.table.partition_key

        if options.expression_attribute_names:
            for k, v in options.expression_attribute_names.items():
                if k in names:
                    raise ValidationError(f"expression attribute name collision: {k}")
                names[k] = v

        if options.expression_attribute_values:
            for k, v in options.expression_attribute_values.items():
                if k in values:
                    raise ValidationError(f"expression attribute value collision: {k}")
                values[k] = v

        return UpdateOperation(
            table_name=metadata.table.name,
            key=key,
            update_expression=" ".join(expr_parts),
            condition_expression=condition,
            expression_attribute_names=names,
            expression_attribute_values=values or None,
        )

    def _projection_names(self, metadata: EntityMetadata[Any], projection: Sequence[str]) -> dict[str, str]:
        missing = _required_fields(metadata).difference(projection)
        if missing:
            raise ValidationError(f"projection is missing required fields: {sorted(missing)}")

        names: dict[str, str] = {}
        for i, field_name in enumerate(projection):
            if metadata.get_attribute(field_name) is None:
                raise ValidationError(f"unknown field: {field_name}")
            names[f"#p{i}"] = field_name
        # the entity marker is needed to map read results back to their entity type
        names[f"#p{len(projection)}"] = ENTITY_NAME_ATTRIBUTE
        return names


def _required_fields(metadata: EntityMetadata[Any]) -> set[str]:
    required: set[str] = set()
    for dc_field in fields(metadata.target):
        if metadata.get_attribute(dc_field.name) is None:
            continue
        if dc_field.default is MISSING and dc_field.default_factory is MISSING:
            required.add(dc_field.name)
    return required
