from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from .composer import TransactionComposer
from .errors import ValidationError
from .metadata import ENTITY_NAME_ATTRIBUTE
from .operations import PutOperation, WriteOperation
from .transaction import (
    CreateOptions,
    DeleteItem,
    DeleteOptions,
    ReadTransaction,
    UpdateItem,
    UpdateOptions,
    WriteTransaction,
)

if TYPE_CHECKING:
    from .connection import Connection


class TransactionManager:
    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    async def write(self, transaction: WriteTransaction) -> None:
        operations = await TransactionComposer(self._connection).compose_write(transaction)
        await self._connection.executor.transact_write(operations)

    async def read(self, transaction: ReadTransaction) -> list[Any | None]:
        operations = TransactionComposer(self._connection).compose_read(transaction)
        items = await self._connection.executor.transact_get(operations)
        return [self._to_entity(item) for item in items]

    def _to_entity(self, item: Mapping[str, Any] | None) -> Any | None:
        if item is None:
            return None
        name = item.get(ENTITY_NAME_ATTRIBUTE)
        if not isinstance(name, str) or not name:
            raise ValidationError(f"item is missing its entity marker ({ENTITY_NAME_ATTRIBUTE})")
        return self._connection.get_entity_by_physical_name(name).to_entity(item)


class EntityManager:
    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    async def create[T](self, entity: T, options: CreateOptions | None = None) -> T:
        metadata = self._connection.get_entity_metadata(type(entity))
        result = self._connection.transformer.to_put_item(entity, options)
        operations = cast("tuple[WriteOperation, ...]", result.operations)
        await self._connection.executor.transact_write(operations)

        # the main put carries generated values; return them to the caller
        main = cast(PutOperation, operations[0])
        return metadata.to_entity(main.item)

    async def find_one[T](
        self,
        entity_type: type[T],
        primary_key: Mapping[str, Any],
        *,
        consistent_read: bool = False,
    ) -> T | None:
        metadata = self._connection.get_entity_metadata(entity_type)
        key = metadata.schema.primary_key.build(primary_key)
        item = await self._connection.executor.get_item(
            metadata.table.name, key, consistent_read=consistent_read
        )
        if item is None:
            return None
        return metadata.to_entity(item)

    async def update[T](
        self,
        entity_type: type[T],
        primary_key: Mapping[str, Any],
        body: Mapping[str, Any],
        options: UpdateOptions | None = None,
    ) -> T | None:
        item = UpdateItem(
            item=entity_type, primary_key=primary_key, body=body, options=options or UpdateOptions()
        )
        operations = await TransactionComposer(self._connection).compose_write([item])
        await self._connection.executor.transact_write(operations)
        return await self.find_one(entity_type, primary_key, consistent_read=True)

    async def delete(
        self,
        entity_type: type[Any],
        primary_key: Mapping[str, Any],
        options: DeleteOptions | None = None,
    ) -> None:
        item = DeleteItem(item=entity_type, primary_key=primary_key, options=options or DeleteOptions())
        operations = await TransactionComposer(self._connection).compose_write([item])
        await self._connection.executor.transact_write(operations)
