from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidTransactionReadItemError, InvalidTransactionWriteItemError


@dataclass(frozen=True)
class CreateOptions:
    overwrite_if_exists: bool = False


@dataclass(frozen=True)
class UpdateOptions:
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class DeleteOptions:
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class GetOptions:
    projection: tuple[str, ...] | None = None


@dataclass(frozen=True)
class CreateItem[T]:
    item: T
    options: CreateOptions = field(default_factory=CreateOptions)


@dataclass(frozen=True)
class UpdateItem[T]:
    item: type[T]
    primary_key: Mapping[str, Any]
    body: Mapping[str, Any]
    options: UpdateOptions = field(default_factory=UpdateOptions)


@dataclass(frozen=True)
class DeleteItem[T]:
    item: type[T]
    primary_key: Mapping[str, Any]
    options: DeleteOptions = field(default_factory=DeleteOptions)


@dataclass(frozen=True)
class GetItem[T]:
    item: type[T]
    primary_key: Mapping[str, Any]
    options: GetOptions = field(default_factory=GetOptions)


type WriteTransactionItem = CreateItem[Any] | UpdateItem[Any] | DeleteItem[Any]
type ReadTransactionItem = GetItem[Any]

WRITE_ITEM_TYPES = (CreateItem, UpdateItem, DeleteItem)
READ_ITEM_TYPES = (GetItem,)


class WriteTransaction:
    def __init__(self, items: Sequence[WriteTransactionItem] = ()) -> None:
        self._items: list[WriteTransactionItem] = []
        for item in items:
            self.add(item)

    @property
    def items(self) -> tuple[WriteTransactionItem, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: WriteTransactionItem) -> WriteTransaction:
        if not isinstance(item, WRITE_ITEM_TYPES):
            raise InvalidTransactionWriteItemError(item)
        self._items.append(item)
        return self

    def add_create_item(self, item: Any, options: CreateOptions | None = None) -> WriteTransaction:
        return self.add(CreateItem(item=item, options=options or CreateOptions()))

    def add_update_item(
        self,
        entity_type: type[Any],
        primary_key: Mapping[str, Any],
        body: Mapping[str, Any],
        options: UpdateOptions | None = None,
    ) -> WriteTransaction:
        return self.add(
            UpdateItem(item=entity_type, primary_key=primary_key, body=body, options=options or UpdateOptions())
        )

    def add_delete_item(
        self,
        entity_type: type[Any],
        primary_key: Mapping[str, Any],
        options: DeleteOptions | None = None,
    ) -> WriteTransaction:
        return self.add(DeleteItem(item=entity_type, primary_key=primary_key, options=options or DeleteOptions()))


class ReadTransaction:
    def __init__(self, items: Sequence[ReadTransactionItem] = ()) -> None:
        self._items: list[ReadTransactionItem] = []
        for item in items:
            self.add(item)

    @property
    def items(self) -> tuple[ReadTransactionItem, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: ReadTransactionItem) -> ReadTransaction:
        if not isinstance(item, READ_ITEM_TYPES):
            raise InvalidTransactionReadItemError(item)
        self._items.append(item)
        return self

    def add_get_item(
        self,
        entity_type: type[Any],
        primary_key: Mapping[str, Any],
        options: GetOptions | None = None,
    ) -> ReadTransaction:
        return self.add(GetItem(item=entity_type, primary_key=primary_key, options=options or GetOptions()))
