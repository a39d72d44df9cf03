from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from .errors import (
    InvalidTransactionReadItemError,
    InvalidTransactionWriteItemError,
    TransactionSizeLimitError,
    ValidationError,
)
from .operations import MAX_TRANSACTION_ITEMS, GetOperation, WriteOperation
from .transaction import (
    CreateItem,
    DeleteItem,
    GetItem,
    ReadTransaction,
    ReadTransactionItem,
    UpdateItem,
    WriteTransaction,
    WriteTransactionItem,
)
from .transformer import DeferredExpansion, ItemTransformer, TransformResult

if TYPE_CHECKING:
    from .connection import Connection
    from .executor import RequestExecutor

logger = logging.getLogger(__name__)


class ComposerState(StrEnum):
    COLLECTING = "collecting"
    RESOLVING = "resolving"
    FINALIZED = "finalized"


class TransactionComposer:
    """Turns one transaction into the flat operation list submitted to the store.

    A composer moves ``COLLECTING -> RESOLVING -> FINALIZED`` exactly once.
    Items that resolve directly keep the caller's order; operations emitted by
    deferred expansions are appended after them.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        transformer: ItemTransformer | None = None,
        max_items: int = MAX_TRANSACTION_ITEMS,
    ) -> None:
        if max_items <= 0:
            raise ValueError("max_items must be > 0")
        self._connection = connection
        self._transformer = transformer or connection.transformer
        self._max_items = max_items
        self._state = ComposerState.COLLECTING
        self._operations: list[Any] = []
        self._pending: list[DeferredExpansion] = []

    @property
    def state(self) -> ComposerState:
        return self._state

    @property
    def operations(self) -> tuple[Any, ...]:
        return tuple(self._operations)

    @property
    def pending(self) -> tuple[DeferredExpansion, ...]:
        return tuple(self._pending)

    def collect_write(self, items: Sequence[WriteTransactionItem]) -> None:
        self._require(ComposerState.COLLECTING)
        for item in items:
            if isinstance(item, CreateItem):
                self._accept(self._transformer.to_put_item(item.item, item.options))
            elif isinstance(item, UpdateItem):
                self._accept(
                    self._transformer.to_update_item(item.item, item.primary_key, item.body, item.options)
                )
            elif isinstance(item, DeleteItem):
                self._accept(self._transformer.to_delete_item(item.item, item.primary_key, item.options))
            else:
                raise InvalidTransactionWriteItemError(item)

    def collect_read(self, items: Sequence[ReadTransactionItem]) -> None:
        self._require(ComposerState.COLLECTING)
        for item in items:
            if isinstance(item, GetItem):
                self._accept(self._transformer.to_get_item(item.item, item.primary_key, item.options))
            else:
                raise InvalidTransactionReadItemError(item)

    async def resolve(self, executor: RequestExecutor | None = None) -> None:
        self._require(ComposerState.COLLECTING)
        self._state = ComposerState.RESOLVING
        if not self._pending:
            return

        executor = executor or self._connection.executor
        logger.debug("resolving %d deferred expansions", len(self._pending))

        tasks = [asyncio.ensure_future(expansion.resolve(executor)) for expansion in self._pending]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        for operations in results:
            self._operations.extend(operations)
        self._pending.clear()

    def finalize(self) -> list[Any]:
        self._require(ComposerState.RESOLVING)
        if len(self._operations) > self._max_items:
            raise TransactionSizeLimitError(size=len(self._operations), limit=self._max_items)
        self._state = ComposerState.FINALIZED
        return list(self._operations)

    async def compose_write(
        self,
        transaction: WriteTransaction | Sequence[WriteTransactionItem],
        *,
        executor: RequestExecutor | None = None,
    ) -> list[WriteOperation]:
        items = transaction.items if isinstance(transaction, WriteTransaction) else tuple(transaction)
        if not items:
            raise ValidationError("transaction has no items")

        logger.debug("transform write transaction (before): %r", items)
        self.collect_write(items)
        await self.resolve(executor)
        operations = self.finalize()
        logger.debug("transform write transaction (after): %r", operations)
        return operations

    def compose_read(self, transaction: ReadTransaction | Sequence[ReadTransactionItem]) -> list[GetOperation]:
        items = transaction.items if isinstance(transaction, ReadTransaction) else tuple(transaction)
        if not items:
            raise ValidationError("transaction has no items")

        logger.debug("transform read transaction (before): %r", items)
        self.collect_read(items)
        # reads never defer, so there is nothing to await
        self._state = ComposerState.RESOLVING
        operations = self.finalize()
        logger.debug("transform read transaction (after): %r", operations)
        return operations

    def _accept(self, result: TransformResult) -> None:
        if isinstance(result, DeferredExpansion):
            self._pending.append(result)
        else:
            self._operations.extend(result.operations)

    def _require(self, state: ComposerState) -> None:
        if self._state is not state:
            raise ValidationError(
                f"transaction composer is {self._state.value}, expected {state.value}; composers are single-use"
            )
