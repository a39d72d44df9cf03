from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import ClientError

from .executor import check_transaction_size
from .operations import GetOperation, WriteOperation


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    if expected is ANY:
        return

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            raise AssertionError(f"{path}: expected dict, got {type(actual).__name__}")
        for k, v in expected.items():
            if k not in actual:
                raise AssertionError(f"{path}: missing key {k!r}")
            _assert_match(v, actual[k], path=f"{path}.{k}")
        return

    if isinstance(expected, list):
        if not isinstance(actual, list):
            raise AssertionError(f"{path}: expected list, got {type(actual).__name__}")
        if len(expected) != len(actual):
            raise AssertionError(f"{path}: expected {len(expected)} items, got {len(actual)}")
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            _assert_match(e, a, path=f"{path}[{i}]")
        return

    if expected != actual:
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """Scripted stand-in for a boto3 DynamoDB client; calls must arrive in the expected order."""

    def __init__(self) -> None:
        self._expected: list[ExpectedCall] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._expected.append(ExpectedCall(method=method, expected=expected, response=response, error=error))

    def expect_transaction_canceled(
        self,
        *reason_codes: str,
        method: str = "transact_write_items",
        message: str = "Transaction cancelled",
    ) -> None:
        """Script a ``TransactionCanceledException`` with one reason code per submitted operation."""
        error = ClientError(
            {
                "Error": {"Code": "TransactionCanceledException", "Message": message},
                "CancellationReasons": [{"Code": code} for code in reason_codes],
            },
            "TransactWriteItems" if method == "transact_write_items" else "TransactGetItems",
        )
        self.expect(method, error=error)

    def assert_no_pending(self) -> None:
        if self._expected:
            raise AssertionError(f"pending expected calls: {self._expected!r}")

    def _handle(self, method: str, req: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append((method, dict(req)))
        if not self._expected:
            raise AssertionError(f"unexpected call: {method}")

        call = self._expected.pop(0)
        if call.method != method:
            raise AssertionError(f"expected {call.method}, got {method}")

        if callable(call.expected):
            call.expected(req)
        elif call.expected is not None:
            _assert_match(dict(call.expected), req, path=method)

        if call.error is not None:
            raise call.error

        return dict(call.response or {})

    def get_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("get_item", kwargs)

    def transact_write_items(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("transact_write_items", kwargs)

    def transact_get_items(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("transact_get_items", kwargs)


def _key_id(table_name: str, key: Mapping[str, Any]) -> tuple[Any, ...]:
    return (table_name, *sorted(key.items()))


class FakeExecutor:
    """In-memory ``RequestExecutor`` serving reads from seeded items and recording submissions.

    Projected reads of a seeded record return only the projected attributes, possibly ``{}``.
    """

    def __init__(self) -> None:
        self._items: dict[tuple[Any, ...], dict[str, Any]] = {}
        self._read_errors: dict[tuple[Any, ...], Exception] = {}
        self.reads: list[tuple[str, dict[str, Any]]] = []
        self.writes: list[list[WriteOperation]] = []
        self.gets: list[list[GetOperation]] = []

    def seed(self, table_name: str, key: Mapping[str, Any], item: Mapping[str, Any]) -> None:
        self._items[_key_id(table_name, key)] = {**item, **key}

    def fail_read(self, table_name: str, key: Mapping[str, Any], error: Exception) -> None:
        self._read_errors[_key_id(table_name, key)] = error

    async def get_item(
        self,
        table_name: str,
        key: Mapping[str, Any],
        *,
        projection: Sequence[str] | None = None,
        consistent_read: bool = False,
    ) -> dict[str, Any] | None:
        _ = consistent_read
        self.reads.append((table_name, dict(key)))
        key_id = _key_id(table_name, key)
        if key_id in self._read_errors:
            raise self._read_errors[key_id]

        item = self._items.get(key_id)
        if item is None:
            return None
        if projection:
            return {k: v for k, v in item.items() if k in projection}
        return dict(item)

    async def transact_write(self, operations: Sequence[WriteOperation]) -> None:
        check_transaction_size(operations)
        self.writes.append(list(operations))

    async def transact_get(self, operations: Sequence[GetOperation]) -> list[dict[str, Any] | None]:
        check_transaction_size(operations)
        self.gets.append(list(operations))
        out: list[dict[str, Any] | None] = []
        for op in operations:
            item = self._items.get(_key_id(op.table_name, op.key))
            out.append(dict(item) if item is not None else None)
        return out
