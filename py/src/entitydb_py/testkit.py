from __future__ import annotations

from collections.abc import Callable

from .mocks import ANY, FakeDynamoDBClient, FakeExecutor


def fixed_now(seconds: float) -> Callable[[], float]:
    if seconds < 0:
        raise ValueError("seconds must be >= 0")

    def now() -> float:
        return seconds

    return now


def sequential_ids(prefix: str = "id") -> Callable[[], str]:
    if not prefix:
        raise ValueError("prefix must be non-empty")
    counter = 0

    def next_id() -> str:
        nonlocal counter
        counter += 1
        return f"{prefix}-{counter}"

    return next_id


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "FakeExecutor",
    "fixed_now",
    "sequential_ids",
]
