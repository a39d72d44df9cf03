from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# DynamoDB TransactWriteItems / TransactGetItems hard limit
MAX_TRANSACTION_ITEMS = 100


def _apply_expressions(
    req: dict[str, Any],
    *,
    condition_expression: str | None,
    expression_attribute_names: Mapping[str, str] | None,
    expression_attribute_values: Mapping[str, Any] | None,
) -> dict[str, Any]:
    if condition_expression:
        req["ConditionExpression"] = condition_expression
    if expression_attribute_names:
        req["ExpressionAttributeNames"] = dict(expression_attribute_names)
    if expression_attribute_values:
        req["ExpressionAttributeValues"] = dict(expression_attribute_values)
    return req


@dataclass(frozen=True)
class PutOperation:
    table_name: str
    item: Mapping[str, Any]
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None

    def to_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self.table_name, "Item": dict(self.item)}
        return {
            "Put": _apply_expressions(
                req,
                condition_expression=self.condition_expression,
                expression_attribute_names=self.expression_attribute_names,
                expression_attribute_values=self.expression_attribute_values,
            )
        }


@dataclass(frozen=True)
class UpdateOperation:
    table_name: str
    key: Mapping[str, Any]
    update_expression: str
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None

    def to_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": dict(self.key),
            "UpdateExpression": self.update_expression,
        }
        return {
            "Update": _apply_expressions(
                req,
                condition_expression=self.condition_expression,
                expression_attribute_names=self.expression_attribute_names,
                expression_attribute_values=self.expression_attribute_values,
            )
        }


@dataclass(frozen=True)
class DeleteOperation:
    table_name: str
    key: Mapping[str, Any]
    condition_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None
    expression_attribute_values: Mapping[str, Any] | None = None

    def to_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self.table_name, "Key": dict(self.key)}
        return {
            "Delete": _apply_expressions(
                req,
                condition_expression=self.condition_expression,
                expression_attribute_names=self.expression_attribute_names,
                expression_attribute_values=self.expression_attribute_values,
            )
        }


@dataclass(frozen=True)
class GetOperation:
    table_name: str
    key: Mapping[str, Any]
    projection_expression: str | None = None
    expression_attribute_names: Mapping[str, str] | None = None

    def to_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self.table_name, "Key": dict(self.key)}
        if self.projection_expression:
            req["ProjectionExpression"] = self.projection_expression
        if self.expression_attribute_names:
            req["ExpressionAttributeNames"] = dict(self.expression_attribute_names)
        return {"Get": req}


type WriteOperation = PutOperation | UpdateOperation | DeleteOperation
type LowLevelOperation = WriteOperation | GetOperation
