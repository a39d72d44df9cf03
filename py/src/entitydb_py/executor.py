from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

from .aws_errors import map_client_error, map_transaction_error
from .errors import TransactionSizeLimitError, ValidationError
from .operations import MAX_TRANSACTION_ITEMS, GetOperation, WriteOperation

logger = logging.getLogger(__name__)


class RequestExecutor(Protocol):
    """Store access used by managers and deferred expansions.

    ``get_item`` returns ``None`` only when the record is absent; a record whose
    projected attributes are all unset comes back as ``{}``.
    """

    async def get_item(
        self,
        table_name: str,
        key: Mapping[str, Any],
        *,
        projection: Sequence[str] | None = None,
        consistent_read: bool = False,
    ) -> dict[str, Any] | None: ...

    async def transact_write(self, operations: Sequence[WriteOperation]) -> None: ...

    async def transact_get(self, operations: Sequence[GetOperation]) -> list[dict[str, Any] | None]: ...


def check_transaction_size(operations: Sequence[Any], *, limit: int = MAX_TRANSACTION_ITEMS) -> None:
    if not operations:
        raise ValidationError("operations is required")
    if len(operations) > limit:
        raise TransactionSizeLimitError(size=len(operations), limit=limit)


class DocumentClientExecutor:
    """Runs operations on a boto3 DynamoDB client.

    Operations carry plain Python values; they are converted to attribute values
    here. Blocking client calls run in a thread so callers can await them.
    """

    def __init__(self, client: Any | None = None) -> None:
        if client is None:
            from .runtime import default_document_client

            client = default_document_client()
        self._client: Any = client
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    @property
    def client(self) -> Any:
        return self._client

    async def get_item(
        self,
        table_name: str,
        key: Mapping[str, Any],
        *,
        projection: Sequence[str] | None = None,
        consistent_read: bool = False,
    ) -> dict[str, Any] | None:
        req: dict[str, Any] = {
            "TableName": table_name,
            "Key": self._serialize_map(key),
            "ConsistentRead": consistent_read,
        }
        if projection:
            names = {f"#p{i}": name for i, name in enumerate(projection)}
            req["ProjectionExpression"] = ", ".join(names)
            req["ExpressionAttributeNames"] = names

        try:
            resp = await asyncio.to_thread(self._client.get_item, **req)
        except ClientError as err:
            raise map_client_error(err) from err

        # a projection over unset attributes yields an empty map for a record that exists
        item = resp.get("Item")
        if item is None:
            return None
        return self._deserialize_map(item)

    async def transact_write(self, operations: Sequence[WriteOperation]) -> None:
        check_transaction_size(operations)
        transact_items = [self._serialize_request(op.to_request()) for op in operations]
        logger.debug("transact_write_items: %d operations", len(transact_items))

        try:
            await asyncio.to_thread(self._client.transact_write_items, TransactItems=transact_items)
        except ClientError as err:
            raise map_transaction_error(err, operations) from err

    async def transact_get(self, operations: Sequence[GetOperation]) -> list[dict[str, Any] | None]:
        check_transaction_size(operations)
        transact_items = [self._serialize_request(op.to_request()) for op in operations]
        logger.debug("transact_get_items: %d operations", len(transact_items))

        try:
            resp = await asyncio.to_thread(self._client.transact_get_items, TransactItems=transact_items)
        except ClientError as err:
            raise map_transaction_error(err, operations) from err

        out: list[dict[str, Any] | None] = []
        for response in resp.get("Responses", []):
            item = response.get("Item") if isinstance(response, dict) else None
            out.append(self._deserialize_map(item) if item is not None else None)
        return out

    def _serialize_request(self, request: Mapping[str, Any]) -> dict[str, Any]:
        (kind, body), *_ = request.items()
        req = dict(body)
        for name in ("Item", "Key", "ExpressionAttributeValues"):
            if name in req:
                req[name] = self._serialize_map(req[name])
        return {kind: req}

    def _serialize_map(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in values.items()}

    def _deserialize_map(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self._deserializer.deserialize(v) for k, v in values.items()}
