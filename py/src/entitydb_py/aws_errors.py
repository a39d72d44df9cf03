from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from botocore.exceptions import ClientError

from .errors import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    TransactionCanceledError,
    ValidationError,
)


def map_client_error(err: ClientError) -> Exception:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(message)
    if code == "ValidationException":
        return ValidationError(message)
    if code == "ResourceNotFoundException":
        return NotFoundError(message)

    return AwsError(code=code or "UnknownError", message=message or str(err))


def map_transaction_error(err: ClientError, operations: Sequence[Any] = ()) -> Exception:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "TransactionCanceledException":
        reasons_raw = err.response.get("CancellationReasons") or []
        reason_codes = tuple(
            str(reason.get("Code", "Unknown")) if isinstance(reason, dict) else "Unknown"
            for reason in reasons_raw
        )

        # reason codes are positional: one per submitted operation, "None" when it did not fail
        failed_index = next(
            (i for i, rc in enumerate(reason_codes) if rc == "ConditionalCheckFailed"),
            None,
        )
        if failed_index is not None or "ConditionalCheckFailed" in message:
            failed_operation = None
            if failed_index is not None and failed_index < len(operations):
                failed_operation = operations[failed_index]
            return ConditionFailedError(
                message or "transaction canceled: ConditionalCheckFailed",
                reason_codes=reason_codes,
                failed_index=failed_index,
                failed_operation=failed_operation,
            )

        return TransactionCanceledError(
            message=message or "transaction canceled",
            reason_codes=tuple(rc for rc in reason_codes if rc != "None"),
        )

    return map_client_error(err)
