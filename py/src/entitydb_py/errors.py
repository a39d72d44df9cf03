from __future__ import annotations

from typing import Any


class EntitydbPyError(Exception):
    pass


class ValidationError(EntitydbPyError):
    pass


class NotFoundError(EntitydbPyError):
    pass


class EntityDefinitionError(EntitydbPyError, ValueError):
    pass


class InvalidKeyTemplateError(EntityDefinitionError):
    def __init__(self, *, template: str, reason: str) -> None:
        super().__init__(f"invalid key template {template!r}: {reason}")
        self.template = template
        self.reason = reason


class UnknownAttributeReferenceError(EntityDefinitionError):
    def __init__(self, *, entity: str, template: str, attribute: str) -> None:
        super().__init__(f"{entity}: key template {template!r} references unknown attribute {attribute!r}")
        self.entity = entity
        self.template = template
        self.attribute = attribute


class MissingInterpolationAttributeError(ValidationError):
    def __init__(self, *, template: str, attribute: str) -> None:
        super().__init__(f"missing value for {attribute!r} required by key template {template!r}")
        self.template = template
        self.attribute = attribute


class DuplicateConnectionError(EntitydbPyError):
    pass


class ConnectionNotFoundError(EntitydbPyError):
    pass


class UnknownEntityError(EntitydbPyError):
    def __init__(self, entity: Any) -> None:
        name = getattr(entity, "__name__", None) or repr(entity)
        super().__init__(
            f"no such entity {name!r} is registered; declare it in the connection entities before connect()"
        )
        self.entity = entity


class UnknownPhysicalNameError(EntitydbPyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"no entity with physical name (__en) {name!r} is registered")
        self.name = name


class InvalidTransactionWriteItemError(ValidationError):
    def __init__(self, item: Any) -> None:
        super().__init__(f"invalid write transaction item: {type(item).__name__}")
        self.item = item


class InvalidTransactionReadItemError(ValidationError):
    def __init__(self, item: Any) -> None:
        super().__init__(f"invalid read transaction item: {type(item).__name__}")
        self.item = item


class TransactionSizeLimitError(ValidationError):
    def __init__(self, *, size: int, limit: int) -> None:
        super().__init__(f"a transaction supports at most {limit} operations (got {size})")
        self.size = size
        self.limit = limit


class NoSuchItemExistsError(NotFoundError):
    def __init__(self, *, entity: str, key: Any) -> None:
        super().__init__(f"{entity}: no existing item found for key {key!r}")
        self.entity = entity
        self.key = key


class ConditionFailedError(EntitydbPyError):
    def __init__(
        self,
        message: str = "",
        *,
        reason_codes: tuple[str, ...] = (),
        failed_index: int | None = None,
        failed_operation: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.reason_codes = reason_codes
        self.failed_index = failed_index
        self.failed_operation = failed_operation


class TransactionCanceledError(EntitydbPyError):
    def __init__(self, *, message: str, reason_codes: tuple[str, ...]) -> None:
        super().__init__(message)
        self.reason_codes = reason_codes


class AwsError(EntitydbPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
