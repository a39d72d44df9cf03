from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .config import ConnectionOptions, load_connection_options
from .errors import (
    AwsError,
    ConditionFailedError,
    ConnectionNotFoundError,
    DuplicateConnectionError,
    EntitydbPyError,
    EntityDefinitionError,
    InvalidKeyTemplateError,
    InvalidTransactionReadItemError,
    InvalidTransactionWriteItemError,
    MissingInterpolationAttributeError,
    NoSuchItemExistsError,
    NotFoundError,
    TransactionCanceledError,
    TransactionSizeLimitError,
    UnknownAttributeReferenceError,
    UnknownEntityError,
    UnknownPhysicalNameError,
    ValidationError,
)
from .model import AutoGenerateStrategy, EntitySchema, Table, TableIndex, entity_field, gsi, lsi
from .operations import (
    MAX_TRANSACTION_ITEMS,
    DeleteOperation,
    GetOperation,
    PutOperation,
    UpdateOperation,
)
from .transaction import (
    CreateItem,
    CreateOptions,
    DeleteItem,
    DeleteOptions,
    GetItem,
    GetOptions,
    ReadTransaction,
    UpdateItem,
    UpdateOptions,
    WriteTransaction,
)

if TYPE_CHECKING:
    from .composer import ComposerState, TransactionComposer
    from .connection import Connection, ConnectionState, close_connection, create_connection, get_connection
    from .executor import DocumentClientExecutor, RequestExecutor
    from .key import KeySchema, build_primary_key, interpolate, is_used_for_primary_key, parse_key_template
    from .manager import EntityManager, TransactionManager
    from .metadata import AttributeMetadata, EntityMetadata
    from .runtime import default_document_client, is_lambda_environment
    from .transformer import DeferredExpansion, ItemTransformer, Resolved


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {"Connection", "ConnectionState", "create_connection", "get_connection", "close_connection"}:
        from . import connection

        return getattr(connection, name)
    if name in {"ComposerState", "TransactionComposer"}:
        from . import composer

        return getattr(composer, name)
    if name in {"DeferredExpansion", "ItemTransformer", "Resolved"}:
        from . import transformer

        return getattr(transformer, name)
    if name in {"EntityManager", "TransactionManager"}:
        from . import manager

        return getattr(manager, name)
    if name in {"DocumentClientExecutor", "RequestExecutor"}:
        from . import executor

        return getattr(executor, name)
    if name in {"KeySchema", "build_primary_key", "interpolate", "is_used_for_primary_key", "parse_key_template"}:
        from . import key

        return getattr(key, name)
    if name in {"AttributeMetadata", "EntityMetadata"}:
        from . import metadata

        return getattr(metadata, name)
    if name in {"default_document_client", "is_lambda_environment"}:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AttributeMetadata",
    "AutoGenerateStrategy",
    "AwsError",
    "build_primary_key",
    "close_connection",
    "ComposerState",
    "ConditionFailedError",
    "Connection",
    "ConnectionNotFoundError",
    "ConnectionOptions",
    "ConnectionState",
    "create_connection",
    "CreateItem",
    "CreateOptions",
    "default_document_client",
    "DeferredExpansion",
    "DeleteItem",
    "DeleteOperation",
    "DeleteOptions",
    "DocumentClientExecutor",
    "DuplicateConnectionError",
    "entity_field",
    "EntitydbPyError",
    "EntityDefinitionError",
    "EntityManager",
    "EntityMetadata",
    "EntitySchema",
    "get_connection",
    "GetItem",
    "GetOperation",
    "GetOptions",
    "gsi",
    "interpolate",
    "InvalidKeyTemplateError",
    "InvalidTransactionReadItemError",
    "InvalidTransactionWriteItemError",
    "is_lambda_environment",
    "is_used_for_primary_key",
    "ItemTransformer",
    "KeySchema",
    "load_connection_options",
    "lsi",
    "MAX_TRANSACTION_ITEMS",
    "MissingInterpolationAttributeError",
    "NoSuchItemExistsError",
    "NotFoundError",
    "parse_key_template",
    "PutOperation",
    "ReadTransaction",
    "RequestExecutor",
    "Resolved",
    "Table",
    "TableIndex",
    "TransactionCanceledError",
    "TransactionComposer",
    "TransactionManager",
    "TransactionSizeLimitError",
    "UnknownAttributeReferenceError",
    "UnknownEntityError",
    "UnknownPhysicalNameError",
    "UpdateItem",
    "UpdateOperation",
    "UpdateOptions",
    "ValidationError",
    "WriteTransaction",
    "__repo_version__",
    "__version__",
]
