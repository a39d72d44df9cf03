from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from .config import ConnectionOptions, DefaultConfig
from .errors import (
    ConnectionNotFoundError,
    DuplicateConnectionError,
    EntityDefinitionError,
    UnknownEntityError,
    UnknownPhysicalNameError,
)
from .executor import DocumentClientExecutor, RequestExecutor
from .key import KeySchema
from .key import is_used_for_primary_key as _is_used_for_primary_key
from .metadata import AttributeMetadata, EntityMetadata, build_entity_metadata
from .model import Table, schemas_by_type
from .transformer import ItemTransformer

logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    BUILDING = "building"
    CONNECTED = "connected"


class Connection:
    """Binds a table, the entity registry and a request executor.

    Entity metadata is built once by ``connect()`` and is read-only afterwards.
    """

    def __init__(
        self,
        options: ConnectionOptions,
        *,
        on_destroy: Callable[[str], None] | None = None,
        now: Callable[[], float] | None = None,
        uuid_factory: Callable[[], str] | None = None,
    ) -> None:
        self._options = options
        self._on_destroy = on_destroy
        self._executor: RequestExecutor | None = options.executor
        self._state = ConnectionState.DISCONNECTED
        self._by_type: Mapping[type[Any], EntityMetadata[Any]] = MappingProxyType({})
        self._by_name: Mapping[str, EntityMetadata[Any]] = MappingProxyType({})

        self.default_config = DefaultConfig(query_items_implicit_limit=options.query_items_implicit_limit)
        self.transformer = ItemTransformer(self, now=now, uuid_factory=uuid_factory)

        from .manager import EntityManager, TransactionManager

        self.entity_manager = EntityManager(self)
        self.transaction_manager = TransactionManager(self)

    @property
    def name(self) -> str:
        return self._options.name

    @property
    def table(self) -> Table | None:
        return self._options.table

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def executor(self) -> RequestExecutor:
        # no client is created until the first request
        if self._executor is None:
            self._executor = DocumentClientExecutor(self._options.document_client)
        return self._executor

    def connect(self) -> Connection:
        if self._state is not ConnectionState.DISCONNECTED:
            raise DuplicateConnectionError(
                f"connection {self.name!r} is already {self._state.value}; connect() must only be called once"
            )

        self._state = ConnectionState.BUILDING
        try:
            by_type, by_name = self._build_metadatas()
        except Exception:
            self._state = ConnectionState.DISCONNECTED
            self._by_type = MappingProxyType({})
            self._by_name = MappingProxyType({})
            if self._on_destroy is not None:
                self._on_destroy(self.name)
            raise

        self._by_type = MappingProxyType(by_type)
        self._by_name = MappingProxyType(by_name)
        self._state = ConnectionState.CONNECTED
        logger.info("connection %r connected with %d entities", self.name, len(by_type))
        return self

    @property
    def entity_metadatas(self) -> list[EntityMetadata[Any]]:
        return list(self._by_type.values())

    def has_metadata(self, entity_type: type[Any]) -> bool:
        return entity_type in self._by_type

    def get_entity_metadata[T](self, entity_type: type[T]) -> EntityMetadata[T]:
        metadata = self._by_type.get(entity_type)
        if metadata is None:
            raise UnknownEntityError(entity_type)
        return metadata

    def get_entity_by_physical_name(self, name: str) -> EntityMetadata[Any]:
        metadata = self._by_name.get(name)
        if metadata is None:
            raise UnknownPhysicalNameError(name)
        return metadata

    def get_attributes(self, entity_type: type[Any]) -> tuple[AttributeMetadata, ...]:
        return self.get_entity_metadata(entity_type).attributes

    def get_unique_attributes(self, entity_type: type[Any]) -> tuple[AttributeMetadata, ...]:
        return self.get_entity_metadata(entity_type).unique_attributes

    def get_auto_generated_attributes(self, entity_type: type[Any]) -> tuple[AttributeMetadata, ...]:
        return self.get_entity_metadata(entity_type).auto_generated_attributes

    def is_used_for_primary_key(self, primary_key: KeySchema, attribute_name: str) -> bool:
        return _is_used_for_primary_key(primary_key, attribute_name)

    def _build_metadatas(
        self,
    ) -> tuple[dict[type[Any], EntityMetadata[Any]], dict[str, EntityMetadata[Any]]]:
        by_type: dict[type[Any], EntityMetadata[Any]] = {}
        by_name: dict[str, EntityMetadata[Any]] = {}
        for entity_type, schema in schemas_by_type(self._options.entities).items():
            metadata = build_entity_metadata(schema, self._options.table)
            if metadata.name in by_name:
                raise EntityDefinitionError(f"duplicate entity name: {metadata.name}")
            by_type[entity_type] = metadata
            by_name[metadata.name] = metadata
        return by_type, by_name


_connections: dict[str, Connection] = {}


def create_connection(
    options: ConnectionOptions,
    *,
    now: Callable[[], float] | None = None,
    uuid_factory: Callable[[], str] | None = None,
) -> Connection:
    if options.name in _connections:
        raise DuplicateConnectionError(f"there is already a connection named {options.name!r}")

    connection = Connection(options, on_destroy=_destroy_connection, now=now, uuid_factory=uuid_factory)
    _connections[options.name] = connection
    return connection.connect()


def get_connection(name: str = "default") -> Connection:
    connection = _connections.get(name)
    if connection is None:
        raise ConnectionNotFoundError(f"no connection named {name!r}; call create_connection() first")
    return connection


def close_connection(name: str = "default") -> None:
    if name not in _connections:
        raise ConnectionNotFoundError(f"no connection named {name!r}")
    _destroy_connection(name)


def _destroy_connection(name: str) -> None:
    _connections.pop(name, None)


def _reset_connections_for_tests() -> None:
    _connections.clear()
