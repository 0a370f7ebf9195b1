"""Entity metadata resolution.

:class:`MetadataResolver` inspects an entity type once and produces an
immutable :class:`~chainql.schema.entity.EntityMetadata`: the ordered column
list, the key column(s) and the rendered table name.

Resolution rules
----------------
Members
    Dataclass fields, pydantic ``model_fields`` or annotated class attributes,
    in declaration order.  ``ClassVar`` annotations, ``_private`` names and
    members marked ``Ignore()`` are skipped.

Column names
    ``Column("name")`` wins; otherwise the member name passed through
    ``SqlConfig.column_name_formatter``.  Reserved words and names containing
    whitespace are quoted for the configured dialect.

Keys
    Members marked ``Key()``.  Without markers, the first member named
    ``Id``, ``<Type>Id`` or ``<Type>_Id`` (case-insensitive).  A single key
    not marked ``manual`` is treated as database-generated.

Table names
    ``SqlConfig.table_name_mapper`` first, then the :func:`~chainql.table`
    decorator, then the pluralized type name.  The result is passed through
    ``SqlConfig.table_name_formatter`` and quoted like a column name.

The cache is owned by the resolver instance, which is built from a single
immutable :class:`~chainql.schema.config.SqlConfig`.
"""
from __future__ import annotations

import dataclasses
from typing import Annotated, Any, ClassVar, get_origin, get_type_hints

import structlog
from pydantic import BaseModel

from chainql.compile.base import SQLCompiler
from chainql.compile.registry import CompilerFactory
from chainql.errors import ArgumentError
from chainql.schema.config import SqlConfig
from chainql.schema.entity import (
    TABLE_ATTRIBUTE,
    Column,
    ColumnMetadata,
    EntityMetadata,
    Ignore,
    Key,
    TableMarker,
)
from chainql.schema.keywords import is_reserved

logger = structlog.get_logger(__name__)


def _markers(hint: Any) -> tuple[Any, ...]:
    if get_origin(hint) is Annotated:
        return tuple(hint.__metadata__)
    return ()


def _is_class_var(hint: Any) -> bool:
    if get_origin(hint) is Annotated:
        hint = hint.__origin__
    return hint is ClassVar or get_origin(hint) is ClassVar


class MetadataResolver:
    """Resolves and caches :class:`EntityMetadata` per entity type.

    Args:
        config: Naming and dialect configuration.
        compiler: Dialect compiler used for identifier quoting.  Defaults to
            the compiler registered for ``config.dialect``.
    """

    def __init__(self, config: SqlConfig, compiler: SQLCompiler | None = None) -> None:
        self._config = config
        self._compiler = compiler or CompilerFactory.create(config.dialect.value)
        self._cache: dict[type, EntityMetadata] = {}

    @property
    def config(self) -> SqlConfig:
        return self._config

    @property
    def compiler(self) -> SQLCompiler:
        return self._compiler

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, entity_type: type) -> EntityMetadata:
        """Return the metadata for ``entity_type``, resolving it on first use.

        Args:
            entity_type: A dataclass, pydantic model or annotated class.

        Returns:
            The cached :class:`EntityMetadata`.

        Raises:
            ArgumentError: If ``entity_type`` is not a class or maps no columns.
        """
        if not isinstance(entity_type, type):
            raise ArgumentError(
                f"Expected an entity type, got {entity_type!r}.", argument="entity_type"
            )
        cached = self._cache.get(entity_type)
        if cached is not None:
            return cached
        metadata = self._build(entity_type)
        # A concurrent first use computes an identical value; keep the first.
        return self._cache.setdefault(entity_type, metadata)

    def escape(self, name: str) -> str:
        """Quote ``name`` when it is a reserved word or contains whitespace."""
        if not name or self._compiler.is_quoted(name):
            return name
        if is_reserved(name) or any(ch.isspace() for ch in name):
            return self._compiler.quote_identifier(name)
        return name

    def column_name(self, name: str) -> str:
        """Apply the column formatter to a caller-supplied column name."""
        return self._config.format_column(name)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _build(self, entity_type: type) -> EntityMetadata:
        members = [
            (name, markers)
            for name, markers in self._members(entity_type)
            if not name.startswith("_") and not any(isinstance(m, Ignore) for m in markers)
        ]
        if not members:
            raise ArgumentError(
                f"Entity type '{entity_type.__name__}' has no mapped members.",
                argument="entity_type",
            )

        key_members = self._key_members(entity_type, members)
        generated = len(key_members) == 1 and not next(iter(key_members.values()))

        columns = [
            ColumnMetadata(
                name=self._column_name(name, markers),
                member=name,
                is_key=name in key_members,
                is_generated=generated and name in key_members,
            )
            for name, markers in members
        ]
        schema_name, table_name = self._table_name(entity_type)
        metadata = EntityMetadata(
            entity_name=entity_type.__name__,
            table_name=table_name,
            columns=columns,
            schema_name=schema_name,
        )
        logger.debug(
            "entity_resolved",
            entity=entity_type.__name__,
            table=table_name,
            columns=len(columns),
            keys=metadata.key_names,
        )
        return metadata

    @staticmethod
    def _members(entity_type: type) -> list[tuple[str, tuple[Any, ...]]]:
        if issubclass(entity_type, BaseModel):
            return [
                (name, tuple(info.metadata))
                for name, info in entity_type.model_fields.items()
            ]
        hints = get_type_hints(entity_type, include_extras=True)
        if dataclasses.is_dataclass(entity_type):
            return [
                (field.name, _markers(hints.get(field.name)))
                for field in dataclasses.fields(entity_type)
            ]
        return [
            (name, _markers(hint))
            for name, hint in hints.items()
            if not _is_class_var(hint)
        ]

    @staticmethod
    def _key_members(
        entity_type: type, members: list[tuple[str, tuple[Any, ...]]]
    ) -> dict[str, bool]:
        """Return ``member -> manual`` for the key members."""
        explicit = {
            name: marker.manual
            for name, markers in members
            for marker in markers
            if isinstance(marker, Key)
        }
        if explicit:
            return explicit

        type_name = entity_type.__name__.lower()
        candidates = {"id", f"{type_name}id", f"{type_name}_id"}
        for name, markers in members:
            column = next((m.name for m in markers if isinstance(m, Column)), name)
            if name.lower() in candidates or column.lower() in candidates:
                return {name: False}
        return {}

    def _column_name(self, member: str, markers: tuple[Any, ...]) -> str:
        explicit = next((m.name for m in markers if isinstance(m, Column)), None)
        name = explicit if explicit else self._config.format_column(member)
        return self.escape(name)

    def _table_name(self, entity_type: type) -> tuple[str | None, str]:
        name: str | None = None
        schema: str | None = None

        if self._config.table_name_mapper is not None:
            name = self._config.table_name_mapper(entity_type)

        if not name:
            # Only a decorator applied to this very class counts; subclasses
            # do not inherit their parent's table.
            marker = entity_type.__dict__.get(TABLE_ATTRIBUTE)
            if isinstance(marker, TableMarker):
                name, schema = marker.name, marker.schema

        if not name:
            name = self._config.pluralize(entity_type.__name__)

        table_name = self.escape(self._config.format_table(name))
        if schema:
            schema = self.escape(schema)
            return schema, f"{schema}.{table_name}"
        return None, table_name
