"""Declarative entity markers and the resolved metadata models.

Entity types are ordinary dataclasses, pydantic models or annotated classes.
Mapping details are declared with :data:`typing.Annotated` markers and the
:func:`table` decorator::

    from dataclasses import dataclass
    from typing import Annotated

    from chainql import Column, Ignore, Key, table

    @table("Order Details")
    @dataclass
    class OrderDetail:
        OrderId: Annotated[int, Key(manual=True)]
        ProductId: Annotated[int, Key(manual=True)]
        UnitPrice: float
        Quantity: Annotated[int, Column("Qty")]
        Notes: Annotated[str, Ignore()] = ""

The markers are read once per type by
:class:`~chainql.schema.resolver.MetadataResolver`, which produces an
immutable :class:`EntityMetadata`.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

from chainql.errors import ArgumentError

T = TypeVar("T")

#: Attribute set on entity classes by :func:`table`.
TABLE_ATTRIBUTE = "__chainql_table__"


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Key:
    """Marks a member as (part of) the primary key.

    Attributes:
        manual: ``True`` when the application supplies the key value.  A
            single non-manual key is treated as database-generated and is
            left out of INSERT statements.
    """

    manual: bool = False


@dataclasses.dataclass(frozen=True)
class Column:
    """Maps a member to an explicitly named column."""

    name: str


@dataclasses.dataclass(frozen=True)
class Ignore:
    """Excludes a member from the column list."""


@dataclasses.dataclass(frozen=True)
class TableMarker:
    """Explicit table (and optional schema) name set by :func:`table`."""

    name: str
    schema: str | None = None


def table(name: str, schema: str | None = None) -> Callable[[type[T]], type[T]]:
    """Class decorator mapping an entity type to an explicit table name.

    Args:
        name: Table name, used instead of the pluralized type name.
        schema: Optional schema the table lives in.

    Returns:
        A decorator that annotates and returns the class unchanged.
    """
    if not name or not name.strip():
        raise ArgumentError("Table name cannot be blank.", argument="name")

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, TABLE_ATTRIBUTE, TableMarker(name=name, schema=schema))
        return cls

    return decorator


# ---------------------------------------------------------------------------
# Resolved metadata
# ---------------------------------------------------------------------------


class ColumnMetadata(BaseModel):
    """A single mapped column.

    Attributes:
        name: Column name as rendered in SQL (quoted when required).
        member: Attribute name on the entity type.
        is_key: Whether the column is part of the primary key.
        is_generated: Whether the database generates the value on insert.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    member: str
    is_key: bool = False
    is_generated: bool = False

    @property
    def bare_name(self) -> str:
        """Column name without identifier quotes, as drivers report it."""
        if len(self.name) > 1 and self.name[0] == self.name[-1] and self.name[0] in "\"`":
            return self.name[1:-1]
        return self.name


class EntityMetadata(BaseModel):
    """Everything the assembler needs to know about one entity type.

    Attributes:
        entity_name: ``__name__`` of the entity type.
        table_name: Fully rendered table name (``schema.table`` when a schema
            is declared).
        columns: Mapped columns in declaration order.
        schema_name: Rendered schema name, if any.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    entity_name: str
    table_name: str
    columns: list[ColumnMetadata]
    schema_name: str | None = None

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def key_columns(self) -> list[ColumnMetadata]:
        return [c for c in self.columns if c.is_key]

    @property
    def key_names(self) -> list[str]:
        return [c.name for c in self.columns if c.is_key]

    def insertable_columns(self) -> list[ColumnMetadata]:
        """Columns written by INSERT: everything except generated keys."""
        return [c for c in self.columns if not c.is_generated]

    def non_key_columns(self) -> list[ColumnMetadata]:
        return [c for c in self.columns if not c.is_key]

    def column_for(self, member: str) -> ColumnMetadata | None:
        """Return the column mapped to ``member``, or ``None``."""
        for column in self.columns:
            if column.member == member:
                return column
        return None

    def values_of(
        self, entity: Any, columns: Iterable[ColumnMetadata] | None = None
    ) -> list[tuple[ColumnMetadata, Any]]:
        """Read member values of ``entity`` for ``columns`` (all by default)."""
        selected = self.columns if columns is None else columns
        return [(c, getattr(entity, c.member, None)) for c in selected]

    def materialize(self, entity_type: type[T], row: Mapping[str, Any]) -> T:
        """Build an ``entity_type`` instance from a result row.

        Row keys are matched against the bare column names; columns missing
        from the row are left to the type's defaults.

        Args:
            entity_type: The type to instantiate.
            row: A ``column -> value`` mapping returned by the executor.

        Returns:
            A populated entity.
        """
        values = {c.member: row[c.bare_name] for c in self.columns if c.bare_name in row}
        if dataclasses.is_dataclass(entity_type) or issubclass(entity_type, BaseModel):
            return entity_type(**values)
        instance = entity_type.__new__(entity_type)
        for member, value in values.items():
            setattr(instance, member, value)
        return instance
