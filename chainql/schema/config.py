"""Immutable naming and dialect configuration for a session.

A :class:`SqlConfig` is handed to a :class:`~chainql.session.Session` at
construction.  The session's metadata resolver and statement caches are
built from it and never see another configuration, so changing the dialect
or a naming callback means creating a new session::

    from chainql import Dialect, SqlConfig

    config = (
        SqlConfig.builder()
        .dialect(Dialect.POSTGRES)
        .column_names(str.lower)
        .build()
    )

    # Or derive a copy of an existing configuration
    mysql_config = config.with_dialect(Dialect.MYSQL)
"""
from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from chainql.errors import ArgumentError
from chainql.schema.dialect import Dialect

# Suffixes that take "es" in the plural ("Box" -> "Boxes", "Church" -> "Churches").
_SIBILANT_SUFFIXES: tuple[str, ...] = ("s", "x", "z", "ch", "sh")
_VOWELS = "aeiou"


def english_plural(name: str) -> str:
    """Pluralize an English type name for use as a table name.

    Covers the regular rules only: ``Category`` -> ``Categories``,
    ``Address`` -> ``Addresses``, ``Product`` -> ``Products``.  Register a
    custom ``pluralize`` callback for irregular names.

    Args:
        name: Singular type name.

    Returns:
        The pluralized name.
    """
    if not name:
        return name
    lower = name.lower()
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in _VOWELS:
        return name[:-1] + "ies"
    if lower.endswith(_SIBILANT_SUFFIXES):
        return name + "es"
    return name + "s"


class SqlConfig(BaseModel):
    """Dialect and naming callbacks used to resolve entity metadata.

    Attributes:
        dialect: Target engine; controls identifier quoting, the generated-key
            read-back statement and parameter naming.
        table_name_mapper: Optional ``type -> name`` callback consulted before
            any table annotation.  Returning ``None`` falls through to the
            next rule.
        table_name_formatter: Optional ``name -> name`` callback applied to
            every resolved table name.
        column_name_formatter: Optional ``name -> name`` callback applied to
            member names without an explicit ``Column`` marker and to column
            names passed to ``where``/``set``.
        parameter_formatter: Optional ``name -> placeholder`` callback.  The
            default renders ``@name``.
        pluralize: ``name -> name`` callback deriving table names from type
            names.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    dialect: Dialect = Dialect.SQLSERVER
    table_name_mapper: Callable[[type], str | None] | None = None
    table_name_formatter: Callable[[str], str] | None = None
    column_name_formatter: Callable[[str], str] | None = None
    parameter_formatter: Callable[[str], str] | None = None
    pluralize: Callable[[str], str] = Field(default=english_plural)

    @classmethod
    def builder(cls) -> SqlConfigBuilder:
        """Return a :class:`SqlConfigBuilder` starting from the defaults."""
        return SqlConfigBuilder()

    def with_dialect(self, dialect: Dialect | str) -> SqlConfig:
        """Return a copy of this configuration targeting ``dialect``.

        Raises:
            ArgumentError: If ``dialect`` is not a known dialect.
        """
        try:
            target = Dialect(dialect)
        except ValueError as exc:
            raise ArgumentError(f"Unknown dialect: '{dialect}'.", argument="dialect") from exc
        return self.model_copy(update={"dialect": target})

    def format_column(self, name: str) -> str:
        if self.column_name_formatter is None:
            return name
        return self.column_name_formatter(name)

    def format_table(self, name: str) -> str:
        if self.table_name_formatter is None:
            return name
        return self.table_name_formatter(name)

    def placeholder(self, key: str) -> str:
        """Render the SQL placeholder for the parameter named ``key``."""
        if self.parameter_formatter is None:
            return f"@{key}"
        return self.parameter_formatter(key)


class SqlConfigBuilder:
    """Fluent builder for :class:`SqlConfig`.

    Always obtained via :meth:`SqlConfig.builder`.  Each method sets one
    option and may be called in any order.
    """

    def __init__(self) -> None:
        self._options: dict[str, object] = {}

    def dialect(self, dialect: Dialect | str) -> SqlConfigBuilder:
        """Target ``dialect`` (a :class:`Dialect` or its string value)."""
        try:
            self._options["dialect"] = Dialect(dialect)
        except ValueError as exc:
            raise ArgumentError(f"Unknown dialect: '{dialect}'.", argument="dialect") from exc
        return self

    def table_mapper(self, mapper: Callable[[type], str | None]) -> SqlConfigBuilder:
        """Resolve table names through ``mapper`` before any annotation."""
        self._options["table_name_mapper"] = mapper
        return self

    def table_names(self, formatter: Callable[[str], str]) -> SqlConfigBuilder:
        """Pass every resolved table name through ``formatter``."""
        self._options["table_name_formatter"] = formatter
        return self

    def column_names(self, formatter: Callable[[str], str]) -> SqlConfigBuilder:
        """Pass member-derived column names through ``formatter``."""
        self._options["column_name_formatter"] = formatter
        return self

    def parameters(self, formatter: Callable[[str], str]) -> SqlConfigBuilder:
        """Render parameter placeholders with ``formatter``.

        Use ``lambda name: f"%({name})s"`` for ``pyformat`` drivers such as
        ``psycopg`` or ``PyMySQL``.
        """
        self._options["parameter_formatter"] = formatter
        return self

    def pluralizer(self, pluralize: Callable[[str], str]) -> SqlConfigBuilder:
        """Derive table names from type names with ``pluralize``."""
        self._options["pluralize"] = pluralize
        return self

    def build(self) -> SqlConfig:
        """Return the configured, immutable :class:`SqlConfig`."""
        return SqlConfig(**self._options)
