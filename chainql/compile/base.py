"""Compiler abstractions: CompiledSQL and the SQLCompiler ABC.

The Template Method pattern (GoF) is used:
- ``SQLCompiler`` defines the dialect-neutral pieces of rendering
  (parameter naming, OFFSET text, quoting detection).
- One subclass per engine overrides the dialect-specific steps
  (identifier quoting, generated-key read-back, alias separator).
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

# Characters that cannot appear in a bind parameter name.
_UNSAFE_PARAM_CHARS = re.compile(r"[^\w.$]")


@dataclass
class CompiledSQL:
    """The output of a successful assembly.

    Attributes:
        sql: The SQL text with named placeholders.
        params: ``name -> value`` map, in emission order, holding exactly
            the names referenced by ``sql``.
        dialect: The target dialect name (e.g. ``'sqlserver'``).
    """

    sql: str
    params: dict[str, Any]
    dialect: str

    def __str__(self) -> str:
        return self.sql


class SQLCompiler(ABC):
    """Abstract base for dialect-specific SQL renderers.

    Subclasses implement the dialect-specific methods; the assembler and the
    metadata resolver use this interface via the Strategy / Template Method
    patterns.
    """

    #: Opening and closing identifier quote character.
    quote_char: str = '"'

    #: Replaces the dot of an ``alias.column`` reference in parameter names.
    alias_separator: str = "__"

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Return a properly-quoted SQL identifier.

        Args:
            name: Unquoted identifier (table, schema or column name).

        Returns:
            Quoted identifier.
        """

    @abstractmethod
    def generated_key_statement(self, insert_sql: str, key_column: str) -> str:
        """Append the generated-key read-back to an INSERT statement.

        Args:
            insert_sql: The INSERT statement without a trailing semicolon.
            key_column: The rendered name of the generated key column.

        Returns:
            The complete statement text, terminated by a semicolon.
        """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the canonical dialect name (e.g. ``'postgres'``)."""

    def is_quoted(self, name: str) -> bool:
        """Return ``True`` when ``name`` is already quoted for this dialect."""
        return len(name) > 1 and name[0] == self.quote_char and name[-1] == self.quote_char

    def parameter_key(self, column: str) -> str:
        """Derive the bind parameter name for a rendered column reference.

        ``alias.column`` becomes ``alias__column`` (see
        :attr:`alias_separator`).  Identifier quotes are dropped and any
        remaining character that is not valid in a bind name becomes ``_``.
        """
        key = column.replace(self.quote_char, "").replace(".", self.alias_separator)
        return _UNSAFE_PARAM_CHARS.sub("_", key)

    def offset_clause(self, count: int) -> str:
        """Return the ``OFFSET`` clause text."""
        return f"OFFSET {count}"
