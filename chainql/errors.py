"""Custom exception hierarchy for chainQL.

All public errors inherit from ChainQLError so callers can catch the base
class for any chainQL-specific failure.
"""
from __future__ import annotations

from typing import Any


class ChainQLError(Exception):
    """Base exception for all chainQL errors."""


class ArgumentError(ChainQLError, ValueError):
    """Raised when a required argument is missing, blank or out of range.

    Raised eagerly, before the clause chain is extended, so a failed call
    leaves the chain exactly as it was.

    Args:
        message: Human-readable description.
        argument: Name of the offending argument.
    """

    def __init__(self, message: str, argument: str | None = None) -> None:
        super().__init__(message)
        self.argument = argument


class UnsupportedExpressionError(ChainQLError):
    """Raised when a predicate falls outside the translatable grammar.

    Args:
        message: Human-readable description.
        expression: Representation of the offending expression node.
    """

    def __init__(self, message: str, expression: Any = None) -> None:
        super().__init__(message)
        self.expression = expression


class ConfigurationError(ChainQLError):
    """Raised when entity metadata or session configuration cannot satisfy
    the requested operation."""


class InvalidKeyCountError(ConfigurationError):
    """Raised when a key-based operation finds the wrong number of keys.

    Args:
        entity: Name of the entity type.
        expected: Number of key columns the operation needs.
        found: Number of key columns the entity declares.
    """

    def __init__(self, entity: str, expected: int, found: int) -> None:
        if found == 0:
            message = f"Entity '{entity}' does not have any key columns."
        elif found > expected:
            message = (
                f"Entity '{entity}' has more than {expected} key column(s) "
                f"(found {found})."
            )
        else:
            message = f"Entity '{entity}' needs {expected} key columns, found {found}."
        super().__init__(message)
        self.entity = entity
        self.expected = expected
        self.found = found


class UnknownDialectError(ConfigurationError):
    """Raised when no compiler is registered for a dialect.

    Args:
        dialect: The requested dialect name.
        registered: The dialect names that are registered.
    """

    def __init__(self, dialect: str, registered: list[str]) -> None:
        super().__init__(
            f"Unsupported dialect: '{dialect}'. Registered dialects: {registered}."
        )
        self.dialect = dialect
        self.registered = registered


class CompilationError(ChainQLError):
    """Raised when a clause chain cannot be assembled into a statement.

    Args:
        message: Human-readable description.
        clause: The clause being assembled when the error occurred.
    """

    def __init__(self, message: str, clause: str | None = None) -> None:
        super().__init__(message)
        self.clause = clause


class ExecutionError(ChainQLError):
    """Raised by executor adapters when the database driver fails.

    The driver exception is chained as ``__cause__``.

    Args:
        message: Human-readable description.
        sql: The statement that was being executed.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql
