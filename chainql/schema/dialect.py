"""Supported SQL dialects."""
from __future__ import annotations

from enum import Enum


class Dialect(str, Enum):
    """Target database engine for generated SQL.

    The value doubles as the compiler registry name, so a dialect registered
    through :class:`~chainql.compile.registry.CompilerFactory` under the same
    string is picked up without further wiring.
    """

    SQLSERVER = "sqlserver"
    POSTGRES = "postgres"
    SQLITE = "sqlite"
    MYSQL = "mysql"

    def __str__(self) -> str:
        return self.value
