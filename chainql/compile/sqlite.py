"""SQLite dialect compiler."""
from __future__ import annotations

from chainql.compile.base import SQLCompiler


class SQLiteCompiler(SQLCompiler):
    """Renders SQLite flavoured statements.

    Python's built-in ``sqlite3`` module accepts the default ``@name``
    placeholders with a plain ``dict`` of parameters.  The generated rowid is
    read back with ``LAST_INSERT_ROWID()`` in a second statement.
    """

    @property
    def dialect_name(self) -> str:
        return "sqlite"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def generated_key_statement(self, insert_sql: str, key_column: str) -> str:
        return f"{insert_sql}; SELECT LAST_INSERT_ROWID();"
