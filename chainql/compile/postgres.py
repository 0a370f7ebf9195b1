"""PostgreSQL dialect compiler."""
from __future__ import annotations

from chainql.compile.base import SQLCompiler


class PostgresCompiler(SQLCompiler):
    """Renders PostgreSQL flavoured statements.

    The generated key is read back with ``RETURNING`` in the INSERT itself.
    Aliased parameter names keep their dot (``p.ProductId``).
    """

    alias_separator = "."

    @property
    def dialect_name(self) -> str:
        return "postgres"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def generated_key_statement(self, insert_sql: str, key_column: str) -> str:
        return f"{insert_sql} RETURNING {key_column};"
