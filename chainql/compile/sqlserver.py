"""SQL Server dialect compiler."""
from __future__ import annotations

from chainql.compile.base import SQLCompiler


class SqlServerCompiler(SQLCompiler):
    """Renders SQL Server flavoured statements.

    SQL Server is the default dialect.  Paging uses ``OFFSET n ROWS`` and the
    generated identity value is read back with ``SCOPE_IDENTITY()`` in a
    second statement of the same batch.
    """

    @property
    def dialect_name(self) -> str:
        return "sqlserver"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def generated_key_statement(self, insert_sql: str, key_column: str) -> str:
        return f"{insert_sql}; SELECT CAST(SCOPE_IDENTITY() AS BIGINT);"

    def offset_clause(self, count: int) -> str:
        return f"OFFSET {count} ROWS"
