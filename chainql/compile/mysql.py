"""MySQL dialect compiler."""
from __future__ import annotations

from chainql.compile.base import SQLCompiler


class MySQLCompiler(SQLCompiler):
    """Renders MySQL flavoured statements.

    Identifiers are quoted with backticks (`` ` ``) rather than double-quotes.
    ``PyMySQL`` and ``mysql-connector-python`` expect ``%(name)s``
    placeholders; configure ``SqlConfig.parameter_formatter`` accordingly.
    """

    quote_char = "`"

    @property
    def dialect_name(self) -> str:
        return "mysql"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace("`", "``")
        return f"`{escaped}`"

    def generated_key_statement(self, insert_sql: str, key_column: str) -> str:
        return f"{insert_sql}; SELECT LAST_INSERT_ID();"
