"""Executor capability and the bundled driver adapters.

chainQL never talks to a database itself.  A :class:`~chainql.session.Session`
hands every assembled statement to an *executor*:

``execute(sql, params) -> int``
    Run a statement and return the number of rows affected.
``query_single(sql, params) -> Mapping | None``
    Run a query and return its first row.
``query_many(sql, params) -> Sequence[Mapping]``
    Run a query and return all rows.

Rows are ``column -> value`` mappings.  :class:`AsyncExecutor` is the same
contract with coroutines.

Two adapters are bundled:

:class:`DbApiExecutor`
    Any DB-API 2.0 connection that accepts named parameters in a ``dict``,
    e.g. the standard library ``sqlite3``.
:class:`SqlAlchemyExecutor`
    A SQLAlchemy ``Connection``.  Install the optional dependency first::

        pip install "chainql[sqlalchemy]"

Statements carrying a generated-key read-back (``INSERT ...; SELECT ...;``)
are split on ``;`` and run in order on the same connection; the result of
the last statement is returned.  The connection's transaction is left to the
caller.
"""
from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from chainql.errors import ExecutionError

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = structlog.get_logger(__name__)

Row = Mapping[str, Any]


@runtime_checkable
class Executor(Protocol):
    def execute(self, sql: str, params: Mapping[str, Any]) -> int: ...

    def query_single(self, sql: str, params: Mapping[str, Any]) -> Row | None: ...

    def query_many(self, sql: str, params: Mapping[str, Any]) -> Sequence[Row]: ...


@runtime_checkable
class AsyncExecutor(Protocol):
    async def execute(self, sql: str, params: Mapping[str, Any]) -> int: ...

    async def query_single(self, sql: str, params: Mapping[str, Any]) -> Row | None: ...

    async def query_many(self, sql: str, params: Mapping[str, Any]) -> Sequence[Row]: ...


def split_statements(sql: str) -> list[str]:
    """Split generated SQL into its individual statements.

    Only safe for chainQL output, which never embeds literals in the text.
    """
    return [part.strip() for part in sql.split(";") if part.strip()]


# ---------------------------------------------------------------------------
# DB-API 2.0
# ---------------------------------------------------------------------------


class DbApiExecutor:
    """Executor over a DB-API 2.0 connection.

    Args:
        connection: An open connection whose cursors accept
            ``cursor.execute(sql, dict)``.

    Example::

        import sqlite3
        from chainql import DbApiExecutor, Dialect, Session, SqlConfig

        conn = sqlite3.connect("northwind.db")
        session = Session(DbApiExecutor(conn), SqlConfig(dialect=Dialect.SQLITE))
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection
        # DB-API connections may expose their module's Error class.
        self._driver_error: type[BaseException] = getattr(connection, "Error", Exception)

    def execute(self, sql: str, params: Mapping[str, Any]) -> int:
        cursor = self._run(sql, params)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def query_single(self, sql: str, params: Mapping[str, Any]) -> Row | None:
        cursor = self._run(sql, params)
        try:
            row = cursor.fetchone()
            return None if row is None else self._as_mapping(cursor, row)
        finally:
            cursor.close()

    def query_many(self, sql: str, params: Mapping[str, Any]) -> list[Row]:
        cursor = self._run(sql, params)
        try:
            return [self._as_mapping(cursor, row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def _run(self, sql: str, params: Mapping[str, Any]) -> Any:
        cursor = self._connection.cursor()
        try:
            for statement in split_statements(sql):
                cursor.execute(statement, dict(params))
        except self._driver_error as exc:
            cursor.close()
            raise ExecutionError(f"Statement failed: {exc}", sql=sql) from exc
        return cursor

    @staticmethod
    def _as_mapping(cursor: Any, row: Any) -> Row:
        if isinstance(row, Mapping):
            return dict(row)
        names = [description[0] for description in cursor.description]
        return dict(zip(names, row))


# ---------------------------------------------------------------------------
# SQLAlchemy
# ---------------------------------------------------------------------------

_PLACEHOLDER = "@{}"


class SqlAlchemyExecutor:
    """Executor over a SQLAlchemy ``Connection``.

    SQLAlchemy's ``text()`` binds ``:name`` parameters, so every placeholder
    is rebound to a positional-safe ``:p<n>`` name before execution.  Driver
    errors are re-raised as :class:`~chainql.errors.ExecutionError`.

    Args:
        connection: An open :class:`sqlalchemy.Connection`.  The caller owns
            the transaction (``connection.commit()``).
        placeholder: Format string of the placeholders in the generated SQL;
            must match ``SqlConfig.parameter_formatter`` (default ``@{}``).

    Example::

        from sqlalchemy import create_engine

        engine = create_engine("sqlite://")
        with engine.connect() as conn:
            session = Session(SqlAlchemyExecutor(conn), SqlConfig(dialect="sqlite"))
            session.insert(product)
            conn.commit()
    """

    def __init__(self, connection: Connection, placeholder: str = _PLACEHOLDER) -> None:
        self._connection = connection
        self._placeholder = placeholder

    def execute(self, sql: str, params: Mapping[str, Any]) -> int:
        return self._run(sql, params).rowcount

    def query_single(self, sql: str, params: Mapping[str, Any]) -> Row | None:
        row = self._run(sql, params).mappings().first()
        return None if row is None else dict(row)

    def query_many(self, sql: str, params: Mapping[str, Any]) -> list[Row]:
        return [dict(row) for row in self._run(sql, params).mappings().all()]

    def rebind(self, sql: str, params: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
        """Rewrite placeholders to ``:p<n>`` and return the new SQL and params.

        Longer names are replaced first so ``@Name`` never clobbers
        ``@Name$`` or ``@Name0``.
        """
        bound: dict[str, Any] = {}
        for i, key in enumerate(sorted(params, key=len, reverse=True)):
            name = f"p{i}"
            pattern = re.escape(self._placeholder.format(key)) + r"(?![\w$.])"
            sql, count = re.subn(pattern, f":{name}", sql)
            if count:
                bound[name] = params[key]
        return sql, bound

    def _run(self, sql: str, params: Mapping[str, Any]) -> Any:
        from sqlalchemy import exc, text

        rebound, bound = self.rebind(sql, params)
        result = None
        try:
            for statement in split_statements(rebound):
                result = self._connection.execute(text(statement), bound)
        except exc.DBAPIError as err:
            raise ExecutionError(f"Statement failed: {err.orig}", sql=sql) from err
        return result
