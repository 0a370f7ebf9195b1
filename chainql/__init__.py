"""chainQL – fluent, parameterized SQL for plain Python entities.

Chain the clauses. Bind the values.

Public API
----------
``Session``
    Owns the configuration, metadata cache, statement cache and
    instrumentation for one executor.  Entry points: ``from_``, ``distinct``,
    ``top``, ``set``, ``values`` and the direct CRUD calls ``get_all``,
    ``get``, ``query``, ``insert``, ``insert_union``, ``update``, ``delete``.

``SqlConfig``
    Immutable dialect and naming configuration (``SqlConfig.builder()``).

Entity markers
--------------
``Key``, ``Column``, ``Ignore`` (used with ``typing.Annotated``) and the
``@table`` decorator::

    @table("Order Details")
    @dataclass
    class OrderDetail:
        OrderId: Annotated[int, Key(manual=True)]
        ProductId: Annotated[int, Key(manual=True)]
        Quantity: int

Executors
---------
``DbApiExecutor`` (any DB-API 2.0 connection) and ``SqlAlchemyExecutor``
(``pip install "chainql[sqlalchemy]"``).  Anything implementing the
``Executor`` / ``AsyncExecutor`` protocol works.

Extensibility
-------------
New dialect compilers can be registered via::

    from chainql.compile.registry import CompilerFactory

    @CompilerFactory.register("oracle")
    class OracleCompiler(SQLCompiler):
        ...
"""

from __future__ import annotations

from chainql.compile.base import CompiledSQL, SQLCompiler
from chainql.compile.builder import SqlAssembler, StatementCache, Ticket
from chainql.compile.mysql import MySQLCompiler
from chainql.compile.postgres import PostgresCompiler
from chainql.compile.registry import CompilerFactory
from chainql.compile.sqlite import SQLiteCompiler
from chainql.compile.sqlserver import SqlServerCompiler
from chainql.errors import (
    ArgumentError,
    ChainQLError,
    CompilationError,
    ConfigurationError,
    ExecutionError,
    InvalidKeyCountError,
    UnknownDialectError,
    UnsupportedExpressionError,
)
from chainql.events import Instrumentation, OperationKind, SqlEvent
from chainql.executor import AsyncExecutor, DbApiExecutor, Executor, SqlAlchemyExecutor
from chainql.query.nodes import ComparisonOperator, PredicateTriple, Separator, SortOrder
from chainql.query.predicate import translate
from chainql.schema.config import SqlConfig, SqlConfigBuilder
from chainql.schema.dialect import Dialect
from chainql.schema.entity import Column, ColumnMetadata, EntityMetadata, Ignore, Key, table
from chainql.schema.resolver import MetadataResolver
from chainql.session import PreparedStatement, Session

# ---------------------------------------------------------------------------
# Register built-in compilers with CompilerFactory
# ---------------------------------------------------------------------------

CompilerFactory.register_class(Dialect.SQLSERVER, SqlServerCompiler)
CompilerFactory.register_class(Dialect.POSTGRES, PostgresCompiler)
CompilerFactory.register_class(Dialect.SQLITE, SQLiteCompiler)
CompilerFactory.register_class(Dialect.MYSQL, MySQLCompiler)

__all__ = [
    # Entry points
    "Session",
    "PreparedStatement",
    "SqlConfig",
    "SqlConfigBuilder",
    "Dialect",
    # Entity markers and metadata
    "Key",
    "Column",
    "Ignore",
    "table",
    "ColumnMetadata",
    "EntityMetadata",
    "MetadataResolver",
    # Predicates
    "translate",
    "PredicateTriple",
    "ComparisonOperator",
    "Separator",
    "SortOrder",
    # Compilation
    "CompiledSQL",
    "SQLCompiler",
    "CompilerFactory",
    "SqlServerCompiler",
    "PostgresCompiler",
    "SQLiteCompiler",
    "MySQLCompiler",
    "SqlAssembler",
    "StatementCache",
    "Ticket",
    # Execution
    "Executor",
    "AsyncExecutor",
    "DbApiExecutor",
    "SqlAlchemyExecutor",
    # Instrumentation
    "Instrumentation",
    "OperationKind",
    "SqlEvent",
    # Errors
    "ChainQLError",
    "ArgumentError",
    "UnsupportedExpressionError",
    "ConfigurationError",
    "InvalidKeyCountError",
    "UnknownDialectError",
    "CompilationError",
    "ExecutionError",
]
