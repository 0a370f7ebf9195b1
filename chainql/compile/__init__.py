"""chainQL compilation layer: clause chains → parameterized SQL."""
from chainql.compile.base import CompiledSQL, SQLCompiler
from chainql.compile.mysql import MySQLCompiler
from chainql.compile.postgres import PostgresCompiler
from chainql.compile.registry import CompilerFactory
from chainql.compile.sqlite import SQLiteCompiler
from chainql.compile.sqlserver import SqlServerCompiler

__all__ = [
    "CompiledSQL",
    "SQLCompiler",
    "CompilerFactory",
    "MySQLCompiler",
    "PostgresCompiler",
    "SQLiteCompiler",
    "SqlServerCompiler",
]
