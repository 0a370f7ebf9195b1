"""Whole-statement builders for direct CRUD entry points.

These forms need no clause chain: the statement follows from the entity
metadata alone (plus a predicate for the ``*_where`` variants).

======================  ==================================================
Form                    SQL
======================  ==================================================
``select_all``          ``SELECT <cols> FROM <table>;``
``select_by_key``       ``SELECT <cols> FROM <table> WHERE <key> = @<key>;``
``select_where``        ``SELECT <cols> FROM <table> WHERE <predicate>;``
``insert``              ``INSERT INTO <table> (<cols>) VALUES (<params>);``
``insert_union``        ``INSERT INTO <table> (<cols>) \\nSELECT ... \\nUNION ALL SELECT ... \\n``
``update_entity``       ``UPDATE <table> SET <non-keys> WHERE <keys>;``
``delete_by_keys``      ``DELETE FROM <table> WHERE <keys>;``
``delete_where``        ``DELETE FROM <table> WHERE <predicate>;``
======================  ==================================================

Forms whose text does not depend on caller values are cached per entity
type in the shared :class:`~chainql.compile.builder.StatementCache`.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from chainql.compile.base import CompiledSQL
from chainql.compile.context import CompilationContext
from chainql.compile.expression_builder import (
    AssignmentBuilder,
    ParameterSet,
    PredicateBuilder,
)
from chainql.errors import ArgumentError, CompilationError, InvalidKeyCountError
from chainql.query.nodes import ComparisonOperator, PredicateTriple, Separator
from chainql.schema.entity import ColumnMetadata, EntityMetadata

if TYPE_CHECKING:
    from chainql.compile.builder import StatementCache, Ticket


def equality_triples(columns: Iterable[tuple[str, Any]]) -> list[PredicateTriple]:
    """Build ``col = value AND col = value ...`` triples."""
    triples = [PredicateTriple(col, ComparisonOperator.EQUAL_TO, value) for col, value in columns]
    for triple in triples[:-1]:
        triple.separator = Separator.AND
    return triples


class StatementBuilder:
    """Builds the whole-statement forms listed in the module docstring.

    Args:
        ctx: Compilation context (compiler, resolver, config).
        cache: Shared statement cache.
    """

    def __init__(self, ctx: CompilationContext, cache: StatementCache) -> None:
        self._ctx = ctx
        self._cache = cache

    # ------------------------------------------------------------------
    # SELECT
    # ------------------------------------------------------------------

    def select_all(self, entity_type: type, ticket: Ticket | None = None) -> CompiledSQL:
        meta = self._ctx.resolver.resolve(entity_type)
        sql = self._cache.get_or_build(
            lambda: f"{self._select_prefix(meta)};",
            shape=("select_all", entity_type),
            ticket=ticket,
        )
        return self._compiled(sql, {})

    def select_by_key(
        self, entity_type: type, key: Any, ticket: Ticket | None = None
    ) -> CompiledSQL:
        meta = self._ctx.resolver.resolve(entity_type)
        key_columns = self._require_keys(meta, 1)
        self._require_value(key, "key")
        return self._keyed(
            meta, key_columns, [key], ("select_by_key", entity_type), ticket,
            lambda where: f"{self._select_prefix(meta)} WHERE {where};",
        )

    def select_where(
        self,
        entity_type: type,
        triples: list[PredicateTriple],
        ticket: Ticket | None = None,
    ) -> CompiledSQL:
        meta = self._ctx.resolver.resolve(entity_type)
        params = ParameterSet()
        where = self._where(triples, params)
        sql = self._cache.get_or_build(
            lambda: f"{self._select_prefix(meta)} WHERE {where};", ticket=ticket
        )
        return self._compiled(sql, params.params)

    # ------------------------------------------------------------------
    # INSERT
    # ------------------------------------------------------------------

    def insert(
        self,
        entity: Any,
        return_key: bool = False,
        entity_type: type | None = None,
        ticket: Ticket | None = None,
    ) -> CompiledSQL:
        """Build an INSERT for ``entity``, optionally reading back its key.

        Generated keys are left out of the column list.  With
        ``return_key=True`` the dialect's read-back statement is appended,
        which needs exactly one key column.
        """
        if entity is None:
            raise ArgumentError("Entity cannot be None.", argument="entity")
        entity_type = entity_type or type(entity)
        meta = self._ctx.resolver.resolve(entity_type)
        key_name = self._require_keys(meta, 1)[0].name if return_key else None
        columns = meta.insertable_columns()

        def build() -> str:
            names = ", ".join(c.name for c in columns)
            placeholders = ", ".join(self._placeholder(c) for c in columns)
            sql = f"INSERT INTO {meta.table_name} ({names}) VALUES ({placeholders})"
            if key_name is not None:
                return self._ctx.compiler.generated_key_statement(sql, key_name)
            return f"{sql};"

        sql = self._cache.get_or_build(
            build, shape=("insert", entity_type, return_key), ticket=ticket
        )
        params = {self._key(c): value for c, value in meta.values_of(entity, columns)}
        return self._compiled(sql, params)

    def insert_union(
        self, entities: Iterable[Any], ticket: Ticket | None = None
    ) -> CompiledSQL:
        """Build one multi-row INSERT from ``SELECT ... UNION ALL SELECT ...``.

        Row ``i`` binds its values under ``<name><i>``.
        """
        rows = list(entities) if entities is not None else []
        if not rows:
            raise ArgumentError("At least one entity is required.", argument="entities")
        if any(row is None for row in rows):
            raise ArgumentError("Entities cannot contain None.", argument="entities")
        meta = self._ctx.resolver.resolve(type(rows[0]))
        columns = meta.insertable_columns()

        def build() -> str:
            names = ", ".join(c.name for c in columns)
            selects = [
                "SELECT " + ", ".join(self._placeholder(c, i) for c in columns) + " \n"
                for i in range(len(rows))
            ]
            return f"INSERT INTO {meta.table_name} ({names}) \n" + "UNION ALL ".join(selects)

        sql = self._cache.get_or_build(build, ticket=ticket)
        params: dict[str, Any] = {}
        for i, row in enumerate(rows):
            for column, value in meta.values_of(row, columns):
                params[f"{self._key(column)}{i}"] = value
        return self._compiled(sql, params)

    # ------------------------------------------------------------------
    # UPDATE
    # ------------------------------------------------------------------

    def update_entity(self, entity: Any, ticket: Ticket | None = None) -> CompiledSQL:
        """Build ``UPDATE ... SET <non-key columns> WHERE <key columns>``."""
        if entity is None:
            raise ArgumentError("Entity cannot be None.", argument="entity")
        entity_type = type(entity)
        meta = self._ctx.resolver.resolve(entity_type)
        key_columns = meta.key_columns
        if not key_columns:
            raise InvalidKeyCountError(meta.entity_name, 1, 0)
        set_columns = meta.non_key_columns()
        if not set_columns:
            raise CompilationError(
                f"Entity '{meta.entity_name}' has no non-key columns to update.",
                clause="SET",
            )

        params = ParameterSet()
        assignments = AssignmentBuilder(self._ctx, params).build(
            [(c.name, v) for c, v in meta.values_of(entity, set_columns)]
        )
        where = self._where(
            equality_triples((c.name, v) for c, v in meta.values_of(entity, key_columns)),
            params,
        )
        sql = self._cache.get_or_build(
            lambda: f"UPDATE {meta.table_name} SET {assignments} WHERE {where};",
            shape=("update", entity_type),
            ticket=ticket,
        )
        return self._compiled(sql, params.params)

    # ------------------------------------------------------------------
    # DELETE
    # ------------------------------------------------------------------

    def delete_by_keys(
        self, entity_type: type, keys: tuple[Any, ...], ticket: Ticket | None = None
    ) -> CompiledSQL:
        """Build ``DELETE FROM ... WHERE k1 = @k1 [AND k2 = @k2]``.

        The number of values must match the entity's key columns.
        """
        if not keys:
            raise ArgumentError("At least one key value is required.", argument="keys")
        for key in keys:
            self._require_value(key, "keys")
        meta = self._ctx.resolver.resolve(entity_type)
        key_columns = self._require_keys(meta, len(keys))
        return self._keyed(
            meta, key_columns, list(keys), ("delete", entity_type, len(keys)), ticket,
            lambda where: f"DELETE FROM {meta.table_name} WHERE {where};",
        )

    def delete_where(
        self,
        entity_type: type,
        triples: list[PredicateTriple],
        ticket: Ticket | None = None,
    ) -> CompiledSQL:
        meta = self._ctx.resolver.resolve(entity_type)
        params = ParameterSet()
        where = self._where(triples, params)
        sql = self._cache.get_or_build(
            lambda: f"DELETE FROM {meta.table_name} WHERE {where};", ticket=ticket
        )
        return self._compiled(sql, params.params)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _select_prefix(self, meta: EntityMetadata) -> str:
        return f"SELECT {', '.join(meta.column_names)} FROM {meta.table_name}"

    def _where(self, triples: list[PredicateTriple], params: ParameterSet) -> str:
        if not triples:
            raise ArgumentError("At least one condition is required.", argument="predicate")
        return PredicateBuilder(self._ctx, params).build(triples)

    def _keyed(
        self,
        meta: EntityMetadata,
        key_columns: list[ColumnMetadata],
        values: list[Any],
        shape: tuple,
        ticket: Ticket | None,
        template: Callable[[str], str],
    ) -> CompiledSQL:
        params = ParameterSet()
        where = self._where(
            equality_triples((c.name, v) for c, v in zip(key_columns, values)), params
        )
        sql = self._cache.get_or_build(lambda: template(where), shape=shape, ticket=ticket)
        return self._compiled(sql, params.params)

    @staticmethod
    def _require_keys(meta: EntityMetadata, expected: int) -> list[ColumnMetadata]:
        key_columns = meta.key_columns
        if len(key_columns) != expected:
            raise InvalidKeyCountError(meta.entity_name, expected, len(key_columns))
        return key_columns

    @staticmethod
    def _require_value(value: Any, argument: str) -> None:
        if value is None:
            raise ArgumentError(f"'{argument}' cannot be None.", argument=argument)

    def _key(self, column: ColumnMetadata) -> str:
        return self._ctx.compiler.parameter_key(column.name)

    def _placeholder(self, column: ColumnMetadata, row: int | None = None) -> str:
        key = self._key(column)
        return self._ctx.placeholder(key if row is None else f"{key}{row}")

    def _compiled(self, sql: str, params: Mapping[str, Any]) -> CompiledSQL:
        return CompiledSQL(sql=sql, params=dict(params), dialect=self._ctx.compiler.dialect_name)
