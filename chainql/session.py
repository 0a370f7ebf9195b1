"""Session: the entry point tying configuration, assembly and execution together.

A :class:`Session` owns one :class:`~chainql.schema.resolver.MetadataResolver`
and one :class:`~chainql.compile.builder.SqlAssembler` (and with them the
metadata and statement caches), built from a single immutable
:class:`~chainql.schema.config.SqlConfig`.  Two surfaces are offered.

Fluent chains
-------------
::

    session.from_(Product).where("CategoryId", 1).select()
    session.from_(Product, "p").inner_join(Category, "c").on("p.CategoryId", "c.Id") \\
        .where(lambda p: p.UnitPrice > 10).select(Product)
    session.set("Name", "Chai").where("Id", 1).update(Product)
    session.values(product).insert()

Direct CRUD
-----------
::

    session.get_all(Product)
    session.get(Product, 1)
    session.query(Product, lambda p: p.Discontinued == False)
    session.insert(product, return_key=True)
    session.update(product)
    session.delete(OrderDetail, 10248, 11)

Every executing call has an ``*_async`` coroutine twin (for an
:class:`~chainql.executor.AsyncExecutor`) and an ``*_as_string`` twin
returning the :class:`~chainql.compile.base.CompiledSQL` without executing.
"""
from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import structlog

from chainql.compile.base import CompiledSQL, SQLCompiler
from chainql.compile.builder import SqlAssembler, Ticket
from chainql.compile.context import CompilationContext
from chainql.compile.statements import equality_triples
from chainql.errors import ArgumentError, ConfigurationError
from chainql.events import Instrumentation, OperationKind, SqlEvent
from chainql.query import predicate as predicates
from chainql.query.nodes import (
    DistinctNode,
    FromNode,
    PredicateTriple,
    SetNode,
    TopNode,
    ValuesNode,
)
from chainql.query.stages import (
    DistinctStage,
    FromStage,
    SetStage,
    TopStage,
    ValuesStage,
    apply_assignments,
    new_chain,
)
from chainql.schema.config import SqlConfig
from chainql.schema.resolver import MetadataResolver

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_MANY = "many"
_SINGLE = "single"
_SCALAR = "scalar"
_EXECUTE = "execute"


# ---------------------------------------------------------------------------
# Prepared statements
# ---------------------------------------------------------------------------


class PreparedStatement:
    """An assembled statement bound to the executor call that will run it.

    Args:
        session: Owning session (executor, instrumentation, resolver).
        compiled: The SQL text and parameters.
        kind: Operation kind reported to instrumentation.
        mode: Executor call: ``many``, ``single``, ``scalar`` (first value of
            the first row) or ``execute``.
        entity_type: Rows are materialized into this type when given.
        transform: Optional post-processing of the final result.
        ticket: The caller's ticket, handed to event handlers as their
            correlation token.
    """

    def __init__(
        self,
        session: Session,
        compiled: CompiledSQL,
        kind: OperationKind,
        mode: str,
        entity_type: type | None = None,
        transform: Callable[[Any], Any] | None = None,
        ticket: Ticket | None = None,
    ) -> None:
        self._session = session
        self.compiled = compiled
        self.kind = kind
        self._mode = mode
        self._entity_type = entity_type
        self._transform = transform
        self._ticket = ticket

    def run(self) -> Any:
        result = self._call()
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise ConfigurationError(
                "The executor is asynchronous; use the *_async variant of this call."
            )
        return self._finish(result)

    async def run_async(self) -> Any:
        result = self._call()
        if inspect.isawaitable(result):
            result = await result
        return self._finish(result)

    def _call(self) -> Any:
        sql, params = self.compiled.sql, self.compiled.params
        self._session.events.fire(self._ticket, SqlEvent.create(self.kind, sql, params))
        logger.debug("statement_executing", kind=self.kind.value, sql=sql)
        executor = self._session.executor
        if self._mode == _MANY:
            return executor.query_many(sql, params)
        if self._mode == _EXECUTE:
            return executor.execute(sql, params)
        return executor.query_single(sql, params)

    def _finish(self, result: Any) -> Any:
        if self._mode == _MANY:
            result = [self._row(row) for row in result]
        elif self._mode == _SINGLE:
            result = None if result is None else self._row(result)
        elif self._mode == _SCALAR:
            result = None if not result else next(iter(result.values()))
        if self._transform is not None:
            result = self._transform(result)
        return result

    def _row(self, row: Any) -> Any:
        if self._entity_type is None:
            return dict(row)
        metadata = self._session.resolver.resolve(self._entity_type)
        return metadata.materialize(self._entity_type, row)


def _succeeded(rows: int) -> bool:
    return rows > 0


def _exactly_one(rows: int) -> bool:
    return rows == 1


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session:
    """Builds, instruments and executes statements against one executor.

    Args:
        executor: An :class:`~chainql.executor.Executor` or
            :class:`~chainql.executor.AsyncExecutor`.
        config: Naming and dialect configuration; defaults to SQL Server
            with the built-in naming rules.
        compiler: Overrides the compiler registered for the dialect.

    Raises:
        UnknownDialectError: If no compiler is registered for the dialect.
    """

    def __init__(
        self,
        executor: Any,
        config: SqlConfig | None = None,
        compiler: SQLCompiler | None = None,
    ) -> None:
        self.executor = executor
        self.config = config or SqlConfig()
        self.resolver = MetadataResolver(self.config, compiler)
        self.assembler = SqlAssembler(CompilationContext.from_resolver(self.resolver))
        self.events = Instrumentation()

    def __repr__(self) -> str:
        return f"Session(dialect={self.config.dialect.value!r})"

    # ------------------------------------------------------------------
    # Prepared statement factories (used by the fluent stages)
    # ------------------------------------------------------------------

    def prepare_many(
        self, compiled: CompiledSQL, entity_type: type | None, ticket: Ticket | None = None
    ) -> PreparedStatement:
        """Prepare a SELECT returning entities (or dicts when no type is given)."""
        return PreparedStatement(
            self, compiled, OperationKind.SELECT, _MANY, entity_type, ticket=ticket
        )

    def prepare_execute(
        self,
        compiled: CompiledSQL,
        kind: OperationKind,
        transform: Callable[[int], Any] | None = None,
        ticket: Ticket | None = None,
    ) -> PreparedStatement:
        """Prepare a statement returning the number of rows affected."""
        return PreparedStatement(
            self, compiled, kind, _EXECUTE, transform=transform, ticket=ticket
        )

    # ------------------------------------------------------------------
    # Fluent entry points
    # ------------------------------------------------------------------

    def distinct(self) -> DistinctStage:
        return new_chain(self, DistinctStage, DistinctNode(None))

    def top(self, count: int) -> TopStage:
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ArgumentError(
                f"'count' must be a non-negative integer, got {count!r}.", argument="count"
            )
        return new_chain(self, TopStage, TopNode(None, count))

    def from_(self, entity_type: type, alias: str | None = None) -> FromStage:
        """Start a ``FROM <table> [alias]`` chain."""
        self.resolver.resolve(entity_type)
        return new_chain(self, FromStage, FromNode(None, entity_type, alias))

    def set(self, column: str | type, value: Any) -> SetStage:
        """Start an ``UPDATE ... SET`` chain.

        ``set("Name", "Chai")`` assigns one column; ``set(Product, lambda p:
        (p.Name == "Chai") & (p.UnitPrice == 18))`` assigns several and
        records ``Product`` as the update target.
        """
        node = SetNode(None)
        apply_assignments(self, node, column, value)
        return new_chain(self, SetStage, node)

    def values(self, entity: Any) -> ValuesStage:
        """Start an INSERT chain for ``entity``."""
        if entity is None:
            raise ArgumentError("Entity cannot be None.", argument="entity")
        return new_chain(self, ValuesStage, ValuesNode(None, entity))

    # ------------------------------------------------------------------
    # SELECT
    # ------------------------------------------------------------------

    def _get_all(self, entity_type: type[T], ticket: Ticket | None) -> PreparedStatement:
        compiled = self.assembler.statements.select_all(entity_type, ticket)
        return self.prepare_many(compiled, entity_type, ticket)

    def get_all(self, entity_type: type[T], ticket: Ticket | None = None) -> list[T]:
        """Return every row of ``entity_type``'s table."""
        return self._get_all(entity_type, ticket).run()

    async def get_all_async(self, entity_type: type[T], ticket: Ticket | None = None) -> list[T]:
        return await self._get_all(entity_type, ticket).run_async()

    def get_all_as_string(self, entity_type: type, ticket: Ticket | None = None) -> CompiledSQL:
        return self._get_all(entity_type, ticket).compiled

    def _get(self, entity_type: type, key: Any, ticket: Ticket | None) -> PreparedStatement:
        compiled = self.assembler.statements.select_by_key(entity_type, key, ticket)
        return PreparedStatement(
            self, compiled, OperationKind.SELECT, _SINGLE, entity_type, ticket=ticket
        )

    def get(self, entity_type: type[T], key: Any, ticket: Ticket | None = None) -> T | None:
        """Return the entity whose single key equals ``key``, or ``None``.

        Raises:
            InvalidKeyCountError: If ``entity_type`` does not have exactly one
                key column.
        """
        return self._get(entity_type, key, ticket).run()

    async def get_async(
        self, entity_type: type[T], key: Any, ticket: Ticket | None = None
    ) -> T | None:
        return await self._get(entity_type, key, ticket).run_async()

    def get_as_string(
        self, entity_type: type, key: Any, ticket: Ticket | None = None
    ) -> CompiledSQL:
        return self._get(entity_type, key, ticket).compiled

    def _query(
        self, entity_type: type, triples: list[PredicateTriple], ticket: Ticket | None
    ) -> PreparedStatement:
        compiled = self.assembler.statements.select_where(entity_type, triples, ticket)
        return self.prepare_many(compiled, entity_type, ticket)

    def query(
        self,
        entity_type: type[T],
        predicate: Callable[[Any], Any],
        ticket: Ticket | None = None,
    ) -> list[T]:
        """Return the entities matching ``predicate``."""
        return self._query(entity_type, self._translate(entity_type, predicate), ticket).run()

    async def query_async(
        self,
        entity_type: type[T],
        predicate: Callable[[Any], Any],
        ticket: Ticket | None = None,
    ) -> list[T]:
        triples = self._translate(entity_type, predicate)
        return await self._query(entity_type, triples, ticket).run_async()

    def query_as_string(
        self,
        entity_type: type,
        predicate: Callable[[Any], Any],
        ticket: Ticket | None = None,
    ) -> CompiledSQL:
        return self._query(entity_type, self._translate(entity_type, predicate), ticket).compiled

    def query_by(self, entity_type: type[T], **values: Any) -> list[T]:
        """Return the entities whose members equal ``values``.

        ``session.query_by(Product, CategoryId=1, Discontinued=False)``
        """
        return self._query(entity_type, self._equalities(entity_type, values), None).run()

    async def query_by_async(self, entity_type: type[T], **values: Any) -> list[T]:
        triples = self._equalities(entity_type, values)
        return await self._query(entity_type, triples, None).run_async()

    def query_by_as_string(self, entity_type: type, **values: Any) -> CompiledSQL:
        return self._query(entity_type, self._equalities(entity_type, values), None).compiled

    # ------------------------------------------------------------------
    # INSERT
    # ------------------------------------------------------------------

    def _insert(self, entity: Any, return_key: bool, ticket: Ticket | None) -> PreparedStatement:
        compiled = self.assembler.statements.insert(entity, return_key=return_key, ticket=ticket)
        if return_key:
            return PreparedStatement(self, compiled, OperationKind.INSERT, _SCALAR, ticket=ticket)
        return self.prepare_execute(compiled, OperationKind.INSERT, _succeeded, ticket)

    def insert(self, entity: Any, return_key: bool = False, ticket: Ticket | None = None) -> Any:
        """Insert ``entity``.

        Args:
            entity: The entity to insert.  A generated key is left out of
                the column list.
            return_key: Read back and return the generated key value.
            ticket: Optional cache key for the statement text.

        Returns:
            The generated key when ``return_key`` is set, otherwise whether a
            row was inserted.
        """
        return self._insert(entity, return_key, ticket).run()

    async def insert_async(
        self, entity: Any, return_key: bool = False, ticket: Ticket | None = None
    ) -> Any:
        return await self._insert(entity, return_key, ticket).run_async()

    def insert_as_string(
        self, entity: Any, return_key: bool = False, ticket: Ticket | None = None
    ) -> CompiledSQL:
        return self._insert(entity, return_key, ticket).compiled

    def _insert_union(self, entities: Iterable[Any], ticket: Ticket | None) -> PreparedStatement:
        compiled = self.assembler.statements.insert_union(entities, ticket)
        return self.prepare_execute(compiled, OperationKind.INSERT, ticket=ticket)

    def insert_union(self, entities: Iterable[Any], ticket: Ticket | None = None) -> int:
        """Insert several entities of one type in a single statement.

        Returns:
            The number of rows inserted, as reported by the executor.
        """
        return self._insert_union(entities, ticket).run()

    async def insert_union_async(
        self, entities: Iterable[Any], ticket: Ticket | None = None
    ) -> int:
        return await self._insert_union(entities, ticket).run_async()

    def insert_union_as_string(
        self, entities: Iterable[Any], ticket: Ticket | None = None
    ) -> CompiledSQL:
        return self._insert_union(entities, ticket).compiled

    # ------------------------------------------------------------------
    # UPDATE
    # ------------------------------------------------------------------

    def _update(self, entity: Any, ticket: Ticket | None) -> PreparedStatement:
        compiled = self.assembler.statements.update_entity(entity, ticket)
        return self.prepare_execute(compiled, OperationKind.UPDATE, _exactly_one, ticket)

    def update(self, entity: Any, ticket: Ticket | None = None) -> bool:
        """Update every non-key column of ``entity``, matched by its key(s).

        Returns:
            ``True`` when exactly one row was updated.
        """
        return self._update(entity, ticket).run()

    async def update_async(self, entity: Any, ticket: Ticket | None = None) -> bool:
        return await self._update(entity, ticket).run_async()

    def update_as_string(self, entity: Any, ticket: Ticket | None = None) -> CompiledSQL:
        return self._update(entity, ticket).compiled

    # ------------------------------------------------------------------
    # DELETE
    # ------------------------------------------------------------------

    def _delete(self, entity_type: type, keys: tuple[Any, ...]) -> PreparedStatement:
        compiled = self.assembler.statements.delete_by_keys(entity_type, keys)
        return self.prepare_execute(compiled, OperationKind.DELETE, _succeeded)

    def delete(self, entity_type: type, *keys: Any) -> bool:
        """Delete the row identified by ``keys`` (one value per key column).

        Raises:
            InvalidKeyCountError: If the number of values does not match the
                entity's key columns.
        """
        return self._delete(entity_type, keys).run()

    async def delete_async(self, entity_type: type, *keys: Any) -> bool:
        return await self._delete(entity_type, keys).run_async()

    def delete_as_string(self, entity_type: type, *keys: Any) -> CompiledSQL:
        return self._delete(entity_type, keys).compiled

    def _delete_where(
        self, entity_type: type, triples: list[PredicateTriple], ticket: Ticket | None
    ) -> PreparedStatement:
        compiled = self.assembler.statements.delete_where(entity_type, triples, ticket)
        return self.prepare_execute(compiled, OperationKind.DELETE, ticket=ticket)

    def delete_where(
        self,
        entity_type: type,
        predicate: Callable[[Any], Any],
        ticket: Ticket | None = None,
    ) -> int:
        """Delete the rows matching ``predicate`` and return how many."""
        triples = self._translate(entity_type, predicate)
        return self._delete_where(entity_type, triples, ticket).run()

    async def delete_where_async(
        self,
        entity_type: type,
        predicate: Callable[[Any], Any],
        ticket: Ticket | None = None,
    ) -> int:
        triples = self._translate(entity_type, predicate)
        return await self._delete_where(entity_type, triples, ticket).run_async()

    def delete_where_as_string(
        self,
        entity_type: type,
        predicate: Callable[[Any], Any],
        ticket: Ticket | None = None,
    ) -> CompiledSQL:
        triples = self._translate(entity_type, predicate)
        return self._delete_where(entity_type, triples, ticket).compiled

    def delete_by(self, entity_type: type, **values: Any) -> int:
        """Delete the rows whose members equal ``values`` and return how many."""
        return self._delete_where(entity_type, self._equalities(entity_type, values), None).run()

    async def delete_by_async(self, entity_type: type, **values: Any) -> int:
        triples = self._equalities(entity_type, values)
        return await self._delete_where(entity_type, triples, None).run_async()

    def delete_by_as_string(self, entity_type: type, **values: Any) -> CompiledSQL:
        triples = self._equalities(entity_type, values)
        return self._delete_where(entity_type, triples, None).compiled

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _translate(
        self, entity_type: type, predicate: Callable[[Any], Any]
    ) -> list[PredicateTriple]:
        return predicates.translate(self.resolver.resolve(entity_type), predicate)

    def _equalities(self, entity_type: type, values: dict[str, Any]) -> list[PredicateTriple]:
        if not values:
            raise ArgumentError("At least one member value is required.", argument="values")
        metadata = self.resolver.resolve(entity_type)
        pairs = []
        for member, value in values.items():
            column = metadata.column_for(member)
            if column is None:
                raise ArgumentError(
                    f"'{member}' is not a mapped member of {metadata.entity_name}.",
                    argument=member,
                )
            if value is None:
                raise ArgumentError(f"'{member}' cannot be None.", argument=member)
            pairs.append((column.name, value))
        return equality_triples(pairs)
