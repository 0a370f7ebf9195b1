"""Clause chain → parameterized SQL assembly.

``SqlAssembler`` is the top-level orchestrator for fluent chains.  It walks
a chain once to find the pieces a statement form needs, renders the nodes
through the clause-level sub-builders and wraps the text around them.  All
dialect-specific behaviour is delegated to the injected ``SQLCompiler``.

Sub-builder hierarchy
---------------------
SqlAssembler
  ├── ChainRenderer          (clause_builders.py)
  │     ├── PagingClauseBuilder
  │     ├── FromClauseBuilder
  │     ├── ConditionClauseBuilder ── PredicateBuilder (expression_builder.py)
  │     ├── GroupingClauseBuilder
  │     └── SetClauseBuilder ──────── AssignmentBuilder (expression_builder.py)
  └── StatementBuilder       (statements.py, whole-statement forms)

Statement forms
---------------
SELECT  ``SELECT [DISTINCT] [TOP n] <columns> FROM ... ;``
UPDATE  ``UPDATE <table> SET ... WHERE ...;``
DELETE  ``DELETE FROM ... WHERE ...;``
INSERT  delegated to :meth:`StatementBuilder.insert` for a Values chain.

Caching
-------
Fluent statements vary with the caller's chain, so their text is cached only
under an explicit :class:`Ticket`.  Parameters are always recomputed.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from chainql.compile.base import CompiledSQL
from chainql.compile.clause_builders import ChainRenderer
from chainql.compile.context import CompilationContext
from chainql.compile.expression_builder import ParameterSet
from chainql.compile.statements import StatementBuilder
from chainql.errors import ArgumentError, CompilationError
from chainql.events import OperationKind
from chainql.query.nodes import (
    ClauseArena,
    ClauseNode,
    ConditionNode,
    DistinctNode,
    FromNode,
    GroupByNode,
    JoinNode,
    SetNode,
    TopNode,
    ValuesNode,
)

logger = structlog.get_logger(__name__)

#: Explicit column list accepted by ``select``: raw text or column names.
Columns = str | Sequence[str]


@dataclass(frozen=True)
class Ticket:
    """Opaque caller-supplied cache key for an assembled statement."""

    id: str

    def __post_init__(self) -> None:
        if not self.id or not str(self.id).strip():
            raise ArgumentError("Ticket id cannot be blank.", argument="id")


# ---------------------------------------------------------------------------
# Statement cache
# ---------------------------------------------------------------------------


class StatementCache:
    """Insert-if-absent caches of statement text.

    ``shape`` entries are keyed by ``(operation, entity type, variant)`` and
    hold whole-statement forms that do not depend on caller values.
    ``ticket`` entries are keyed by :attr:`Ticket.id`.
    """

    def __init__(self) -> None:
        self._shapes: dict[tuple, str] = {}
        self._tickets: dict[str, str] = {}

    def get_or_build(
        self,
        build: Callable[[], str],
        shape: tuple | None = None,
        ticket: Ticket | None = None,
    ) -> str:
        """Return cached text for ``ticket`` (or ``shape``), building it once."""
        if ticket is not None:
            return self._lookup(self._tickets, ticket.id, build)
        if shape is not None:
            return self._lookup(self._shapes, shape, build)
        return build()

    @staticmethod
    def _lookup(cache: dict, key: object, build: Callable[[], str]) -> str:
        cached = cache.get(key)
        if cached is not None:
            logger.debug("statement_cache_hit", key=str(key))
            return cached
        return cache.setdefault(key, build())

    def __len__(self) -> int:
        return len(self._shapes) + len(self._tickets)

    def clear(self) -> None:
        self._shapes.clear()
        self._tickets.clear()


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class SqlAssembler:
    """Assembles fluent clause chains into :class:`CompiledSQL`.

    Args:
        ctx: Compilation context (compiler, resolver, config).
        cache: Statement cache; a fresh one is created when omitted.
    """

    def __init__(self, ctx: CompilationContext, cache: StatementCache | None = None) -> None:
        self._ctx = ctx
        self._cache = cache if cache is not None else StatementCache()
        self.statements = StatementBuilder(ctx, self._cache)

    @property
    def cache(self) -> StatementCache:
        return self._cache

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def assemble(
        self,
        kind: OperationKind,
        arena: ClauseArena,
        tail: int,
        entity_type: type | None = None,
        columns: Columns | None = None,
        ticket: Ticket | None = None,
    ) -> CompiledSQL:
        """Assemble the chain ending at ``tail`` into a statement.

        Args:
            kind: The statement form to produce.
            arena: Arena holding the chain.
            tail: Index of the chain's last node.
            entity_type: SELECT: the type whose columns are selected
                (defaults to the FROM type).  UPDATE: the target type
                (defaults to the type given to ``set``).
            columns: SELECT only; explicit column list overriding the
                entity's columns.
            ticket: Optional cache key for the statement text.

        Returns:
            :class:`~chainql.compile.base.CompiledSQL` with ``sql`` text and
            ``params`` in emission order.

        Raises:
            CompilationError: If the chain lacks a clause the form needs.
        """
        nodes = arena.path(tail)
        if kind is OperationKind.INSERT:
            return self._insert(nodes, entity_type, ticket)

        params = ParameterSet()
        renderer = ChainRenderer(self._ctx, params)
        if kind is OperationKind.SELECT:
            sql = self._select(nodes, renderer, entity_type, columns)
        elif kind is OperationKind.UPDATE:
            sql = self._update(nodes, renderer, entity_type)
        else:
            sql = f"DELETE {renderer.render_all(nodes)};"

        sql = self._cache.get_or_build(lambda: sql, ticket=ticket)
        logger.debug("statement_assembled", kind=kind.value, sql=sql)
        return CompiledSQL(sql=sql, params=params.params, dialect=self._ctx.compiler.dialect_name)

    def render(self, arena: ClauseArena, tail: int) -> CompiledSQL:
        """Render the chain ending at ``tail`` as bare clause text (no ``;``)."""
        params = ParameterSet()
        sql = ChainRenderer(self._ctx, params).render_all(arena.path(tail))
        return CompiledSQL(sql=sql, params=params.params, dialect=self._ctx.compiler.dialect_name)

    # ------------------------------------------------------------------
    # Statement forms
    # ------------------------------------------------------------------

    def _select(
        self,
        nodes: list[ClauseNode],
        renderer: ChainRenderer,
        entity_type: type | None,
        columns: Columns | None,
    ) -> str:
        from_node = next((n for n in nodes if isinstance(n, FromNode)), None)
        if from_node is None:
            raise CompilationError("SELECT needs a FROM clause.", clause="FROM")
        selected = entity_type or from_node.entity_type

        if columns is not None:
            column_sql = columns if isinstance(columns, str) else ", ".join(columns)
            if not column_sql.strip():
                raise ArgumentError("Column list cannot be blank.", argument="columns")
        elif any(isinstance(n, GroupByNode) for n in nodes):
            raise ArgumentError("A column list is required after GROUP BY.", argument="columns")
        else:
            column_sql = self._qualified_columns(nodes, selected)

        prefix = [renderer.render(n) for n in nodes if isinstance(n, (DistinctNode, TopNode))]
        body = renderer.render_all(
            [n for n in nodes if not isinstance(n, (DistinctNode, TopNode))]
        )
        return " ".join(["SELECT", *prefix, column_sql, body]) + ";"

    def _qualified_columns(self, nodes: list[ClauseNode], selected: type) -> str:
        metadata = self._ctx.resolver.resolve(selected)
        has_join = any(isinstance(n, JoinNode) for n in nodes)
        # The nearest alias to the tail wins when a type is introduced twice.
        alias = next(
            (
                n.alias
                for n in reversed(nodes)
                if isinstance(n, (FromNode, JoinNode)) and n.entity_type is selected and n.alias
            ),
            None,
        )
        qualifier = alias or (metadata.table_name if has_join else None)
        if qualifier is None:
            return ", ".join(metadata.column_names)
        return ", ".join(f"{qualifier}.{name}" for name in metadata.column_names)

    def _update(
        self, nodes: list[ClauseNode], renderer: ChainRenderer, entity_type: type | None
    ) -> str:
        set_node = next((n for n in nodes if isinstance(n, SetNode)), None)
        if set_node is None:
            raise CompilationError("UPDATE needs a SET clause.", clause="SET")
        target = entity_type or set_node.entity_type
        if target is None:
            raise ArgumentError(
                "UPDATE needs an entity type; pass it to update() or set().",
                argument="entity_type",
            )
        table = self._ctx.resolver.resolve(target).table_name
        # SET renders first so WHERE parameters see its names.
        assignments = renderer.render(set_node)
        where = [renderer.render(n) for n in nodes if isinstance(n, ConditionNode)]
        return " ".join(["UPDATE", table, assignments, *where]) + ";"

    def _insert(
        self, nodes: list[ClauseNode], entity_type: type | None, ticket: Ticket | None
    ) -> CompiledSQL:
        values = next((n for n in nodes if isinstance(n, ValuesNode)), None)
        if values is None:
            raise CompilationError("INSERT needs a VALUES clause.", clause="VALUES")
        return self.statements.insert(values.entity, entity_type=entity_type, ticket=ticket)
