"""Fluent stage classes: the legal transitions of a clause chain.

Each stage wraps the index of the chain's current tail node.  A stage only
exposes the calls that are legal after it, so an illegal sequence such as
``session.from_(Product).on(...)`` fails at the call site with
``AttributeError`` and is flagged by type checkers.

========================  ======================================================
Stage                     Accepts
========================  ======================================================
``DistinctStage``         ``top``, ``from_``
``TopStage``              ``from_``
``FromStage``             joins, ``where``, ``group_by``, ``order_by``, ``limit``, ``select``
``JoinStage``             ``on``
``JoinOnStage``           joins, ``where``, ``group_by``, ``order_by``, ``limit``, ``select``
``SetStage``              ``set``, ``where``
``ConditionStage``        ``and_where``, ``or_where``, ``not_where``, ``group_by``,
                          ``order_by``, ``limit``, ``select``, ``update``, ``delete``
``PartialCondition``      ``equal_to``, ``not_equal_to``, ``greater_than``, ...
``GroupByStage``          ``having``, ``order_by``, ``select(columns)``
``HavingStage``           ``order_by``, ``select(columns)``
``OrderByStage``          ``order_by``, ``limit``, ``offset``, ``select``
``GroupedOrderByStage``   ``order_by``, ``limit``, ``offset``, ``select(columns)``
``LimitStage``            ``offset``, ``select``
``OffsetStage``           ``fetch_first``, ``fetch_next``, ``select``
``FetchStage``            ``select``
``ValuesStage``           ``insert``
========================  ======================================================

Arguments are validated before a node is allocated, so a call that raises
leaves the chain unchanged.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from chainql.compile.base import CompiledSQL
from chainql.errors import ArgumentError, CompilationError
from chainql.events import OperationKind
from chainql.query import predicate as predicates
from chainql.query.nodes import (
    ClauseArena,
    ClauseNode,
    ComparisonOperator,
    ConditionNode,
    FetchKind,
    FetchNode,
    FromNode,
    GroupByNode,
    HavingNode,
    JoinKind,
    JoinNode,
    JoinOnNode,
    LimitNode,
    OffsetNode,
    OrderByNode,
    PredicateTriple,
    Separator,
    SetNode,
    SortOrder,
    TopNode,
)

if TYPE_CHECKING:
    from chainql.compile.builder import Columns, Ticket
    from chainql.session import PreparedStatement, Session

S = TypeVar("S", bound="_Stage")
N = TypeVar("N", bound=ClauseNode)
O = TypeVar("O", bound="_Orderable")

_UNSET: Any = object()


# ---------------------------------------------------------------------------
# Argument checks
# ---------------------------------------------------------------------------


def _require_text(value: str | None, argument: str) -> str:
    if value is None or not str(value).strip():
        raise ArgumentError(f"'{argument}' cannot be blank.", argument=argument)
    return value


def _require_value(value: Any, argument: str = "value") -> Any:
    if value is None:
        raise ArgumentError(
            f"'{argument}' cannot be None; comparisons with NULL are not supported.",
            argument=argument,
        )
    return value


def _require_count(count: int, argument: str) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise ArgumentError(
            f"'{argument}' must be a non-negative integer, got {count!r}.", argument=argument
        )
    return count


def _node_of(arena: ClauseArena, index: int, node_type: type[N]) -> N:
    node = arena[index]
    if not isinstance(node, node_type):
        raise CompilationError(
            f"Expected {node_type.__name__} at node {index}, found {type(node).__name__}."
        )
    return node


# ---------------------------------------------------------------------------
# Base stage and transition mixins
# ---------------------------------------------------------------------------


class _Stage:
    """A position in a clause chain."""

    def __init__(self, session: Session, arena: ClauseArena, index: int) -> None:
        self._session = session
        self._arena = arena
        self._index = index

    def _next(self, stage_cls: type[S], node: ClauseNode) -> S:
        return stage_cls(self._session, self._arena, self._arena.append(node))

    def _column(self, column: str, argument: str = "column") -> str:
        return self._session.resolver.column_name(_require_text(column, argument))

    def _source_type(self) -> type | None:
        """Entity type that introduced the chain (FROM or SET)."""
        for node in self._arena.walk_back(self._index):
            if isinstance(node, FromNode):
                return node.entity_type
            if isinstance(node, SetNode) and node.entity_type is not None:
                return node.entity_type
        return None

    def _translate(
        self, predicate: Callable[[Any], Any], entity_type: type | None
    ) -> list[PredicateTriple]:
        target = entity_type or self._source_type()
        if target is None:
            raise ArgumentError(
                "A predicate needs an entity type; pass entity_type=...",
                argument="entity_type",
            )
        return predicates.translate(self._session.resolver.resolve(target), predicate)

    def render(self) -> CompiledSQL:
        """Render the chain so far as clause text, without a terminal form."""
        return self._session.assembler.render(self._arena, self._index)

    def __str__(self) -> str:
        return self.render().sql

    def __repr__(self) -> str:
        return f"<{type(self).__name__} at node {self._index}>"


class _Joinable(_Stage):
    def _join(self, entity_type: type, alias: str | None, kind: JoinKind) -> JoinStage:
        self._session.resolver.resolve(entity_type)
        return self._next(JoinStage, JoinNode(self._index, entity_type, alias, kind))

    def inner_join(self, entity_type: type, alias: str | None = None) -> JoinStage:
        return self._join(entity_type, alias, JoinKind.INNER)

    def left_join(self, entity_type: type, alias: str | None = None) -> JoinStage:
        return self._join(entity_type, alias, JoinKind.LEFT)

    def right_join(self, entity_type: type, alias: str | None = None) -> JoinStage:
        return self._join(entity_type, alias, JoinKind.RIGHT)


class _Filterable(_Stage):
    def where(
        self,
        column: str | Callable[[Any], Any],
        value: Any = _UNSET,
        entity_type: type | None = None,
    ) -> Any:
        """Start the WHERE clause.

        Three forms are accepted::

            .where("CategoryId", 1)                 # column = value
            .where("UnitPrice").greater_than(10)    # two-call form
            .where(lambda p: p.CategoryId == 1)     # translated predicate

        Args:
            column: Column name, or a predicate over the chain's entity type.
            value: Value compared with ``=``; omit it for the two-call form.
            entity_type: Predicate form only; the type the predicate ranges
                over when it differs from the FROM / SET type.

        Returns:
            A :class:`ConditionStage`, or a :class:`PartialCondition` when
            ``value`` is omitted.

        Raises:
            ArgumentError: If the column is blank or the value is ``None``.
            UnsupportedExpressionError: If the predicate cannot be translated.
        """
        if callable(column):
            triples = self._translate(column, entity_type)
            node = ConditionNode(self._index)
            node.extend(triples)
            return self._next(ConditionStage, node)
        name = self._column(column)
        if value is _UNSET:
            return PartialCondition(self._session, self._arena, self._index, name)
        node = ConditionNode(self._index)
        node.add(name, ComparisonOperator.EQUAL_TO, _require_value(value))
        return self._next(ConditionStage, node)


class _Groupable(_Stage):
    def group_by(self, *columns: str) -> GroupByStage:
        if not columns:
            raise ArgumentError("GROUP BY needs at least one column.", argument="columns")
        names = [self._column(c, "columns") for c in columns]
        return self._next(GroupByStage, GroupByNode(self._index, names))


class _Orderable(_Stage):
    def _sort_key(
        self, column: str, order: SortOrder | str | None
    ) -> tuple[str, SortOrder | None]:
        name = self._column(column)
        return name, SortOrder(order) if order is not None else None

    def order_by(self, column: str, order: SortOrder | str | None = None) -> OrderByStage:
        """Sort by ``column``; ``ASC`` is only rendered when given explicitly."""
        key = self._sort_key(column, order)
        return self._next(OrderByStage, OrderByNode(self._index, [key]))


class _GroupedOrderable(_Orderable):
    def order_by(  # type: ignore[override]
        self, column: str, order: SortOrder | str | None = None
    ) -> GroupedOrderByStage:
        """Sort a grouped chain; the SELECT still needs a column list."""
        key = self._sort_key(column, order)
        return self._next(GroupedOrderByStage, OrderByNode(self._index, [key]))


class _SortKeys(_Orderable):
    def order_by(  # type: ignore[override]
        self: O, column: str, order: SortOrder | str | None = None
    ) -> O:
        """Add a sort key to the same ORDER BY clause."""
        node = _node_of(self._arena, self._index, OrderByNode)
        node.items.append(self._sort_key(column, order))
        return self


class _Limitable(_Stage):
    def limit(self, count: int) -> LimitStage:
        return self._next(LimitStage, LimitNode(self._index, _require_count(count, "count")))


class _Offsettable(_Stage):
    def offset(self, count: int) -> OffsetStage:
        return self._next(OffsetStage, OffsetNode(self._index, _require_count(count, "count")))


class _EntitySelect(_Stage):
    """Terminal SELECT returning entities, or rows for explicit columns."""

    def _prepare_select(
        self, entity_type: type | None, columns: Columns | None, ticket: Ticket | None
    ) -> PreparedStatement:
        selected = entity_type or self._source_type()
        compiled = self._session.assembler.assemble(
            OperationKind.SELECT, self._arena, self._index, selected, columns, ticket
        )
        return self._session.prepare_many(
            compiled, None if columns is not None else selected, ticket
        )

    def select(
        self,
        entity_type: type | None = None,
        columns: Columns | None = None,
        ticket: Ticket | None = None,
    ) -> list[Any]:
        """Execute the SELECT and return the rows.

        Args:
            entity_type: Type whose columns are selected and materialized;
                defaults to the FROM type.  With joins, the columns are
                qualified by that type's alias (or table name).
            columns: Explicit column list; rows are then returned as dicts.
            ticket: Optional cache key for the statement text.
        """
        return self._prepare_select(entity_type, columns, ticket).run()

    async def select_async(
        self,
        entity_type: type | None = None,
        columns: Columns | None = None,
        ticket: Ticket | None = None,
    ) -> list[Any]:
        return await self._prepare_select(entity_type, columns, ticket).run_async()

    def select_as_string(
        self,
        entity_type: type | None = None,
        columns: Columns | None = None,
        ticket: Ticket | None = None,
    ) -> CompiledSQL:
        return self._prepare_select(entity_type, columns, ticket).compiled


class _ColumnSelect(_EntitySelect):
    """Terminal SELECT for grouped chains, which need an explicit column list."""

    def select(self, columns: Columns, ticket: Ticket | None = None) -> list[Any]:  # type: ignore[override]
        return super().select(columns=_require_text_or_list(columns), ticket=ticket)

    async def select_async(  # type: ignore[override]
        self, columns: Columns, ticket: Ticket | None = None
    ) -> list[Any]:
        return await super().select_async(columns=_require_text_or_list(columns), ticket=ticket)

    def select_as_string(  # type: ignore[override]
        self, columns: Columns, ticket: Ticket | None = None
    ) -> CompiledSQL:
        return super().select_as_string(columns=_require_text_or_list(columns), ticket=ticket)


def _require_text_or_list(columns: Columns | None) -> Columns:
    if columns is None or (isinstance(columns, str) and not columns.strip()) or not columns:
        raise ArgumentError("A column list is required after GROUP BY.", argument="columns")
    return columns


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


class DistinctStage(_Stage):
    def top(self, count: int) -> TopStage:
        return self._next(TopStage, TopNode(self._index, _require_count(count, "count")))

    def from_(self, entity_type: type, alias: str | None = None) -> FromStage:
        return _from(self, entity_type, alias)


class TopStage(_Stage):
    def from_(self, entity_type: type, alias: str | None = None) -> FromStage:
        return _from(self, entity_type, alias)


def _from(stage: _Stage, entity_type: type, alias: str | None) -> FromStage:
    stage._session.resolver.resolve(entity_type)
    return stage._next(FromStage, FromNode(stage._index, entity_type, alias))


class FromStage(_Joinable, _Filterable, _Groupable, _Orderable, _Limitable, _EntitySelect):
    pass


class JoinStage(_Stage):
    def on(self, left: str, right: str) -> JoinOnStage:
        """Join condition ``left = right`` (column references, not values)."""
        node = JoinOnNode(self._index, _require_text(left, "left"), _require_text(right, "right"))
        return self._next(JoinOnStage, node)


class JoinOnStage(_Joinable, _Filterable, _Groupable, _Orderable, _Limitable, _EntitySelect):
    pass


class SetStage(_Filterable):
    def set(self, column: str | type, value: Any) -> SetStage:
        """Add an assignment to the same SET clause.

        ``set("Col", value)`` assigns one column (``None`` assigns NULL);
        ``set(Entity, lambda e: (e.A == 1) & (e.B == 2))`` assigns several.
        """
        node = _node_of(self._arena, self._index, SetNode)
        apply_assignments(self._session, node, column, value)
        return self


def apply_assignments(session: Session, node: SetNode, column: str | type, value: Any) -> None:
    """Validate and add ``set`` arguments to ``node``."""
    if isinstance(column, type):
        if not callable(value):
            raise ArgumentError("set(Entity, ...) needs a predicate.", argument="value")
        assignments = predicates.assignments(session.resolver.resolve(column), value)
        entity_type: type | None = column
    else:
        name = session.resolver.column_name(_require_text(column, "column"))
        assignments = {name: value}
        entity_type = None
    duplicates = [c for c in assignments if c in node.assignments]
    if duplicates:
        raise ArgumentError(f"Column(s) already set: {duplicates}.", argument="column")
    node.assignments.update(assignments)
    if node.entity_type is None:
        node.entity_type = entity_type


class PartialCondition:
    """A WHERE column waiting for its comparison.

    The separator of an ``and_where``/``or_where``/``not_where`` call is only
    recorded once the comparison completes.
    """

    def __init__(
        self,
        session: Session,
        arena: ClauseArena,
        anchor: int,
        column: str,
        separator: Separator | None = None,
    ) -> None:
        self._session = session
        self._arena = arena
        self._anchor = anchor
        self._column = column
        self._separator = separator

    def _complete(self, operator: ComparisonOperator, value: Any) -> ConditionStage:
        _require_value(value)
        if self._separator is None:
            node = ConditionNode(self._anchor)
            node.add(self._column, operator, value)
            index = self._arena.append(node)
        else:
            index = self._anchor
            node = _node_of(self._arena, index, ConditionNode)
            node.add_separator(self._separator)
            node.add(self._column, operator, value)
        return ConditionStage(self._session, self._arena, index)

    def equal_to(self, value: Any) -> ConditionStage:
        return self._complete(ComparisonOperator.EQUAL_TO, value)

    def not_equal_to(self, value: Any) -> ConditionStage:
        return self._complete(ComparisonOperator.NOT_EQUAL_TO, value)

    def greater_than(self, value: Any) -> ConditionStage:
        return self._complete(ComparisonOperator.GREATER_THAN, value)

    def greater_than_or_equal_to(self, value: Any) -> ConditionStage:
        return self._complete(ComparisonOperator.GREATER_THAN_OR_EQUAL_TO, value)

    def less_than(self, value: Any) -> ConditionStage:
        return self._complete(ComparisonOperator.LESS_THAN, value)

    def less_than_or_equal_to(self, value: Any) -> ConditionStage:
        return self._complete(ComparisonOperator.LESS_THAN_OR_EQUAL_TO, value)

    def like(self, pattern: str) -> ConditionStage:
        """``column LIKE @column`` with ``pattern`` bound as given."""
        return self._complete(ComparisonOperator.LIKE, _require_text(pattern, "pattern"))


class ConditionStage(_Groupable, _Orderable, _Limitable, _EntitySelect):
    def _node(self) -> ConditionNode:
        return _node_of(self._arena, self._index, ConditionNode)

    def _append(
        self,
        separator: Separator,
        column: str | Callable[[Any], Any],
        value: Any,
        entity_type: type | None,
    ) -> Any:
        if callable(column):
            triples = self._translate(column, entity_type)
            node = self._node()
            node.add_separator(separator)
            node.extend(triples)
            return self
        name = self._column(column)
        if value is _UNSET:
            return PartialCondition(self._session, self._arena, self._index, name, separator)
        _require_value(value)
        node = self._node()
        node.add_separator(separator)
        node.add(name, ComparisonOperator.EQUAL_TO, value)
        return self

    def and_where(
        self, column: str | Callable[[Any], Any], value: Any = _UNSET,
        entity_type: type | None = None,
    ) -> Any:
        """Append ``AND <condition>``; accepts the same forms as ``where``."""
        return self._append(Separator.AND, column, value, entity_type)

    def or_where(
        self, column: str | Callable[[Any], Any], value: Any = _UNSET,
        entity_type: type | None = None,
    ) -> Any:
        """Append ``OR <condition>``; accepts the same forms as ``where``."""
        return self._append(Separator.OR, column, value, entity_type)

    def not_where(
        self, column: str | Callable[[Any], Any], value: Any = _UNSET,
        entity_type: type | None = None,
    ) -> Any:
        """Append ``AND NOT <condition>``; accepts the same forms as ``where``."""
        return self._append(Separator.AND_NOT, column, value, entity_type)

    # -- UPDATE / DELETE terminals ------------------------------------------

    def _prepare(
        self, kind: OperationKind, entity_type: type | None, ticket: Ticket | None
    ) -> PreparedStatement:
        compiled = self._session.assembler.assemble(
            kind, self._arena, self._index, entity_type, None, ticket
        )
        return self._session.prepare_execute(compiled, kind, ticket=ticket)

    def update(self, entity_type: type | None = None, ticket: Ticket | None = None) -> int:
        """Execute ``UPDATE <table> SET ... WHERE ...`` and return rows affected.

        ``entity_type`` defaults to the type passed to ``set(Entity, ...)``.
        """
        return self._prepare(OperationKind.UPDATE, entity_type, ticket).run()

    async def update_async(
        self, entity_type: type | None = None, ticket: Ticket | None = None
    ) -> int:
        return await self._prepare(OperationKind.UPDATE, entity_type, ticket).run_async()

    def update_as_string(
        self, entity_type: type | None = None, ticket: Ticket | None = None
    ) -> CompiledSQL:
        return self._prepare(OperationKind.UPDATE, entity_type, ticket).compiled

    def delete(self, ticket: Ticket | None = None) -> int:
        """Execute ``DELETE FROM ... WHERE ...`` and return rows affected."""
        return self._prepare(OperationKind.DELETE, None, ticket).run()

    async def delete_async(self, ticket: Ticket | None = None) -> int:
        return await self._prepare(OperationKind.DELETE, None, ticket).run_async()

    def delete_as_string(self, ticket: Ticket | None = None) -> CompiledSQL:
        return self._prepare(OperationKind.DELETE, None, ticket).compiled


class GroupByStage(_GroupedOrderable, _ColumnSelect):
    def having(self, text: str) -> HavingStage:
        """Raw ``HAVING`` text, e.g. ``"SUM(UnitPrice) > 10"``."""
        return self._next(HavingStage, HavingNode(self._index, _require_text(text, "text")))


class HavingStage(_GroupedOrderable, _ColumnSelect):
    pass


class OrderByStage(_SortKeys, _Limitable, _Offsettable, _EntitySelect):
    pass


class GroupedOrderByStage(_SortKeys, _Limitable, _Offsettable, _ColumnSelect):
    pass


class LimitStage(_Offsettable, _EntitySelect):
    pass


class OffsetStage(_EntitySelect):
    def fetch_first(self, count: int) -> FetchStage:
        node = FetchNode(self._index, _require_count(count, "count"), FetchKind.FIRST)
        return self._next(FetchStage, node)

    def fetch_next(self, count: int) -> FetchStage:
        node = FetchNode(self._index, _require_count(count, "count"), FetchKind.NEXT)
        return self._next(FetchStage, node)


class FetchStage(_EntitySelect):
    pass


class ValuesStage(_Stage):
    """An entity waiting to be inserted."""

    def _prepare(self, entity_type: type | None, ticket: Ticket | None) -> PreparedStatement:
        compiled = self._session.assembler.assemble(
            OperationKind.INSERT, self._arena, self._index, entity_type, None, ticket
        )
        return self._session.prepare_execute(compiled, OperationKind.INSERT, ticket=ticket)

    def insert(self, entity_type: type | None = None, ticket: Ticket | None = None) -> int:
        """Execute the INSERT and return rows affected."""
        return self._prepare(entity_type, ticket).run()

    async def insert_async(
        self, entity_type: type | None = None, ticket: Ticket | None = None
    ) -> int:
        return await self._prepare(entity_type, ticket).run_async()

    def insert_as_string(
        self, entity_type: type | None = None, ticket: Ticket | None = None
    ) -> CompiledSQL:
        return self._prepare(entity_type, ticket).compiled

    def render(self) -> CompiledSQL:
        return self.insert_as_string()


def new_chain(session: Session, stage_cls: type[S], node: ClauseNode) -> S:
    """Start a new chain whose root is ``node``."""
    arena = ClauseArena()
    return stage_cls(session, arena, arena.append(node))

