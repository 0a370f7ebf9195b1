"""Clause-level SQL builders.

Each class renders one family of clause nodes to its fixed textual form.
:class:`ChainRenderer` dispatches the nodes of a chain, root to tail, to the
matching builder.  WHERE builders share the statement's
:class:`~chainql.compile.expression_builder.ParameterSet`, so parameter
names are unique across the whole statement.

Classes
-------
PagingClauseBuilder   : ``DISTINCT``, ``TOP n``, ``LIMIT n``, ``OFFSET n``, ``FETCH ...``
FromClauseBuilder     : ``FROM t [alias]``, ``... JOIN t [alias]``, ``ON a = b``
ConditionClauseBuilder: ``WHERE ...``
GroupingClauseBuilder : ``GROUP BY ...``, ``HAVING ...``, ``ORDER BY ...``
SetClauseBuilder      : ``SET a = @a, ...`` (rendered by the UPDATE assembler)
"""
from __future__ import annotations

from chainql.compile.context import CompilationContext
from chainql.compile.expression_builder import (
    AssignmentBuilder,
    ParameterSet,
    PredicateBuilder,
)
from chainql.errors import CompilationError
from chainql.query.nodes import (
    ClauseNode,
    ConditionNode,
    DistinctNode,
    FetchNode,
    FromNode,
    GroupByNode,
    HavingNode,
    JoinNode,
    JoinOnNode,
    LimitNode,
    OffsetNode,
    OrderByNode,
    SetNode,
    TopNode,
)


class PagingClauseBuilder:
    """Builds row-shaping clauses that take at most a count."""

    def __init__(self, ctx: CompilationContext) -> None:
        self._ctx = ctx

    def build(self, node: ClauseNode) -> str:
        if isinstance(node, DistinctNode):
            return "DISTINCT"
        if isinstance(node, TopNode):
            return f"TOP {node.count}"
        if isinstance(node, LimitNode):
            return f"LIMIT {node.count}"
        if isinstance(node, OffsetNode):
            return self._ctx.compiler.offset_clause(node.count)
        if isinstance(node, FetchNode):
            return f"FETCH {node.kind.value} {node.count} ROWS ONLY"
        raise CompilationError(f"Not a paging clause: {type(node).__name__}.")


class FromClauseBuilder:
    """Builds ``FROM``, ``JOIN`` and ``ON`` fragments."""

    def __init__(self, ctx: CompilationContext) -> None:
        self._ctx = ctx

    def build(self, node: ClauseNode) -> str:
        if isinstance(node, FromNode):
            return f"FROM {self._table(node.entity_type, node.alias)}"
        if isinstance(node, JoinNode):
            return f"{node.kind.value} {self._table(node.entity_type, node.alias)}"
        if isinstance(node, JoinOnNode):
            return f"ON {node.left} = {node.right}"
        raise CompilationError(f"Not a FROM clause: {type(node).__name__}.", clause="FROM")

    def _table(self, entity_type: type, alias: str | None) -> str:
        table = self._ctx.resolver.resolve(entity_type).table_name
        return f"{table} {alias}" if alias else table


class ConditionClauseBuilder:
    """Builds the ``WHERE`` clause of one Condition node."""

    def __init__(self, ctx: CompilationContext, params: ParameterSet) -> None:
        self._pred = PredicateBuilder(ctx, params)

    def build(self, node: ConditionNode) -> str:
        if not node.triples:
            raise CompilationError("WHERE clause has no conditions.", clause="WHERE")
        return f"WHERE {self._pred.build(node.triples)}"


class GroupingClauseBuilder:
    """Builds ``GROUP BY``, ``HAVING`` and ``ORDER BY`` clauses."""

    def build(self, node: ClauseNode) -> str:
        if isinstance(node, GroupByNode):
            return f"GROUP BY {', '.join(node.columns)}"
        if isinstance(node, HavingNode):
            return f"HAVING {node.text}"
        if isinstance(node, OrderByNode):
            items = [f"{col} {order.value}" if order else col for col, order in node.items]
            return f"ORDER BY {', '.join(items)}"
        raise CompilationError(f"Not a grouping clause: {type(node).__name__}.")


class SetClauseBuilder:
    """Builds the assignment list of an UPDATE from a Set node."""

    def __init__(self, ctx: CompilationContext, params: ParameterSet) -> None:
        self._assign = AssignmentBuilder(ctx, params)

    def build(self, node: SetNode) -> str:
        if not node.assignments:
            raise CompilationError("SET clause has no assignments.", clause="SET")
        return f"SET {self._assign.build(list(node.assignments.items()))}"


class ChainRenderer:
    """Renders chain nodes by dispatching on the node type.

    Args:
        ctx: Static compilation context.
        params: Parameter accumulator of the statement being assembled.
    """

    def __init__(self, ctx: CompilationContext, params: ParameterSet) -> None:
        paging = PagingClauseBuilder(ctx)
        source = FromClauseBuilder(ctx)
        grouping = GroupingClauseBuilder()
        self._set = SetClauseBuilder(ctx, params)
        self._builders = {
            DistinctNode: paging.build,
            TopNode: paging.build,
            LimitNode: paging.build,
            OffsetNode: paging.build,
            FetchNode: paging.build,
            FromNode: source.build,
            JoinNode: source.build,
            JoinOnNode: source.build,
            ConditionNode: ConditionClauseBuilder(ctx, params).build,
            GroupByNode: grouping.build,
            HavingNode: grouping.build,
            OrderByNode: grouping.build,
            SetNode: self._set.build,
        }

    def render(self, node: ClauseNode) -> str:
        builder = self._builders.get(type(node))
        if builder is None:
            raise CompilationError(f"Cannot render clause node {type(node).__name__}.")
        return builder(node)

    def render_all(self, nodes: list[ClauseNode]) -> str:
        return " ".join(self.render(node) for node in nodes)
