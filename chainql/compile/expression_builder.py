"""Predicate and assignment SQL builders.

``PredicateBuilder`` and ``AssignmentBuilder`` both emit ``column op @param``
fragments and register the bound values, so they share a module and a
:class:`ParameterSet`.

Both classes receive a :class:`~chainql.compile.context.CompilationContext`
(static config) and a :class:`ParameterSet` (per-statement parameter state).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from chainql.compile.context import CompilationContext
from chainql.query.nodes import PredicateTriple

#: Appended to a parameter name until it no longer collides.
COLLISION_SUFFIX = "$"


# ---------------------------------------------------------------------------
# Parameter accumulator (shared across all sub-builders of one statement)
# ---------------------------------------------------------------------------


@dataclass
class ParameterSet:
    """Accumulates named parameters while one statement is rendered.

    Names are unique within the statement.  When a name is already taken
    (typically a WHERE column that also appears in the SET list of an
    UPDATE) the new parameter gets the ``$`` suffix while the SQL text keeps
    the bare column name.
    """

    params: dict[str, Any] = field(default_factory=dict)

    def add(self, key: str, value: Any) -> str:
        """Store ``value`` under a unique name derived from ``key``."""
        while key in self.params:
            key += COLLISION_SUFFIX
        self.params[key] = value
        return key


# ---------------------------------------------------------------------------
# Predicate builder
# ---------------------------------------------------------------------------


class PredicateBuilder:
    """Renders predicate triples as ``column op @param [SEPARATOR]`` text.

    Args:
        ctx: Static compilation context.
        params: Shared parameter accumulator.
    """

    def __init__(self, ctx: CompilationContext, params: ParameterSet) -> None:
        self._ctx = ctx
        self._params = params

    def build(self, triples: list[PredicateTriple]) -> str:
        """Render ``triples`` joined by single spaces."""
        return " ".join(self._build_triple(t) for t in triples if not t.is_separator)

    def _build_triple(self, triple: PredicateTriple) -> str:
        key = self._params.add(self._ctx.compiler.parameter_key(triple.column), triple.value)
        sql = f"{triple.column} {triple.operator.value} {self._ctx.placeholder(key)}"
        if triple.separator is not None:
            sql = f"{sql} {triple.separator.value}"
        return sql


# ---------------------------------------------------------------------------
# Assignment builder
# ---------------------------------------------------------------------------


class AssignmentBuilder:
    """Renders ``column = @param`` lists for UPDATE SET clauses.

    Args:
        ctx: Static compilation context.
        params: Shared parameter accumulator.
    """

    def __init__(self, ctx: CompilationContext, params: ParameterSet) -> None:
        self._ctx = ctx
        self._params = params

    def build(self, assignments: list[tuple[str, Any]]) -> str:
        parts: list[str] = []
        for column, value in assignments:
            key = self._params.add(self._ctx.compiler.parameter_key(column), value)
            parts.append(f"{column} = {self._ctx.placeholder(key)}")
        return ", ".join(parts)
