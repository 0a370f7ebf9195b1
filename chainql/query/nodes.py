"""Clause nodes and the append-only arena that links them.

A clause chain is stored as a flat list of nodes.  Every node records the
index of its predecessor, so any node can be used as the tail of a chain
and walked back to its root without the nodes holding references to each
other.  Nodes are never removed or re-linked; the only mutation after
allocation is growth of a node's own item list (predicate triples of one
WHERE, sort keys of one ORDER BY, assignments of one SET).

Rendering lives in :mod:`chainql.compile.clause_builders`.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from chainql.errors import ArgumentError


class ComparisonOperator(str, Enum):
    EQUAL_TO = "="
    NOT_EQUAL_TO = "<>"
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL_TO = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL_TO = "<="
    LIKE = "LIKE"


class Separator(str, Enum):
    AND = "AND"
    OR = "OR"
    AND_NOT = "AND NOT"


class SortOrder(str, Enum):
    ASCENDING = "ASC"
    DESCENDING = "DESC"


class JoinKind(str, Enum):
    INNER = "INNER JOIN"
    LEFT = "LEFT OUTER JOIN"
    RIGHT = "RIGHT OUTER JOIN"


class FetchKind(str, Enum):
    FIRST = "FIRST"
    NEXT = "NEXT"


@dataclass
class PredicateTriple:
    """One ``column operator value`` comparison.

    ``separator`` joins this comparison to the next one.  A triple whose
    ``column`` and ``value`` are both ``None`` is a bare separator marker, as
    produced by the predicate translator between the sides of ``&`` / ``|``.
    """

    column: str | None
    operator: ComparisonOperator | Separator
    value: Any = None
    separator: Separator | None = None

    @property
    def is_separator(self) -> bool:
        return self.column is None and self.value is None


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass
class ClauseNode:
    """Base class for all chain nodes; ``prev`` is the predecessor's index."""

    prev: int | None


@dataclass
class DistinctNode(ClauseNode):
    pass


@dataclass
class TopNode(ClauseNode):
    count: int


@dataclass
class FromNode(ClauseNode):
    entity_type: type
    alias: str | None = None


@dataclass
class JoinNode(ClauseNode):
    entity_type: type
    alias: str | None = None
    kind: JoinKind = JoinKind.INNER


@dataclass
class JoinOnNode(ClauseNode):
    left: str
    right: str


@dataclass
class ConditionNode(ClauseNode):
    triples: list[PredicateTriple] = field(default_factory=list)

    def add(self, column: str, operator: ComparisonOperator, value: Any) -> None:
        self.triples.append(PredicateTriple(column, operator, value))

    def add_separator(self, separator: Separator) -> None:
        if not self.triples:
            raise ArgumentError("A separator needs a preceding condition.", argument="separator")
        self.triples[-1].separator = separator

    def extend(self, triples: list[PredicateTriple]) -> None:
        """Append translated triples, folding separator markers into the
        preceding comparison."""
        for triple in triples:
            if triple.is_separator:
                self.add_separator(Separator(triple.operator))
            else:
                self.triples.append(triple)


@dataclass
class SetNode(ClauseNode):
    entity_type: type | None = None
    assignments: dict[str, Any] = field(default_factory=dict)


@dataclass
class GroupByNode(ClauseNode):
    columns: list[str] = field(default_factory=list)


@dataclass
class HavingNode(ClauseNode):
    text: str = ""


@dataclass
class OrderByNode(ClauseNode):
    items: list[tuple[str, SortOrder | None]] = field(default_factory=list)


@dataclass
class LimitNode(ClauseNode):
    count: int


@dataclass
class OffsetNode(ClauseNode):
    count: int


@dataclass
class FetchNode(ClauseNode):
    count: int
    kind: FetchKind = FetchKind.NEXT


@dataclass
class ValuesNode(ClauseNode):
    entity: Any


# ---------------------------------------------------------------------------
# Arena
# ---------------------------------------------------------------------------


class ClauseArena:
    """Append-only storage for the nodes of one clause chain."""

    def __init__(self) -> None:
        self._nodes: list[ClauseNode] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, index: int) -> ClauseNode:
        return self._nodes[index]

    def append(self, node: ClauseNode) -> int:
        """Store ``node`` and return its index."""
        self._nodes.append(node)
        return len(self._nodes) - 1

    def walk_back(self, tail: int) -> Iterator[ClauseNode]:
        """Yield the nodes from ``tail`` back to the root."""
        index: int | None = tail
        while index is not None:
            node = self._nodes[index]
            yield node
            index = node.prev

    def path(self, tail: int) -> list[ClauseNode]:
        """Return the nodes from the root to ``tail``."""
        return list(reversed(list(self.walk_back(tail))))
