"""chainQL query layer: clause nodes, predicate translation and fluent stages."""
from chainql.query.nodes import (
    ClauseArena,
    ComparisonOperator,
    FetchKind,
    JoinKind,
    PredicateTriple,
    Separator,
    SortOrder,
)
from chainql.query.predicate import translate

__all__ = [
    "ClauseArena",
    "ComparisonOperator",
    "FetchKind",
    "JoinKind",
    "PredicateTriple",
    "Separator",
    "SortOrder",
    "translate",
]
