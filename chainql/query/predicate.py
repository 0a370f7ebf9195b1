"""Predicate translation: Python callables to comparison triples.

A predicate is a one-argument callable such as::

    lambda p: (p.CategoryId == 1) & (p.UnitPrice > price)

It is invoked once with an :class:`EntityProxy`.  Attribute access on the
proxy yields :class:`MemberRef` objects whose operators record
:class:`Comparison`, :class:`Junction` and :class:`Negation` nodes instead
of computing values.  :func:`translate` walks the recorded tree in order and
emits :class:`~chainql.query.nodes.PredicateTriple` items.

Grammar
-------
``member <op> value``
    ``==  !=  >  >=  <  <=`` with a plain value on either side
    (``1 < p.A`` becomes ``A > 1``).  ``!=`` renders ``<>``.
``member``
    ``col = True``.
``~member``
    ``col = False``.
``left & right`` / ``left | right``
    The left triples, a separator marker, then the right triples.
``member.equals(v)`` / ``member.contains(v)``
    ``col = v`` and ``col LIKE '%v%'``.
``member.cast()``
    Conversion wrapper; translated as the bare member.

Values are ordinary Python objects, so variables closed over by the lambda
are evaluated when the predicate is translated.

Grouping is not preserved: the triples are emitted in walk order and joined
without parentheses, so ``((a) | (b)) & (c)`` renders ``a OR b AND c`` and
the database applies its own ``AND``-before-``OR`` precedence.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from chainql.errors import ArgumentError, UnsupportedExpressionError
from chainql.query.nodes import ComparisonOperator, PredicateTriple, Separator
from chainql.schema.entity import EntityMetadata

Predicate = Callable[[Any], Any]


def _unsupported(node: Any, detail: str) -> UnsupportedExpressionError:
    return UnsupportedExpressionError(f"Unsupported predicate expression: {detail}.", node)


# ---------------------------------------------------------------------------
# Recorded expression nodes
# ---------------------------------------------------------------------------


class _Expression:
    """Shared combinators for every recorded node."""

    def __and__(self, other: Any) -> Junction:
        return Junction(self, Separator.AND, other)

    def __rand__(self, other: Any) -> Junction:
        return Junction(other, Separator.AND, self)

    def __or__(self, other: Any) -> Junction:
        return Junction(self, Separator.OR, other)

    def __ror__(self, other: Any) -> Junction:
        return Junction(other, Separator.OR, self)

    def __bool__(self) -> bool:
        raise _unsupported(self, "use '&', '|' and '~' instead of 'and', 'or' and 'not'")

    def __invert__(self) -> Any:
        raise _unsupported(self, "only a bare member can be negated")


class MemberRef(_Expression):
    """A reference to one mapped member, resolved to its column name."""

    def __init__(self, member: str, column: str) -> None:
        self.member = member
        self.column = column

    def __repr__(self) -> str:
        return f"MemberRef({self.member!r})"

    def _compare(self, operator: ComparisonOperator, value: Any) -> Comparison:
        return Comparison(self, operator, value)

    def __eq__(self, other: Any) -> Comparison:  # type: ignore[override]
        return self._compare(ComparisonOperator.EQUAL_TO, other)

    def __ne__(self, other: Any) -> Comparison:  # type: ignore[override]
        return self._compare(ComparisonOperator.NOT_EQUAL_TO, other)

    def __gt__(self, other: Any) -> Comparison:
        return self._compare(ComparisonOperator.GREATER_THAN, other)

    def __ge__(self, other: Any) -> Comparison:
        return self._compare(ComparisonOperator.GREATER_THAN_OR_EQUAL_TO, other)

    def __lt__(self, other: Any) -> Comparison:
        return self._compare(ComparisonOperator.LESS_THAN, other)

    def __le__(self, other: Any) -> Comparison:
        return self._compare(ComparisonOperator.LESS_THAN_OR_EQUAL_TO, other)

    __hash__ = object.__hash__

    def __invert__(self) -> Negation:
        return Negation(self)

    def _arithmetic(self, *_: Any) -> Any:
        raise _unsupported(self, "arithmetic on members is not translatable")

    __add__ = __radd__ = __sub__ = __rsub__ = _arithmetic
    __mul__ = __rmul__ = __truediv__ = __rtruediv__ = __mod__ = __neg__ = _arithmetic

    def equals(self, value: Any) -> Comparison:
        return self._compare(ComparisonOperator.EQUAL_TO, value)

    def contains(self, value: Any) -> Comparison:
        return self._compare(ComparisonOperator.LIKE, f"%{value}%")

    def cast(self, *_: Any) -> MemberRef:
        return self


class Comparison(_Expression):
    def __init__(self, member: MemberRef, operator: ComparisonOperator, value: Any) -> None:
        self.member = member
        self.operator = operator
        self.value = value

    def __repr__(self) -> str:
        return f"Comparison({self.member.member!r} {self.operator.value} {self.value!r})"


class Negation(_Expression):
    def __init__(self, member: MemberRef) -> None:
        self.member = member

    def __repr__(self) -> str:
        return f"Negation({self.member.member!r})"


class Junction(_Expression):
    def __init__(self, left: Any, separator: Separator, right: Any) -> None:
        self.left = left
        self.separator = separator
        self.right = right

    def __repr__(self) -> str:
        return f"Junction({self.left!r} {self.separator.value} {self.right!r})"


class EntityProxy:
    """Stand-in for an entity instance that records member access."""

    def __init__(self, metadata: EntityMetadata) -> None:
        self._metadata = metadata

    def __getattr__(self, name: str) -> MemberRef:
        if name.startswith("_"):
            raise AttributeError(name)
        column = self._metadata.column_for(name)
        if column is None:
            raise _unsupported(
                name, f"'{name}' is not a mapped member of {self._metadata.entity_name}"
            )
        return MemberRef(name, column.name)


# ---------------------------------------------------------------------------
# Translation
# ---------------------------------------------------------------------------


def translate(metadata: EntityMetadata, predicate: Predicate) -> list[PredicateTriple]:
    """Translate ``predicate`` into an ordered list of triples.

    Args:
        metadata: Metadata of the entity the predicate ranges over.
        predicate: One-argument callable built from the supported grammar.

    Returns:
        Comparison triples interleaved with ``(None, AND|OR, None)``
        separator markers.

    Raises:
        ArgumentError: If ``predicate`` is ``None`` or compares with ``None``.
        UnsupportedExpressionError: If the predicate uses any other shape.
    """
    if predicate is None:
        raise ArgumentError("Predicate cannot be None.", argument="predicate")
    triples: list[PredicateTriple] = []
    _walk(predicate(EntityProxy(metadata)), triples)
    return triples


def _walk(node: Any, out: list[PredicateTriple]) -> None:
    if isinstance(node, Junction):
        _walk(node.left, out)
        out.append(PredicateTriple(None, node.separator))
        _walk(node.right, out)
    elif isinstance(node, Comparison):
        out.append(_comparison(node))
    elif isinstance(node, MemberRef):
        out.append(PredicateTriple(node.column, ComparisonOperator.EQUAL_TO, True))
    elif isinstance(node, Negation):
        out.append(PredicateTriple(node.member.column, ComparisonOperator.EQUAL_TO, False))
    else:
        raise _unsupported(node, f"cannot translate {node!r}")


def _comparison(node: Comparison) -> PredicateTriple:
    value = node.value
    if isinstance(value, _Expression):
        raise _unsupported(node, "comparisons must have a plain value on one side")
    if value is None:
        raise ArgumentError(
            f"Cannot compare '{node.member.member}' with None.", argument=node.member.member
        )
    return PredicateTriple(node.member.column, node.operator, value)


def assignments(metadata: EntityMetadata, predicate: Predicate) -> dict[str, Any]:
    """Translate an ``&``-joined chain of equalities into ``column -> value``.

    Used by ``Session.set(Entity, lambda e: (e.A == 1) & (e.B == 2))``.

    Raises:
        UnsupportedExpressionError: If the predicate uses anything other than
            equality comparisons joined with ``&``.
    """
    result: dict[str, Any] = {}
    for triple in translate(metadata, predicate):
        if triple.is_separator:
            if triple.operator is not Separator.AND:
                raise _unsupported(triple, "assignments can only be joined with '&'")
            continue
        if triple.operator is not ComparisonOperator.EQUAL_TO:
            raise _unsupported(triple, "assignments must use '=='")
        result[triple.column] = triple.value
    return result
