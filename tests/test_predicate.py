"""Unit tests for predicate translation."""

from __future__ import annotations

import pytest

from chainql import (
    ArgumentError,
    MetadataResolver,
    SqlConfig,
    UnsupportedExpressionError,
    translate,
)
from chainql.query.nodes import ComparisonOperator as Op
from chainql.query.nodes import PredicateTriple, Separator
from chainql.query.predicate import assignments
from tests.fixtures import Product, Territory

RESOLVER = MetadataResolver(SqlConfig())
PRODUCT = RESOLVER.resolve(Product)


def _t(predicate):
    return translate(PRODUCT, predicate)


def test_single_equality():
    assert _t(lambda p: p.CategoryId == 1) == [PredicateTriple("CategoryId", Op.EQUAL_TO, 1)]


def test_and_emits_separator_marker_between_sides():
    triples = _t(lambda p: (p.CategoryId == 1) & (p.SupplierId == 2))
    assert triples == [
        PredicateTriple("CategoryId", Op.EQUAL_TO, 1),
        PredicateTriple(None, Separator.AND),
        PredicateTriple("SupplierId", Op.EQUAL_TO, 2),
    ]
    assert triples[1].is_separator


def test_or_emits_or_marker():
    triples = _t(lambda p: (p.CategoryId == 1) | (p.CategoryId == 2))
    assert triples[1] == PredicateTriple(None, Separator.OR)


@pytest.mark.parametrize(
    "predicate, operator",
    [
        (lambda p: p.UnitPrice != 10, Op.NOT_EQUAL_TO),
        (lambda p: p.UnitPrice > 10, Op.GREATER_THAN),
        (lambda p: p.UnitPrice >= 10, Op.GREATER_THAN_OR_EQUAL_TO),
        (lambda p: p.UnitPrice < 10, Op.LESS_THAN),
        (lambda p: p.UnitPrice <= 10, Op.LESS_THAN_OR_EQUAL_TO),
    ],
)
def test_comparison_operators(predicate, operator):
    assert _t(predicate) == [PredicateTriple("UnitPrice", operator, 10)]


def test_value_on_the_left_is_mirrored():
    assert _t(lambda p: 10 < p.UnitPrice) == [PredicateTriple("UnitPrice", Op.GREATER_THAN, 10)]


def test_bare_member_means_true_and_negated_member_false():
    assert _t(lambda p: p.Discontinued) == [PredicateTriple("Discontinued", Op.EQUAL_TO, True)]
    assert _t(lambda p: ~p.Discontinued) == [PredicateTriple("Discontinued", Op.EQUAL_TO, False)]


def test_equals_and_contains_methods():
    assert _t(lambda p: p.ProductName.equals("Chai")) == [
        PredicateTriple("ProductName", Op.EQUAL_TO, "Chai")
    ]
    assert _t(lambda p: p.ProductName.contains("ai")) == [
        PredicateTriple("ProductName", Op.LIKE, "%ai%")
    ]


def test_cast_is_transparent():
    assert _t(lambda p: p.UnitsInStock.cast(float) > 1.5) == [
        PredicateTriple("UnitsInStock", Op.GREATER_THAN, 1.5)
    ]


def test_closed_over_values_are_evaluated():
    price = 18
    assert _t(lambda p: p.UnitPrice == price)[0].value == 18


def test_member_is_translated_to_its_column_name():
    meta = RESOLVER.resolve(Territory)
    assert translate(meta, lambda t: t.Name == "Boston") == [
        PredicateTriple("TerritoryDescription", Op.EQUAL_TO, "Boston")
    ]


def test_mixed_and_or_is_flattened_left_to_right():
    triples = _t(lambda p: ((p.CategoryId == 1) | (p.CategoryId == 2)) & (p.SupplierId == 3))
    assert [t.column or t.operator for t in triples] == [
        "CategoryId", Separator.OR, "CategoryId", Separator.AND, "SupplierId",
    ]


# ---------------------------------------------------------------------------
# Rejected shapes
# ---------------------------------------------------------------------------


def test_none_predicate_raises():
    with pytest.raises(ArgumentError):
        translate(PRODUCT, None)


def test_comparison_with_none_raises():
    with pytest.raises(ArgumentError):
        _t(lambda p: p.SupplierId == None)  # noqa: E711


def test_member_to_member_comparison_is_unsupported():
    with pytest.raises(UnsupportedExpressionError):
        _t(lambda p: p.UnitsInStock == p.UnitsOnOrder)


def test_python_boolean_operators_are_unsupported():
    with pytest.raises(UnsupportedExpressionError):
        _t(lambda p: p.CategoryId == 1 and p.SupplierId == 2)


def test_arithmetic_is_unsupported():
    with pytest.raises(UnsupportedExpressionError):
        _t(lambda p: p.UnitPrice * 2 > 10)


def test_unknown_member_is_unsupported():
    with pytest.raises(UnsupportedExpressionError) as exc_info:
        _t(lambda p: p.Colour == "red")
    assert exc_info.value.expression == "Colour"


def test_non_expression_result_is_unsupported():
    with pytest.raises(UnsupportedExpressionError):
        _t(lambda p: True)


def test_negating_a_comparison_is_unsupported():
    with pytest.raises(UnsupportedExpressionError):
        _t(lambda p: ~(p.CategoryId == 1))


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


def test_assignments_from_equalities():
    result = assignments(PRODUCT, lambda p: (p.ProductName == "Chai") & (p.UnitPrice == 18))
    assert result == {"ProductName": "Chai", "UnitPrice": 18}


def test_assignments_reject_or():
    with pytest.raises(UnsupportedExpressionError):
        assignments(PRODUCT, lambda p: (p.ProductName == "Chai") | (p.UnitPrice == 18))


def test_assignments_reject_other_operators():
    with pytest.raises(UnsupportedExpressionError):
        assignments(PRODUCT, lambda p: p.UnitPrice > 18)
