"""Unit tests for fluent chain assembly (SQL Server, the default dialect)."""

from __future__ import annotations

import pytest

from chainql import (
    ArgumentError,
    CompilationError,
    Session,
    SortOrder,
)
from chainql.query.stages import ConditionStage, SetStage
from tests.fixtures import Category, Order, OrderDetail, Product
from tests.fixtures.executors import RecordingExecutor

PRODUCT_COLUMNS = (
    "ProductId, ProductName, SupplierId, CategoryId, QuantityPerUnit, UnitPrice, "
    "UnitsInStock, UnitsOnOrder, ReorderLevel, Discontinued"
)


def _ss() -> Session:
    return Session(RecordingExecutor())


# ---------------------------------------------------------------------------
# SELECT
# ---------------------------------------------------------------------------


def test_select_all_from():
    r = _ss().from_(Product).select_as_string()
    assert r.sql == f"SELECT {PRODUCT_COLUMNS} FROM Products;"
    assert r.params == {}
    assert r.dialect == "sqlserver"


def test_select_top():
    r = _ss().top(15).from_(Product).select_as_string()
    assert r.sql == f"SELECT TOP 15 {PRODUCT_COLUMNS} FROM Products;"


def test_select_distinct_columns():
    r = _ss().distinct().from_(Product).select_as_string(columns=["CategoryId"])
    assert r.sql == "SELECT DISTINCT CategoryId FROM Products;"


def test_select_distinct_top():
    r = _ss().distinct().top(5).from_(Product).select_as_string()
    assert r.sql == f"SELECT DISTINCT TOP 5 {PRODUCT_COLUMNS} FROM Products;"


def test_select_where():
    r = _ss().from_(Product).where("ProductId", 12).select_as_string()
    assert r.sql == f"SELECT {PRODUCT_COLUMNS} FROM Products WHERE ProductId = @ProductId;"
    assert r.params == {"ProductId": 12}


def test_select_where_and_where():
    r = _ss().from_(Product).where("SupplierId", 1).and_where("CategoryId", 1).select_as_string()
    assert r.sql.endswith("WHERE SupplierId = @SupplierId AND CategoryId = @CategoryId;")
    assert list(r.params.items()) == [("SupplierId", 1), ("CategoryId", 1)]


def test_repeated_where_column_gets_suffixed_parameter():
    r = _ss().from_(Product).where("CategoryId", 1).or_where("CategoryId", 2).select_as_string()
    assert r.sql.endswith("WHERE CategoryId = @CategoryId OR CategoryId = @CategoryId$;")
    assert r.params == {"CategoryId": 1, "CategoryId$": 2}


def test_not_where_renders_and_not():
    r = (
        _ss().from_(Product)
        .where("CategoryId", 1)
        .not_where("Discontinued", True)
        .select_as_string()
    )
    assert r.sql.endswith("WHERE CategoryId = @CategoryId AND NOT Discontinued = @Discontinued;")


def test_two_call_comparisons():
    r = (
        _ss().from_(Product)
        .where("UnitPrice").greater_than(10)
        .and_where("UnitsInStock").less_than_or_equal_to(5)
        .or_where("ProductName").like("Ch%")
        .select_as_string()
    )
    assert r.sql.endswith(
        "WHERE UnitPrice > @UnitPrice AND UnitsInStock <= @UnitsInStock "
        "OR ProductName LIKE @ProductName;"
    )
    assert r.params == {"UnitPrice": 10, "UnitsInStock": 5, "ProductName": "Ch%"}


def test_where_predicate_uses_the_from_type():
    r = (
        _ss().from_(Product)
        .where(lambda p: (p.CategoryId == 1) & (p.UnitPrice > 10))
        .select_as_string()
    )
    assert r.sql.endswith("WHERE CategoryId = @CategoryId AND UnitPrice > @UnitPrice;")


def test_and_where_predicate_appends_to_the_same_clause():
    r = (
        _ss().from_(Product)
        .where("SupplierId", 1)
        .or_where(lambda p: (p.CategoryId == 2) | (p.CategoryId == 3))
        .select_as_string()
    )
    assert r.sql.endswith(
        "WHERE SupplierId = @SupplierId OR CategoryId = @CategoryId OR CategoryId = @CategoryId$;"
    )


def test_order_by_offset_fetch():
    r = (
        _ss().from_(Product)
        .order_by("ProductName")
        .offset(0)
        .fetch_next(10)
        .select_as_string()
    )
    assert r.sql == (
        f"SELECT {PRODUCT_COLUMNS} FROM Products "
        "ORDER BY ProductName OFFSET 0 ROWS FETCH NEXT 10 ROWS ONLY;"
    )


def test_fetch_first():
    r = _ss().from_(Product).order_by("ProductId").offset(5).fetch_first(5).select_as_string()
    assert r.sql.endswith("OFFSET 5 ROWS FETCH FIRST 5 ROWS ONLY;")


def test_order_by_descending():
    r = _ss().from_(Product).order_by("ProductId", SortOrder.DESCENDING).select_as_string()
    assert r.sql.endswith("FROM Products ORDER BY ProductId DESC;")


def test_order_by_several_columns():
    r = (
        _ss().from_(Product)
        .order_by("ProductId")
        .order_by("ProductName", "DESC")
        .select_as_string()
    )
    assert r.sql.endswith("ORDER BY ProductId, ProductName DESC;")


def test_order_by_explicit_ascending_is_rendered():
    r = _ss().from_(Product).order_by("ProductId", SortOrder.ASCENDING).select_as_string()
    assert r.sql.endswith("ORDER BY ProductId ASC;")


def test_where_limit():
    r = _ss().from_(Product).where("CategoryId", 2).limit(5).select_as_string()
    assert r.sql.endswith("FROM Products WHERE CategoryId = @CategoryId LIMIT 5;")


def test_group_by_with_column_list():
    r = _ss().from_(Product).group_by("ProductName").select_as_string("ProductName, count(*)")
    assert r.sql == "SELECT ProductName, count(*) FROM Products GROUP BY ProductName;"


def test_group_by_having():
    r = (
        _ss().from_(OrderDetail)
        .group_by("OrderId")
        .having("SUM(UnitPrice) > 100")
        .select_as_string(["OrderId", "SUM(UnitPrice)"])
    )
    assert r.sql == (
        'SELECT OrderId, SUM(UnitPrice) FROM "Order Details" '
        "GROUP BY OrderId HAVING SUM(UnitPrice) > 100;"
    )


def test_group_by_requires_columns():
    with pytest.raises(ArgumentError):
        _ss().from_(Product).group_by("ProductName").select_as_string("  ")


def test_grouped_order_by_keeps_column_list():
    r = (
        _ss().from_(Product)
        .group_by("CategoryId")
        .order_by("CategoryId", SortOrder.DESCENDING)
        .order_by("Products")
        .select_as_string("CategoryId, COUNT(*) AS Products")
    )
    assert r.sql == (
        "SELECT CategoryId, COUNT(*) AS Products FROM Products "
        "GROUP BY CategoryId ORDER BY CategoryId DESC, Products;"
    )


def test_grouped_order_by_requires_columns():
    chain = (
        _ss().from_(Product)
        .group_by("CategoryId")
        .having("COUNT(*) > 1")
        .order_by("CategoryId")
    )
    with pytest.raises(TypeError):
        chain.select_as_string()
    with pytest.raises(ArgumentError):
        chain.select_as_string([])


def test_grouped_chain_rejects_entity_select_after_limit():
    chain = _ss().from_(Product).group_by("CategoryId").order_by("CategoryId").limit(5)
    with pytest.raises(ArgumentError) as err:
        chain.select_as_string()
    assert err.value.argument == "columns"
    with pytest.raises(ArgumentError):
        chain.select_as_string(Product)
    r = chain.select_as_string(columns="CategoryId")
    assert r.sql.startswith(
        "SELECT CategoryId FROM Products GROUP BY CategoryId ORDER BY CategoryId"
    )


# ---------------------------------------------------------------------------
# Joins
# ---------------------------------------------------------------------------


def test_inner_join_with_aliases_selects_the_joined_type():
    r = (
        _ss().from_(Product, "p")
        .inner_join(Category, "c")
        .on("p.CategoryId", "c.CategoryId")
        .select_as_string(Category)
    )
    assert r.sql == (
        "SELECT c.CategoryId, c.CategoryName, c.Description, c.Picture "
        "FROM Products p INNER JOIN Categories c ON p.CategoryId = c.CategoryId;"
    )


def test_inner_join_without_aliases_qualifies_with_table_names():
    r = (
        _ss().from_(Product)
        .inner_join(Category)
        .on("Products.CategoryId", "Categories.CategoryId")
        .where("CategoryName", "Produce")
        .select_as_string(Category)
    )
    assert r.sql == (
        "SELECT Categories.CategoryId, Categories.CategoryName, "
        "Categories.Description, Categories.Picture "
        "FROM Products INNER JOIN Categories ON Products.CategoryId = Categories.CategoryId "
        "WHERE CategoryName = @CategoryName;"
    )
    assert r.params == {"CategoryName": "Produce"}


def test_two_joins_and_aliased_where_column():
    r = (
        _ss().from_(Product, "p")
        .inner_join(OrderDetail, "od")
        .on("od.ProductId", "p.ProductId")
        .inner_join(Order, "o")
        .on("o.OrderId", "od.OrderId")
        .where("p.ProductId", 1)
        .select_as_string(Order)
    )
    assert r.sql == (
        'SELECT o.OrderId, o.CustomerId, o."Group" '
        'FROM Products p INNER JOIN "Order Details" od ON od.ProductId = p.ProductId '
        "INNER JOIN Orders o ON o.OrderId = od.OrderId "
        "WHERE p.ProductId = @p__ProductId;"
    )
    assert r.params == {"p__ProductId": 1}


def test_left_and_right_joins():
    left = (
        _ss().from_(Category, "c")
        .left_join(Product, "p")
        .on("c.CategoryId", "p.CategoryId")
        .select_as_string()
    )
    assert left.sql == (
        "SELECT c.CategoryId, c.CategoryName, c.Description, c.Picture "
        "FROM Categories c LEFT OUTER JOIN Products p ON c.CategoryId = p.CategoryId;"
    )
    right = _ss().from_(Category).right_join(Product).on("a", "b").select_as_string(Product)
    assert "FROM Categories RIGHT OUTER JOIN Products ON a = b;" in right.sql
    assert right.sql.startswith("SELECT Products.ProductId, Products.ProductName")


# ---------------------------------------------------------------------------
# UPDATE
# ---------------------------------------------------------------------------


def test_set_where_update():
    r = _ss().set("ProductName", "Chai latte").where("ProductId", 1).update_as_string(Product)
    assert r.sql == "UPDATE Products SET ProductName = @ProductName WHERE ProductId = @ProductId;"
    assert list(r.params.items()) == [("ProductName", "Chai latte"), ("ProductId", 1)]


def test_double_set_and_shared_column():
    r = (
        _ss().set("ProductName", "Chang 2")
        .set("UnitPrice", 24)
        .where("ProductName", "Chang")
        .and_where("CategoryId", 2)
        .update_as_string(Product)
    )
    assert r.sql == (
        "UPDATE Products SET ProductName = @ProductName, UnitPrice = @UnitPrice "
        "WHERE ProductName = @ProductName$ AND CategoryId = @CategoryId;"
    )
    assert list(r.params) == ["ProductName", "UnitPrice", "ProductName$", "CategoryId"]
    assert r.params["ProductName$"] == "Chang"


def test_set_and_two_call_where_on_same_column():
    r = (
        _ss().set("UnitPrice", 24.01)
        .where("UnitPrice").equal_to(24)
        .and_where("UnitsInStock").greater_than(12)
        .update_as_string(Product)
    )
    assert r.sql == (
        "UPDATE Products SET UnitPrice = @UnitPrice "
        "WHERE UnitPrice = @UnitPrice$ AND UnitsInStock > @UnitsInStock;"
    )
    assert r.params == {"UnitPrice": 24.01, "UnitPrice$": 24, "UnitsInStock": 12}


def test_update_with_and_and_or():
    r = (
        _ss().set("UnitPrice", 24.01)
        .where("UnitPrice").equal_to(12)
        .and_where("UnitsInStock").equal_to(2)
        .or_where("UnitsOnOrder").equal_to(3)
        .update_as_string(Product)
    )
    assert r.sql.endswith(
        "WHERE UnitPrice = @UnitPrice$ AND UnitsInStock = @UnitsInStock "
        "OR UnitsOnOrder = @UnitsOnOrder;"
    )


def test_set_and_where_predicates():
    r = (
        _ss().set(Product, lambda x: x.ProductName == "Chai")
        .where(lambda x: (x.ProductId != 10) & (x.CategoryId == 20))
        .update_as_string()
    )
    assert r.sql == (
        "UPDATE Products SET ProductName = @ProductName "
        "WHERE ProductId <> @ProductId AND CategoryId = @CategoryId;"
    )
    assert list(r.params.items()) == [("ProductName", "Chai"), ("ProductId", 10), ("CategoryId", 20)]


def test_set_none_assigns_null():
    r = _ss().set("QuantityPerUnit", None).where("ProductId", 1).update_as_string(Product)
    assert r.params == {"QuantityPerUnit": None, "ProductId": 1}


def test_update_without_entity_type_raises():
    with pytest.raises(ArgumentError):
        _ss().set("ProductName", "x").where("ProductId", 1).update_as_string()


def test_setting_a_column_twice_raises():
    with pytest.raises(ArgumentError):
        _ss().set("ProductName", "a").set("ProductName", "b")


# ---------------------------------------------------------------------------
# DELETE and INSERT
# ---------------------------------------------------------------------------


def test_fluent_delete():
    r = (
        _ss().from_(Product)
        .where("ProductName", "abc")
        .and_where("Discontinued", True)
        .delete_as_string()
    )
    assert r.sql == (
        "DELETE FROM Products WHERE ProductName = @ProductName AND Discontinued = @Discontinued;"
    )
    assert r.params == {"ProductName": "abc", "Discontinued": True}


def test_values_insert():
    product = Product(ProductName="Best Ground Coffee", CategoryId=1, SupplierId=2)
    r = _ss().values(product).insert_as_string(Product)
    assert r.sql == (
        "INSERT INTO Products (ProductName, SupplierId, CategoryId, QuantityPerUnit, UnitPrice, "
        "UnitsInStock, UnitsOnOrder, ReorderLevel, Discontinued) "
        "VALUES (@ProductName, @SupplierId, @CategoryId, @QuantityPerUnit, @UnitPrice, "
        "@UnitsInStock, @UnitsOnOrder, @ReorderLevel, @Discontinued);"
    )
    assert r.params["ProductName"] == "Best Ground Coffee"
    assert "ProductId" not in r.params


# ---------------------------------------------------------------------------
# Chain behaviour
# ---------------------------------------------------------------------------


def test_render_chain_without_terminal():
    stage = _ss().from_(Product, "p").where("p.CategoryId", 1)
    assert str(stage) == "FROM Products p WHERE p.CategoryId = @p__CategoryId"
    assert stage.render().params == {"p__CategoryId": 1}


def test_branches_share_a_prefix_without_interfering():
    base = _ss().from_(Product)
    by_category = base.where("CategoryId", 1)
    by_supplier = base.where("SupplierId", 2)
    assert str(by_category) == "FROM Products WHERE CategoryId = @CategoryId"
    assert str(by_supplier) == "FROM Products WHERE SupplierId = @SupplierId"
    assert str(base) == "FROM Products"


def test_failed_call_leaves_chain_unchanged():
    stage = _ss().from_(Product).where("CategoryId", 1)
    with pytest.raises(ArgumentError):
        stage.and_where("SupplierId", None)
    with pytest.raises(ArgumentError):
        stage.and_where("SupplierId").greater_than(None)
    assert str(stage) == "FROM Products WHERE CategoryId = @CategoryId"


@pytest.mark.parametrize("column", ["", "   ", None])
def test_blank_where_column_raises(column):
    with pytest.raises(ArgumentError):
        _ss().from_(Product).where(column, 1)


def test_negative_counts_raise():
    with pytest.raises(ArgumentError):
        _ss().top(-1)
    with pytest.raises(ArgumentError):
        _ss().from_(Product).limit(-5)


def test_illegal_transition_is_not_offered():
    stage = _ss().from_(Product)
    assert not hasattr(stage, "on")
    assert not hasattr(stage, "update")
    assert not hasattr(_ss().set("ProductName", "x"), "select")


def test_update_from_a_select_chain_raises():
    with pytest.raises(CompilationError) as exc_info:
        _ss().from_(Product).where("ProductId", 1).update_as_string(Product)
    assert exc_info.value.clause == "SET"


def test_stage_over_the_wrong_node_raises_compilation_error():
    from_stage = _ss().from_(Product)
    misplaced = ConditionStage(from_stage._session, from_stage._arena, from_stage._index)
    with pytest.raises(CompilationError, match="Expected ConditionNode"):
        misplaced.and_where("CategoryId", 1)

    misplaced_set = SetStage(from_stage._session, from_stage._arena, from_stage._index)
    with pytest.raises(CompilationError, match="Expected SetNode"):
        misplaced_set.set("ProductName", "Chai")
