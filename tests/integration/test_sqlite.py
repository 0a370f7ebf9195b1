"""Integration tests: assemble → execute against a real SQLite in-memory DB.

The sample schema and seed rows live in ``tests/fixtures/ddl_sqlite.sql``:
three categories, six products, three order lines and one customer
demographic.
"""
from __future__ import annotations

import sqlite3

import pytest

from chainql import (
    DbApiExecutor,
    Dialect,
    ExecutionError,
    OperationKind,
    Session,
    SortOrder,
    SqlAlchemyExecutor,
    SqlConfig,
)
from tests.fixtures import Category, CustomerDemographic, OrderDetail, Product, load_ddl


@pytest.fixture()
def db() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.executescript(load_ddl())
    yield conn
    conn.close()


@pytest.fixture()
def ss(db: sqlite3.Connection) -> Session:
    return Session(DbApiExecutor(db), SqlConfig(dialect=Dialect.SQLITE))


# ---------------------------------------------------------------------------
# Direct CRUD
# ---------------------------------------------------------------------------


def test_get_all(ss):
    products = ss.get_all(Product)
    assert len(products) == 6
    assert products[0].ProductName == "Chai"
    assert isinstance(products[0], Product)


def test_get_by_key(ss):
    assert ss.get(Product, 2).ProductName == "Chang"
    assert ss.get(Product, 999) is None


def test_query_predicate(ss):
    products = ss.query(Product, lambda p: (p.CategoryId == 3) & (p.Discontinued == 1))
    assert [p.ProductName for p in products] == ["Tofu"]


def test_query_by(ss):
    assert len(ss.query_by(Product, CategoryId=1)) == 2


def test_insert_returns_generated_key(ss):
    key = ss.insert(Product(ProductName="Ipoh Coffee", CategoryId=1, UnitPrice=46.0), return_key=True)
    assert key == 7
    assert ss.get(Product, key).ProductName == "Ipoh Coffee"


def test_insert_with_manual_key(ss):
    assert ss.insert(CustomerDemographic(CustomerTypeId="New", CustomerDescription="First order"))
    assert len(ss.get_all(CustomerDemographic)) == 2


def test_insert_union(ss):
    rows = [Product(ProductName=f"Blend {i}", CategoryId=1, UnitPrice=5.0 + i) for i in range(3)]
    assert ss.insert_union(rows) == 3
    assert len(ss.query_by(Product, CategoryId=1)) == 5


def test_update_entity(ss):
    product = ss.get(Product, 1)
    product.UnitPrice = 20.0
    assert ss.update(product) is True
    assert ss.get(Product, 1).UnitPrice == 20.0


def test_update_missing_row_is_false(ss):
    assert ss.update(Product(ProductId=999, ProductName="ghost")) is False


def test_delete_composite_key(ss):
    assert ss.delete(OrderDetail, 10248, 1) is True
    assert ss.delete(OrderDetail, 10248, 1) is False
    remaining = ss.get_all(OrderDetail)
    assert {(d.OrderId, d.ProductId) for d in remaining} == {(10248, 2), (10249, 3)}


def test_delete_where_and_by(ss):
    assert ss.delete_where(OrderDetail, lambda d: d.OrderId == 10248) == 2
    assert ss.delete_by(OrderDetail, OrderId=10249) == 1
    assert ss.get_all(OrderDetail) == []


# ---------------------------------------------------------------------------
# Fluent chains
# ---------------------------------------------------------------------------


def test_fluent_where_order_limit(ss):
    products = (
        ss.from_(Product)
        .where("UnitPrice").greater_than(15)
        .order_by("UnitPrice", SortOrder.DESCENDING)
        .limit(2)
        .select()
    )
    assert [p.ProductName for p in products] == ["Uncle Bob's Organic Dried Pears", "Tofu"]


def test_fluent_limit_offset(ss):
    products = ss.from_(Product).order_by("ProductId").limit(2).offset(2).select()
    assert [p.ProductId for p in products] == [3, 4]


def test_fluent_join(ss):
    categories = (
        ss.from_(Product, "p")
        .inner_join(Category, "c")
        .on("p.CategoryId", "c.CategoryId")
        .where("p.ProductName", "Tofu")
        .select(Category)
    )
    assert [c.CategoryName for c in categories] == ["Produce"]


def test_fluent_group_by_having(ss):
    rows = (
        ss.from_(Product)
        .group_by("CategoryId")
        .having("COUNT(*) > 1")
        .order_by("CategoryId")
        .select(columns="CategoryId, COUNT(*) AS Products")
    )
    assert rows == [
        {"CategoryId": 1, "Products": 2},
        {"CategoryId": 2, "Products": 2},
        {"CategoryId": 3, "Products": 2},
    ]


def test_fluent_update_and_delete(ss):
    updated = (
        ss.set("Discontinued", 1)
        .set("UnitsOnOrder", 0)
        .where("CategoryId", 2)
        .update(Product)
    )
    assert updated == 2
    assert ss.from_(Product).where("Discontinued", 1).delete() == 3
    assert len(ss.get_all(Product)) == 3


def test_fluent_insert(ss):
    assert ss.values(Category(CategoryName="Seafood")).insert() == 1
    assert ss.query_by(Category, CategoryName="Seafood")[0].CategoryId == 4


def test_events_fire_on_execution(ss):
    seen = []
    ss.events.subscribe(OperationKind.SELECT, lambda token, event: seen.append(event.sql))
    ss.get(Product, 1)
    assert seen == [ss.get_as_string(Product, 1).sql]


def test_driver_error_is_wrapped(ss):
    with pytest.raises(ExecutionError):
        ss.insert(Product(ProductName=None))


# ---------------------------------------------------------------------------
# SQLAlchemy executor
# ---------------------------------------------------------------------------


@pytest.fixture()
def sa_session():
    sqlalchemy = pytest.importorskip("sqlalchemy")
    engine = sqlalchemy.create_engine("sqlite://")
    with engine.connect() as conn:
        conn.connection.driver_connection.executescript(load_ddl())
        yield Session(SqlAlchemyExecutor(conn), SqlConfig(dialect="sqlite"))
    engine.dispose()


def test_sqlalchemy_round_trip(sa_session):
    assert len(sa_session.get_all(Product)) == 6
    key = sa_session.insert(Product(ProductName="Ikura", CategoryId=3), return_key=True)
    assert key == 7
    assert sa_session.set("UnitPrice", 31.0).where("ProductId", key).update(Product) == 1
    assert sa_session.get(Product, key).UnitPrice == 31.0
    assert sa_session.delete(Product, key) is True


def test_sqlalchemy_error_is_wrapped(sa_session):
    with pytest.raises(ExecutionError):
        sa_session.insert(Product(ProductName=None))
