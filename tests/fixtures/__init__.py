"""Test fixtures: Northwind-style entities and the sample SQLite DDL."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Annotated, ClassVar

from pydantic import BaseModel

from chainql import Column, Ignore, Key, table

_FIXTURES_DIR = Path(__file__).parent


def load_ddl() -> str:
    """Return the sample SQLite DDL (schema plus seed rows)."""
    return (_FIXTURES_DIR / "ddl_sqlite.sql").read_text()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Product:
    ProductId: int = 0
    ProductName: str = ""
    SupplierId: int | None = None
    CategoryId: int | None = None
    QuantityPerUnit: str | None = None
    UnitPrice: Decimal | float | None = None
    UnitsInStock: int | None = None
    UnitsOnOrder: int | None = None
    ReorderLevel: int | None = None
    Discontinued: bool = False


@dataclass
class Category:
    CategoryId: int = 0
    CategoryName: str = ""
    Description: str | None = None
    Picture: bytes | None = None


@dataclass
class Supplier:
    SupplierId: int = 0
    CompanyName: str = ""


@table("Region")
@dataclass
class Region:
    RegionId: int = 0
    RegionDescription: str = ""


@dataclass
class Territory:
    TerritoryId: Annotated[str, Key(manual=True)] = ""
    Name: Annotated[str, Column("TerritoryDescription")] = ""
    RegionId: int = 0


@table("Order Details")
@dataclass
class OrderDetail:
    OrderId: Annotated[int, Key(manual=True)] = 0
    ProductId: Annotated[int, Key(manual=True)] = 0
    UnitPrice: float = 0.0
    Quantity: int = 0
    Discount: float = 0.0


@table("CustomerCustomerDemo")
@dataclass
class CustomerCustomerDemo:
    CustomerId: Annotated[str, Key(manual=True)] = ""
    CustomerTypeId: Annotated[str, Key(manual=True)] = ""


@dataclass
class CustomerDemographic:
    CustomerTypeId: Annotated[str, Key(manual=True)] = ""
    CustomerDescription: str | None = None


class Customer(BaseModel):
    """Pydantic entity; the key is found by the ``<Type>Id`` convention."""

    CustomerId: str
    CompanyName: str
    City: str | None = None


class Employee:
    """Plain annotated class with an ignored member and a class constant."""

    table_prefix: ClassVar[str] = "emp"

    EmployeeId: int
    LastName: str
    FirstName: str
    Notes: Annotated[str, Ignore()]


@dataclass
class Order:
    """Entity with a reserved word as a member name."""

    OrderId: int = 0
    CustomerId: str = ""
    Group: str = ""


@dataclass
class Note:
    """Entity without any key column."""

    Text: str = ""
