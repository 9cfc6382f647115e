"""Ledger rows as returned from Postgres (`psycopg.rows.class_row` targets)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Product:
    """A product owned by one shop owner; `price` is the selling price, `cost` the cost price."""

    id: int
    user_id: int
    name: str
    quantity: float
    price: float
    cost: float


@dataclass(frozen=True)
class Transaction:
    """An immutable record of one stock movement."""

    id: int
    user_id: int
    type: str
    product_name: str
    quantity: float
    price: float
    total: float
    created_at: datetime


@dataclass(frozen=True)
class Profile:
    """Running totals for one shop owner."""

    user_id: int
    total_sales: float = 0.0
    total_expenses: float = 0.0
    total_profit: float = 0.0


@dataclass(frozen=True)
class LedgerResult:
    """Everything a single applied Intent touched."""

    product: Product
    transaction: Transaction
    profile: Profile


def format_number(value: float) -> str:
    """Render a quantity/amount without a useless `.0` ("5", "2.5", "1200.75")."""

    rounded = round(value, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0")
