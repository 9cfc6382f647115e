"""Apply validated Intents to the Postgres inventory ledger.

Each mutation runs in one transaction:
    - add: upsert the product (quantity += q, cost := price), record the expense,
    - sell: lock the product row, check stock, decrement it, record the revenue,
and always appends a transaction row and refreshes the owner's profit totals.

All SQL is parameterized; product names are matched case-insensitively.
"""

from __future__ import annotations

import logging
from typing import Literal

from psycopg import AsyncConnection
from psycopg.rows import class_row

from src.intent.schema import Action, Intent
from src.inventory.models import LedgerResult, Product, Profile, Transaction, format_number

logger = logging.getLogger(__name__)

InvalidFieldKind = Literal["missing_price", "product_not_found", "insufficient_stock"]

# New products are listed at cost plus 20% until the owner sells at an explicit price.
SELLING_MARKUP = 1.2

_PRODUCT_COLUMNS = "id, user_id, name, quantity, price, cost"
_TRANSACTION_COLUMNS = "id, user_id, type, product_name, quantity, price, total, created_at"
_PROFILE_COLUMNS = "user_id, total_sales, total_expenses, total_profit"


class InvalidFieldError(ValueError):
    """A resolved Intent conflicts with the ledger state (unknown product, too little stock...).

    Unlike parse failures, these are shown to the user verbatim.
    """

    def __init__(self, kind: InvalidFieldKind, message: str) -> None:
        super().__init__(message)
        self.kind: InvalidFieldKind = kind
        self.message = message


def default_selling_price(cost: float) -> float:
    """Initial selling price for a newly stocked product."""

    return round(cost * SELLING_MARKUP, 2)


async def _append_transaction(
        conn: AsyncConnection,
        *,
        user_id: int,
        action: Action,
        product_name: str,
        quantity: float,
        price: float,
) -> Transaction:
    async with conn.cursor(row_factory=class_row(Transaction)) as cur:
        await cur.execute(
            f"""
            INSERT INTO transactions (user_id, type, product_name, quantity, price, total)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {_TRANSACTION_COLUMNS}
            """,
            (user_id, action.value, product_name, quantity, price, price * quantity),
        )
        row = await cur.fetchone()
    if row is None:
        raise RuntimeError("transaction insert returned no row")
    return row


async def _bump_profile(
        conn: AsyncConnection,
        *,
        user_id: int,
        sales: float = 0.0,
        expenses: float = 0.0,
) -> Profile:
    async with conn.cursor(row_factory=class_row(Profile)) as cur:
        await cur.execute(
            f"""
            INSERT INTO profiles (user_id, total_sales, total_expenses, total_profit)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id) DO UPDATE
                SET total_sales    = profiles.total_sales + EXCLUDED.total_sales,
                    total_expenses = profiles.total_expenses + EXCLUDED.total_expenses,
                    total_profit   = (profiles.total_sales + EXCLUDED.total_sales)
                                   - (profiles.total_expenses + EXCLUDED.total_expenses),
                    updated_at     = NOW()
            RETURNING {_PROFILE_COLUMNS}
            """,
            (user_id, sales, expenses, sales - expenses),
        )
        row = await cur.fetchone()
    if row is None:
        raise RuntimeError("profile upsert returned no row")
    return row


async def _apply_add(conn: AsyncConnection, user_id: int, intent: Intent) -> LedgerResult:
    if intent.price is None:
        raise InvalidFieldError(
            "missing_price",
            f'How much did you pay for the {intent.product}? '
            f'Try "add {format_number(intent.quantity)} {intent.product} for <price>".',
        )

    async with conn.cursor(row_factory=class_row(Product)) as cur:
        await cur.execute(
            f"""
            INSERT INTO products (user_id, name, quantity, price, cost)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (user_id, lower(name)) DO UPDATE
                SET quantity   = products.quantity + EXCLUDED.quantity,
                    cost       = EXCLUDED.cost,
                    updated_at = NOW()
            RETURNING {_PRODUCT_COLUMNS}
            """,
            (
                user_id,
                intent.product,
                intent.quantity,
                default_selling_price(intent.price),
                intent.price,
            ),
        )
        product = await cur.fetchone()
    if product is None:
        raise RuntimeError("product upsert returned no row")

    transaction = await _append_transaction(
        conn,
        user_id=user_id,
        action=Action.add,
        product_name=product.name,
        quantity=intent.quantity,
        price=intent.price,
    )
    profile = await _bump_profile(conn, user_id=user_id, expenses=transaction.total)
    return LedgerResult(product=product, transaction=transaction, profile=profile)


async def _apply_sell(conn: AsyncConnection, user_id: int, intent: Intent) -> LedgerResult:
    async with conn.cursor(row_factory=class_row(Product)) as cur:
        await cur.execute(
            f"""
            SELECT {_PRODUCT_COLUMNS}
            FROM products
            WHERE user_id = %s AND lower(name) = lower(%s)
            FOR UPDATE
            """,
            (user_id, intent.product),
        )
        product = await cur.fetchone()

        if product is None:
            raise InvalidFieldError(
                "product_not_found", f'"{intent.product}" is not in your stock yet.'
            )
        if product.quantity < intent.quantity:
            raise InvalidFieldError(
                "insufficient_stock",
                f"Only {format_number(product.quantity)} {product.name} left in stock, "
                f"cannot sell {format_number(intent.quantity)}.",
            )

        await cur.execute(
            f"""
            UPDATE products
            SET quantity   = quantity - %s,
                updated_at = NOW()
            WHERE id = %s
            RETURNING {_PRODUCT_COLUMNS}
            """,
            (intent.quantity, product.id),
        )
        updated = await cur.fetchone()
    if updated is None:
        raise RuntimeError("locked product row disappeared during update")

    unit_price = intent.price if intent.price is not None else product.price
    transaction = await _append_transaction(
        conn,
        user_id=user_id,
        action=Action.sell,
        product_name=updated.name,
        quantity=intent.quantity,
        price=unit_price,
    )
    profile = await _bump_profile(conn, user_id=user_id, sales=transaction.total)
    return LedgerResult(product=updated, transaction=transaction, profile=profile)


async def apply_intent(conn: AsyncConnection, user_id: int, intent: Intent) -> LedgerResult:
    """Apply `intent` for `user_id` atomically.

    Raises:
        InvalidFieldError: If the intent cannot be applied to the current stock.
    """

    async with conn.transaction():
        if intent.action == Action.add:
            result = await _apply_add(conn, user_id, intent)
        else:
            result = await _apply_sell(conn, user_id, intent)

    logger.info(
        "ledger applied user_id=%s action=%s product=%s quantity=%s total=%s",
        user_id,
        intent.action,
        result.product.name,
        intent.quantity,
        result.transaction.total,
    )
    return result


async def list_products(conn: AsyncConnection, user_id: int) -> list[Product]:
    """Return the owner's products, alphabetically."""

    async with conn.cursor(row_factory=class_row(Product)) as cur:
        await cur.execute(
            f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE user_id = %s ORDER BY lower(name)",
            (user_id,),
        )
        return await cur.fetchall()


async def list_transactions(
        conn: AsyncConnection,
        user_id: int,
        *,
        limit: int = 10,
) -> list[Transaction]:
    """Return the owner's most recent transactions, newest first."""

    async with conn.cursor(row_factory=class_row(Transaction)) as cur:
        await cur.execute(
            f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM transactions
            WHERE user_id = %s
            ORDER BY created_at DESC, id DESC
            LIMIT %s
            """,
            (user_id, limit),
        )
        return await cur.fetchall()


async def get_profile(conn: AsyncConnection, user_id: int) -> Profile:
    """Return the owner's running totals (all zero before the first transaction)."""

    async with conn.cursor(row_factory=class_row(Profile)) as cur:
        await cur.execute(
            f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE user_id = %s",
            (user_id,),
        )
        row = await cur.fetchone()
    return row if row is not None else Profile(user_id=user_id)
