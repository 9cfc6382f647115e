"""Form-style slash command arguments (`/add <name> <qty> <price>`, `/sell <name> <qty> [price]`).

These commands bypass the natural-language interpreter: the trailing numbers are the quantity and
(optionally) the unit price, everything before them is the product name.
"""

from __future__ import annotations

import math

from pydantic import ValidationError

from src.intent.schema import MAX_PRODUCT_TOKENS, Action, Intent


class FormArgumentsError(ValueError):
    """Raised when slash command arguments cannot form an Intent."""


USAGE: dict[Action, str] = {
    Action.add: "/add <product> <quantity> <price>   e.g. /add basmati rice 5 120",
    Action.sell: "/sell <product> <quantity> [price]   e.g. /sell eggs 24 6",
}


def _as_number(token: str) -> float | None:
    try:
        value = float(token.replace(",", ""))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_form_args(action: Action, args: str | None) -> Intent:
    """Build an Intent from slash command arguments.

    Raises:
        FormArgumentsError: With a user-facing message including the usage line.
    """

    tokens = (args or "").split()

    numbers: list[float] = []
    while tokens and len(numbers) < 2:
        value = _as_number(tokens[-1])
        if value is None:
            break
        numbers.insert(0, value)
        tokens.pop()

    name = " ".join(tokens)
    if not name or not numbers:
        raise FormArgumentsError(f"Usage: {USAGE[action]}")

    quantity = numbers[0]
    price = numbers[1] if len(numbers) > 1 else None

    try:
        return Intent(action=action, product=name, quantity=quantity, price=price, source="form")
    except ValidationError as exc:
        field = str(exc.errors()[0]["loc"][0])
        if field == "product":
            reason = f"product name must be 1-{MAX_PRODUCT_TOKENS} words"
        elif field == "quantity":
            reason = "quantity must be a positive number"
        else:
            reason = "price must be zero or more"
        raise FormArgumentsError(f"Invalid {field}: {reason}.\nUsage: {USAGE[action]}") from exc
