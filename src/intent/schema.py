"""Intent schema (Pydantic models).

This schema is the contract between the command parsers (remote/fallback/form) and the inventory
ledger. An `Intent` that exists is always applicable: the action is known, the product is named and
the quantity is positive.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PRODUCT_TOKENS = 3

ParseSource = Literal["remote", "fallback", "form"]


class Action(StrEnum):
    """Supported inventory mutations."""

    add = "add"
    sell = "sell"


class Intent(BaseModel):
    """A fully validated inventory command."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    action: Action
    product: str = Field(min_length=1)
    quantity: float = Field(gt=0, allow_inf_nan=False)
    price: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    source: ParseSource

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, value: Any) -> Any:
        """Accept any casing/padding of `add`/`sell` (LLMs often answer "Sell")."""

        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("quantity", "price", mode="before")
    @classmethod
    def reject_booleans(cls, value: Any) -> Any:
        """`true` is not a quantity; pydantic would otherwise read it as 1."""

        if isinstance(value, bool):
            raise ValueError("must be a number, not a boolean")
        return value

    @field_validator("product")
    @classmethod
    def validate_product(cls, value: str) -> str:
        """Collapse inner whitespace and cap the name at three tokens."""

        tokens = value.split()
        if not tokens:
            raise ValueError("product must not be blank")
        if len(tokens) > MAX_PRODUCT_TOKENS:
            raise ValueError(f"product must have at most {MAX_PRODUCT_TOKENS} words")
        return " ".join(tokens)

    def as_payload(self) -> dict[str, Any]:
        """Return the wire shape `{action, product, quantity, price, source}`."""

        return self.model_dump(mode="json")


def intent_from_obj(obj: Any, *, source: ParseSource) -> Intent:
    """Validate an Intent from an arbitrary decoded JSON object.

    The object must carry all four business keys; `price` may be `null` but not absent.
    """

    if not isinstance(obj, dict):
        raise ValueError("intent must be a JSON object")

    missing = [key for key in ("action", "product", "quantity", "price") if key not in obj]
    if missing:
        raise ValueError(f"missing required fields: {', '.join(missing)}")

    return Intent.model_validate(
        {
            "action": obj["action"],
            "product": obj["product"],
            "quantity": obj["quantity"],
            "price": obj["price"],
            "source": source,
        }
    )
