"""Plain-text reply rendering for the bot."""

from __future__ import annotations

from src.intent.parser import NeedsClarification, ParseOutcome
from src.intent.schema import Action, Intent
from src.inventory.models import LedgerResult, Product, Profile, Transaction, format_number

HELP_TEXT = (
    "Send me what happened in your shop and I'll keep the books:\n"
    "  • add 5 kg rice for 200\n"
    "  • sell 2 dozen eggs for ₹6\n"
    "  • 5 kilo chawal kharido 40 rupees\n"
    "\n"
    "Commands:\n"
    "  /add <product> <quantity> <price>\n"
    "  /sell <product> <quantity> [price]\n"
    "  /stock - what's on hand\n"
    "  /history - last transactions\n"
    "  /summary - sales, expenses and profit\n"
    "  /parse <text> - show how a command is understood, without saving it"
)

EMPTY_COMMAND_REPLY = "Please type a command, for example: add 5 kg rice for 200"

INTERNAL_ERROR_REPLY = "Sorry, something went wrong on my side. Please try again."


def _price_text(price: float | None) -> str:
    return "-" if price is None else format_number(price)


def format_intent(intent: Intent) -> str:
    """Render the parsed fields of a dry-run `/parse`."""

    return (
        f"action: {intent.action}\n"
        f"product: {intent.product}\n"
        f"quantity: {format_number(intent.quantity)}\n"
        f"price: {_price_text(intent.price)}\n"
        f"source: {intent.source}"
    )


def format_parse_outcome(outcome: ParseOutcome) -> str:
    """Render any parse outcome for `/parse`."""

    if isinstance(outcome, NeedsClarification):
        return f"kind: {outcome.kind}\n{outcome.message}"
    return format_intent(outcome.intent)


def format_ledger_result(result: LedgerResult) -> str:
    """Confirmation message after an Intent was applied."""

    tx = result.transaction
    verb = "Added" if tx.type == Action.add else "Sold"
    return (
        f"{verb} {format_number(tx.quantity)} {tx.product_name} "
        f"at {format_number(tx.price)} each (total {format_number(tx.total)}).\n"
        f"In stock: {format_number(result.product.quantity)}. "
        f"Profit so far: {format_number(result.profile.total_profit)}."
    )


def format_products(products: list[Product]) -> str:
    """Stock listing for `/stock`."""

    if not products:
        return "Your stock is empty. Try: add 5 kg rice for 200"
    lines = ["Stock (qty · cost · selling price):"]
    lines.extend(
        f"  {p.name}: {format_number(p.quantity)} · {format_number(p.cost)} · {format_number(p.price)}"
        for p in products
    )
    return "\n".join(lines)


def format_transactions(transactions: list[Transaction]) -> str:
    """Recent transactions for `/history`, newest first."""

    if not transactions:
        return "No transactions yet."
    lines = ["Recent transactions:"]
    lines.extend(
        f"  {t.created_at:%Y-%m-%d %H:%M} {t.type} {format_number(t.quantity)} {t.product_name} "
        f"@ {format_number(t.price)} = {format_number(t.total)}"
        for t in transactions
    )
    return "\n".join(lines)


def format_profile(profile: Profile) -> str:
    """Running totals for `/summary`."""

    return (
        f"Total sales: {format_number(profile.total_sales)}\n"
        f"Total expenses: {format_number(profile.total_expenses)}\n"
        f"Profit: {format_number(profile.total_profit)}"
    )
