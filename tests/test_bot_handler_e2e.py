"""Tests for the aiogram message handlers with the ledger faked out.

Every message must receive exactly one reply: a ledger confirmation, a clarification request, a
ledger conflict explanation, or a generic apology on internal errors.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from src.bot.handlers import (
    handle_add,
    handle_history,
    handle_message,
    handle_parse,
    handle_sell,
    handle_start,
    handle_stock,
    handle_summary,
)
from src.bot.replies import EMPTY_COMMAND_REPLY, HELP_TEXT, INTERNAL_ERROR_REPLY
from src.intent.parser import CLARIFY_PRODUCT_MESSAGE
from src.intent.schema import Action, Intent
from src.inventory.ledger import InvalidFieldError
from src.inventory.models import LedgerResult, Product, Profile, Transaction

_NOW = datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)


class _FakeMessage:
    def __init__(self, text: str | None, user_id: int | None = 42) -> None:
        self.text = text
        self.caption = None
        self.from_user = SimpleNamespace(id=user_id) if user_id is not None else None
        self.answers: list[str] = []

    async def answer(self, text: str) -> None:
        """Record the outgoing bot reply (aiogram's `Message.answer` substitute)."""
        self.answers.append(text)


def _make_app() -> Any:
    return SimpleNamespace(llm_config=None, http_client=None, pool=object())


def _ledger_result(intent: Intent, user_id: int) -> LedgerResult:
    price = intent.price if intent.price is not None else 10.0
    return LedgerResult(
        product=Product(id=1, user_id=user_id, name=intent.product, quantity=7, price=12, cost=10),
        transaction=Transaction(
            id=1,
            user_id=user_id,
            type=intent.action.value,
            product_name=intent.product,
            quantity=intent.quantity,
            price=price,
            total=price * intent.quantity,
            created_at=_NOW,
        ),
        profile=Profile(user_id=user_id, total_sales=100, total_expenses=40, total_profit=60),
    )


@pytest.fixture
def applied(monkeypatch: pytest.MonkeyPatch) -> list[tuple[int, Intent]]:
    """Fake DB access; returns the list of (user_id, intent) passed to the ledger."""

    calls: list[tuple[int, Intent]] = []

    @asynccontextmanager
    async def _fake_get_conn(_pool: Any):
        yield object()

    async def _fake_apply_intent(_conn: Any, user_id: int, intent: Intent) -> LedgerResult:
        calls.append((user_id, intent))
        return _ledger_result(intent, user_id)

    monkeypatch.setattr("src.bot.handlers.get_conn", _fake_get_conn)
    monkeypatch.setattr("src.bot.handlers.apply_intent", _fake_apply_intent)
    return calls


@pytest.mark.asyncio
async def test_start_replies_help() -> None:
    message = _FakeMessage(text="/start")
    await handle_start(message)  # type: ignore[arg-type]
    assert message.answers == [HELP_TEXT]


@pytest.mark.asyncio
async def test_empty_text_asks_for_a_command(applied: list) -> None:
    message = _FakeMessage(text=None)
    await handle_message(message, _make_app())  # type: ignore[arg-type]
    assert message.answers == [EMPTY_COMMAND_REPLY]
    assert applied == []


@pytest.mark.asyncio
async def test_unknown_slash_command_gets_help(applied: list) -> None:
    message = _FakeMessage(text="/frobnicate")
    await handle_message(message, _make_app())  # type: ignore[arg-type]
    assert message.answers == [HELP_TEXT]
    assert applied == []


@pytest.mark.asyncio
async def test_free_text_is_parsed_and_applied(applied: list) -> None:
    message = _FakeMessage(text="sell 2 dozen eggs for ₹300")
    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert len(applied) == 1
    user_id, intent = applied[0]
    assert user_id == 42
    assert (intent.action, intent.product, intent.quantity, intent.price) == (
        Action.sell,
        "eggs",
        24,
        300,
    )
    assert intent.source == "fallback"
    assert message.answers == [
        "Sold 24 eggs at 300 each (total 7200).\nIn stock: 7. Profit so far: 60."
    ]


@pytest.mark.asyncio
async def test_missing_product_asks_for_clarification(applied: list) -> None:
    message = _FakeMessage(text="sell 5 kg for 100")
    await handle_message(message, _make_app())  # type: ignore[arg-type]
    assert message.answers == [CLARIFY_PRODUCT_MESSAGE]
    assert applied == []


@pytest.mark.asyncio
async def test_ledger_conflict_is_explained(monkeypatch: pytest.MonkeyPatch) -> None:
    @asynccontextmanager
    async def _fake_get_conn(_pool: Any):
        yield object()

    async def _reject(_conn: Any, _user_id: int, _intent: Intent) -> LedgerResult:
        raise InvalidFieldError("insufficient_stock", "Only 1 eggs left in stock, cannot sell 24.")

    monkeypatch.setattr("src.bot.handlers.get_conn", _fake_get_conn)
    monkeypatch.setattr("src.bot.handlers.apply_intent", _reject)

    message = _FakeMessage(text="sell 2 dozen eggs for ₹300")
    await handle_message(message, _make_app())  # type: ignore[arg-type]
    assert message.answers == ["Only 1 eggs left in stock, cannot sell 24."]


@pytest.mark.asyncio
async def test_internal_error_is_not_leaked(monkeypatch: pytest.MonkeyPatch) -> None:
    @asynccontextmanager
    async def _broken_get_conn(_pool: Any):
        raise RuntimeError("connection pool exhausted: secret details")
        yield  # pragma: no cover

    monkeypatch.setattr("src.bot.handlers.get_conn", _broken_get_conn)

    message = _FakeMessage(text="add 5 kg rice for 200")
    await handle_message(message, _make_app())  # type: ignore[arg-type]
    assert message.answers == [INTERNAL_ERROR_REPLY]


@pytest.mark.asyncio
async def test_form_add_bypasses_interpreter(applied: list) -> None:
    message = _FakeMessage(text="/add basmati rice 5 120")
    command = SimpleNamespace(args="basmati rice 5 120")
    await handle_add(message, command, _make_app())  # type: ignore[arg-type]

    _, intent = applied[0]
    assert intent.source == "form"
    assert (intent.product, intent.quantity, intent.price) == ("basmati rice", 5, 120)
    assert message.answers[0].startswith("Added 5 basmati rice at 120 each")


@pytest.mark.asyncio
async def test_form_sell_with_bad_arguments_shows_usage(applied: list) -> None:
    message = _FakeMessage(text="/sell")
    await handle_sell(message, SimpleNamespace(args=None), _make_app())  # type: ignore[arg-type]
    assert message.answers[0].startswith("Usage: /sell")
    assert applied == []


@pytest.mark.asyncio
async def test_parse_is_a_dry_run(applied: list) -> None:
    message = _FakeMessage(text="/parse 2 kg sugar 200")
    command = SimpleNamespace(args="2 kg sugar 200")
    await handle_parse(message, command, _make_app())  # type: ignore[arg-type]

    assert applied == []
    assert message.answers == [
        "action: add\nproduct: sugar\nquantity: 2\nprice: 200\nsource: fallback"
    ]


@pytest.mark.asyncio
async def test_parse_reports_failure_kind(applied: list) -> None:
    message = _FakeMessage(text="/parse sell 5 kg for 100")
    command = SimpleNamespace(args="sell 5 kg for 100")
    await handle_parse(message, command, _make_app())  # type: ignore[arg-type]
    assert message.answers[0].startswith("kind: ambiguous_command\n")


@pytest.mark.asyncio
async def test_summary_and_history(monkeypatch: pytest.MonkeyPatch) -> None:
    @asynccontextmanager
    async def _fake_get_conn(_pool: Any):
        yield object()

    async def _profile(_conn: Any, user_id: int) -> Profile:
        return Profile(user_id=user_id, total_sales=500, total_expenses=320.5, total_profit=179.5)

    async def _transactions(_conn: Any, user_id: int, *, limit: int) -> list[Transaction]:
        assert limit == 10
        return [
            Transaction(
                id=2,
                user_id=user_id,
                type="sell",
                product_name="eggs",
                quantity=24,
                price=6,
                total=144,
                created_at=_NOW,
            )
        ]

    monkeypatch.setattr("src.bot.handlers.get_conn", _fake_get_conn)
    monkeypatch.setattr("src.bot.handlers.get_profile", _profile)
    monkeypatch.setattr("src.bot.handlers.list_transactions", _transactions)

    message = _FakeMessage(text="/summary")
    await handle_summary(message, _make_app())  # type: ignore[arg-type]
    assert message.answers == ["Total sales: 500\nTotal expenses: 320.5\nProfit: 179.5"]

    message = _FakeMessage(text="/history")
    await handle_history(message, _make_app())  # type: ignore[arg-type]
    assert message.answers == [
        "Recent transactions:\n  2025-01-15 09:30 sell 24 eggs @ 6 = 144"
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("handler", [handle_stock, handle_history, handle_summary])
async def test_read_commands_apologize_when_db_fails(
        monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture, handler: Any
) -> None:
    @asynccontextmanager
    async def _broken_get_conn(_pool: Any):
        raise RuntimeError("db down")
        yield  # pragma: no cover

    monkeypatch.setattr("src.bot.handlers.get_conn", _broken_get_conn)

    message = _FakeMessage(text="/stock")
    await handler(message, _make_app())

    assert message.answers == [INTERNAL_ERROR_REPLY]
    assert any(record.exc_info for record in caplog.records)


@pytest.mark.asyncio
async def test_parse_apologizes_when_interpreter_crashes(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _crash(*_args: Any, **_kwargs: Any) -> Any:
        raise RuntimeError("unexpected")

    monkeypatch.setattr("src.bot.handlers.parse_command", _crash)

    message = _FakeMessage(text="/parse add 5 kg rice")
    await handle_parse(message, SimpleNamespace(args="add 5 kg rice"), _make_app())  # type: ignore[arg-type]
    assert message.answers == [INTERNAL_ERROR_REPLY]
