"""aiogram message handlers.

Every incoming message gets exactly one plain-text reply. Parse problems and ledger conflicts are
explained to the user; internal errors are logged and answered with a generic apology.
"""

from __future__ import annotations

import logging
from time import monotonic

from aiogram.filters import CommandObject
from aiogram.types import Message

from src.app import App
from src.bot.forms import FormArgumentsError, parse_form_args
from src.bot.replies import (
    EMPTY_COMMAND_REPLY,
    HELP_TEXT,
    INTERNAL_ERROR_REPLY,
    format_ledger_result,
    format_parse_outcome,
    format_products,
    format_profile,
    format_transactions,
)
from src.db.pool import get_conn
from src.intent.parser import NeedsClarification, parse_command
from src.intent.schema import Action, Intent
from src.inventory.ledger import (
    InvalidFieldError,
    apply_intent,
    get_profile,
    list_products,
    list_transactions,
)

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


def _is_command_text(text: str) -> bool:
    return text.lstrip().startswith("/")


def _user_id(message: Message) -> int | None:
    return message.from_user.id if message.from_user is not None else None


async def _apply_and_reply(app: App, user_id: int, intent: Intent) -> str:
    async with get_conn(app.pool) as conn:
        result = await apply_intent(conn, user_id, intent)
    return format_ledger_result(result)


async def handle_start(message: Message) -> None:
    """`/start` and `/help`."""

    await message.answer(HELP_TEXT)


async def handle_message(message: Message, app: App) -> None:
    """Interpret a free-text command and apply it to the sender's ledger."""

    started = monotonic()
    raw_text = message.text or message.caption or ""
    user_id = _user_id(message)

    if not raw_text.strip() or user_id is None:
        await message.answer(EMPTY_COMMAND_REPLY)
        return
    if _is_command_text(raw_text):
        # Unknown slash command; known ones are routed before this handler.
        await message.answer(HELP_TEXT)
        return

    # noinspection PyBroadException
    try:
        outcome = await parse_command(
            raw_text,
            llm_config=app.llm_config,
            client=app.http_client,
        )
        if isinstance(outcome, NeedsClarification):
            reply = outcome.message
            logger.info("clarification kind=%s user_id=%s", outcome.kind, user_id)
        else:
            reply = await _apply_and_reply(app, user_id, outcome.intent)
            latency_ms = int((monotonic() - started) * 1000)
            logger.info(
                "handled source=%s action=%s latency_ms=%d",
                outcome.intent.source,
                outcome.intent.action,
                latency_ms,
            )
    except InvalidFieldError as exc:
        reply = exc.message
        logger.info("rejected kind=%s user_id=%s", exc.kind, user_id)
    except Exception:
        # Handler boundary: never leak internals to the chat.
        logger.exception("handler failed user_id=%s", user_id)
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def _handle_form(message: Message, command: CommandObject, app: App, action: Action) -> None:
    user_id = _user_id(message)
    if user_id is None:
        return

    # noinspection PyBroadException
    try:
        intent = parse_form_args(action, command.args)
        reply = await _apply_and_reply(app, user_id, intent)
    except (FormArgumentsError, InvalidFieldError) as exc:
        reply = str(exc)
    except Exception:
        logger.exception("form command failed action=%s user_id=%s", action, user_id)
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_add(message: Message, command: CommandObject, app: App) -> None:
    """`/add <product> <quantity> <price>`."""

    await _handle_form(message, command, app, Action.add)


async def handle_sell(message: Message, command: CommandObject, app: App) -> None:
    """`/sell <product> <quantity> [price]`."""

    await _handle_form(message, command, app, Action.sell)


async def handle_parse(message: Message, command: CommandObject, app: App) -> None:
    """`/parse <text>`: show the interpretation without touching the ledger."""

    text = command.args or ""
    if not text.strip():
        await message.answer("Usage: /parse <command>   e.g. /parse sell 2 dozen eggs for ₹300")
        return

    # noinspection PyBroadException
    try:
        outcome = await parse_command(text, llm_config=app.llm_config, client=app.http_client)
        reply = format_parse_outcome(outcome)
    except Exception:
        logger.exception("parse command failed user_id=%s", _user_id(message))
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_stock(message: Message, app: App) -> None:
    """`/stock`."""

    user_id = _user_id(message)
    if user_id is None:
        return

    # noinspection PyBroadException
    try:
        async with get_conn(app.pool) as conn:
            products = await list_products(conn, user_id)
        reply = format_products(products)
    except Exception:
        logger.exception("stock listing failed user_id=%s", user_id)
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_history(message: Message, app: App) -> None:
    """`/history`."""

    user_id = _user_id(message)
    if user_id is None:
        return

    # noinspection PyBroadException
    try:
        async with get_conn(app.pool) as conn:
            transactions = await list_transactions(conn, user_id, limit=HISTORY_LIMIT)
        reply = format_transactions(transactions)
    except Exception:
        logger.exception("history listing failed user_id=%s", user_id)
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_summary(message: Message, app: App) -> None:
    """`/summary`."""

    user_id = _user_id(message)
    if user_id is None:
        return

    # noinspection PyBroadException
    try:
        async with get_conn(app.pool) as conn:
            profile = await get_profile(conn, user_id)
        reply = format_profile(profile)
    except Exception:
        logger.exception("summary failed user_id=%s", user_id)
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)
