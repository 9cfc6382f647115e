"""Bot router composition.

Slash commands are registered before the catch-all free-text handler, so `/stock` is never parsed as
a command about a product called "stock".
"""

from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart

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

router = Router(name="root")
router.message.register(handle_start, CommandStart())
router.message.register(handle_start, Command("help"))
router.message.register(handle_add, Command("add"))
router.message.register(handle_sell, Command("sell"))
router.message.register(handle_parse, Command("parse"))
router.message.register(handle_stock, Command("stock"))
router.message.register(handle_history, Command("history"))
router.message.register(handle_summary, Command("summary"))
router.message.register(handle_message)
