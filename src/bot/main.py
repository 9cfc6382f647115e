"""Bot process entrypoint.

Usage:
    python -m src.bot.main
"""

from __future__ import annotations

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties

from src.app import close_app, create_app
from src.bot.router import router
from src.config.logging import configure_logging
from src.config.settings import load_settings

logger = logging.getLogger(__name__)


async def main() -> None:
    """Run the Telegram bot polling loop."""

    settings = load_settings()
    configure_logging(settings.log_level)

    app = create_app(settings)
    await app.pool.open(wait=True)
    logger.info("starting remote_parser=%s", "on" if app.llm_config is not None else "off")

    bot = Bot(token=settings.telegram_bot_token, default=DefaultBotProperties(parse_mode=None))
    dp = Dispatcher()
    dp.include_router(router)

    try:
        await dp.start_polling(bot, app=app)
    finally:
        logger.info("shutting down")
        await close_app(app)
        await bot.session.close()


def run() -> None:
    """Console script entry point."""

    asyncio.run(main())


if __name__ == "__main__":
    run()
