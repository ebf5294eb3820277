"""Bot process entrypoint (`python -m src.bot.main`)."""

from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties

from src.app import create_app
from src.bot.router import build_router
from src.config.logging import configure_logging
from src.config.settings import load_settings


async def main() -> None:
    """Open the DB pool and run the Telegram polling loop until stopped."""

    settings = load_settings()
    configure_logging()

    app = create_app(settings)
    await app.start()

    bot = Bot(token=settings.telegram_bot_token, default=DefaultBotProperties(parse_mode=None))
    dp = Dispatcher()
    dp.include_router(build_router())

    try:
        await dp.start_polling(bot, app=app)
    finally:
        await app.stop()
        await bot.session.close()


def run() -> None:
    """Console-script entry point."""

    asyncio.run(main())


if __name__ == "__main__":
    run()
