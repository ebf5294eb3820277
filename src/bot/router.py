"""Bot router composition."""

from __future__ import annotations

from aiogram import Router

from src.bot.handlers import handle_message


def build_router() -> Router:
    """One catch-all handler; an edited query is searched again like a new one."""

    router = Router(name="listing-search")
    router.message.register(handle_message)
    router.edited_message.register(handle_message)
    return router
