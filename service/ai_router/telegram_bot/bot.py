"""
Main Telegram update entry point.

Parses the webhook body with python-telegram-bot's Update.de_json and
routes it to the inline / message / callback handler. Every update is
handled on its own; a failure is logged and never affects the next one.
"""

from __future__ import annotations

from typing import AbstractSet, Optional

from telegram import Update

from ai_router.config import get_service_registry, get_settings
from ai_router.logging_config import bot_logger as logger
from ai_router.services.ai_client import get_ai_client
from ai_router.services.session_store import get_session_store
from .dispatcher import CommandDispatcher
from .handlers import (
    UpdateOutcome,
    handle_callback_query,
    handle_inline_query,
    handle_message,
)


# Global dispatcher instance (initialized once)
_dispatcher: Optional[CommandDispatcher] = None


def get_dispatcher() -> CommandDispatcher:
    """Get or create the command dispatcher from settings."""
    global _dispatcher

    if _dispatcher is None:
        registry = get_service_registry()
        _dispatcher = CommandDispatcher(registry, get_session_store(), get_ai_client())
        logger.info(f"Dispatcher initialized with services: {', '.join(registry)}")

    return _dispatcher


async def handle_telegram_update(
    update_data: dict,
    dispatcher: Optional[CommandDispatcher] = None,
    whitelist: Optional[AbstractSet[int]] = None,
) -> UpdateOutcome:
    """
    Process one incoming webhook update from Telegram.

    This is called by the FastAPI webhook endpoint. Tests pass their own
    dispatcher and whitelist.
    """
    try:
        dispatcher = dispatcher or get_dispatcher()
        if whitelist is None:
            whitelist = get_settings().allowed_user_ids

        update = Update.de_json(update_data, None)
        if update is None:
            logger.warning("Received invalid update data")
            return UpdateOutcome.IGNORED

        if update.inline_query:
            return await handle_inline_query(update.inline_query, dispatcher, whitelist)
        if update.message:
            return await handle_message(update.message, dispatcher, whitelist)
        if update.callback_query:
            return await handle_callback_query(update.callback_query, dispatcher, whitelist)

        logger.debug(f"Ignoring update_id={update.update_id} with no supported payload")
        return UpdateOutcome.IGNORED

    except Exception as e:
        logger.error(f"Failed to process update: {e}", exc_info=True)
        return UpdateOutcome.FAILED


async def initialize_bot() -> None:
    """
    Build the dispatcher eagerly (call on startup) so config errors surface early.
    """
    get_dispatcher()
    logger.info("Bot initialized successfully")


async def shutdown_bot() -> None:
    """
    Release shared clients (call on shutdown).
    """
    global _dispatcher
    from ai_router.redis_client import close_redis
    from ai_router.services.ai_client import close_ai_client

    await close_ai_client()
    await close_redis()
    _dispatcher = None
    logger.info("Bot shut down")
