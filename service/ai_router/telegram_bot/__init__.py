"""
Telegram bot module for the AI router.

ARCHITECTURE: Thin routing layer over a pure command dispatcher.
- Receives webhook updates from Telegram
- Applies the whitelist gate
- Reads the user's service/model selection from Redis
- Dispatches the command (may call an AI backend or update the selection)
- Formats the result for the surface it came from (inline / chat / button)
"""

from .bot import handle_telegram_update, initialize_bot, shutdown_bot
from .dispatcher import CommandDispatcher, Surface, parse_command, parse_callback_token
from .handlers import UpdateOutcome

__all__ = [
    "handle_telegram_update",
    "initialize_bot",
    "shutdown_bot",
    "CommandDispatcher",
    "Surface",
    "parse_command",
    "parse_callback_token",
    "UpdateOutcome",
]
