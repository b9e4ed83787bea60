"""
Telegram update handlers, one per surface.

Each handler:
1. Applies the whitelist gate
2. Extracts plain text / ids from the Telegram object
3. Runs the dispatcher
4. Sends the formatted reply

Denied users get an "access denied" article on inline queries and
nothing at all on direct messages and callbacks.
"""

from __future__ import annotations

from enum import Enum
from typing import AbstractSet, Optional

from telegram import CallbackQuery, InlineQuery, Message

from ai_router.logging_config import get_logger
from ai_router.schemas import ResultSet
from . import formatter
from .auth import ACCESS_DENIED_ITEM, is_allowed
from .dispatcher import CommandDispatcher, CommandKind, Surface, parse_command
from .telegram_api import (
    TelegramAPIError,
    answer_callback_query,
    answer_inline_query,
    get_file_url,
    send_chat_action,
    send_message,
)

logger = get_logger("handlers")


class UpdateOutcome(str, Enum):
    INLINE_ANSWERED = "inline_answered"
    MESSAGE_SENT = "message_sent"
    CALLBACK_ANSWERED = "callback_answered"
    DENIED = "denied"
    IGNORED = "ignored"
    FAILED = "failed"


async def handle_inline_query(
    query: InlineQuery,
    dispatcher: CommandDispatcher,
    whitelist: AbstractSet[int],
) -> UpdateOutcome:
    user_id = query.from_user.id
    logger.info(f"Inline query from user_id={user_id}, query_len={len(query.query)}")

    if not is_allowed(user_id, whitelist):
        logger.warning(f"Denied inline query from user_id={user_id}")
        await answer_inline_query(query.id, formatter.to_inline_results(ResultSet(items=[ACCESS_DENIED_ITEM])))
        return UpdateOutcome.DENIED

    result = await dispatcher.dispatch(user_id, query.query, Surface.INLINE)
    try:
        await answer_inline_query(query.id, formatter.to_inline_results(result))
    except TelegramAPIError as e:
        # 400 here means Telegram could not parse the Markdown of an AI answer
        if e.status_code != 400:
            raise
        logger.warning(f"answerInlineQuery rejected for user_id={user_id}: {e.description}, retrying as plain text")
        await answer_inline_query(query.id, formatter.to_inline_results(result, markdown=False))
    return UpdateOutcome.INLINE_ANSWERED


def _message_text(message: Optional[Message]) -> Optional[str]:
    if message is None:
        return None
    return message.text or message.caption


def _largest_photo_id(message: Optional[Message]) -> Optional[str]:
    if message is None or not message.photo:
        return None
    return message.photo[-1].file_id


async def _resolve_image(message: Message) -> Optional[str]:
    """
    Image for the AI prompt: the message's own photo, else the quoted one.

    A failed getFile drops the image instead of failing the request.
    """
    file_id = _largest_photo_id(message) or _largest_photo_id(message.reply_to_message)
    if not file_id:
        return None
    try:
        return await get_file_url(file_id)
    except (TelegramAPIError, KeyError) as e:
        logger.warning(f"Could not resolve photo file_id={file_id}: {e}")
        return None


async def handle_message(
    message: Message,
    dispatcher: CommandDispatcher,
    whitelist: AbstractSet[int],
) -> UpdateOutcome:
    user = message.from_user
    if user is None:
        return UpdateOutcome.IGNORED

    chat_id = message.chat_id
    text = (_message_text(message) or "").strip()
    logger.info(f"Received message from user_id={user.id}, username={user.username}, text_len={len(text)}")

    if not is_allowed(user.id, whitelist):
        logger.warning(f"Ignoring message from non-whitelisted user_id={user.id}")
        return UpdateOutcome.DENIED

    quoted_text = None
    image_url = None
    if parse_command(text).kind == CommandKind.PROMPT:
        quoted_text = _message_text(message.reply_to_message)
        image_url = await _resolve_image(message)
        await send_chat_action(chat_id, "typing")

    result = await dispatcher.dispatch(
        user.id, text, Surface.MESSAGE, quoted_text=quoted_text, image_url=image_url
    )

    outgoing = formatter.to_message(result)
    if outgoing is None:
        return UpdateOutcome.IGNORED

    await send_message(chat_id, outgoing.text, parse_mode=outgoing.parse_mode, reply_markup=outgoing.reply_markup)
    return UpdateOutcome.MESSAGE_SENT


async def handle_callback_query(
    query: CallbackQuery,
    dispatcher: CommandDispatcher,
    whitelist: AbstractSet[int],
) -> UpdateOutcome:
    """
    Handle inline keyboard button taps.

    Callback data format: "svc:<service>" or "mdl:<model>".
    A successful switch is acknowledged twice: a toast on the tap and a
    confirmation message in the chat the buttons came from.
    """
    user_id = query.from_user.id
    logger.info(f"Callback from user_id={user_id}: {query.data}")

    if not is_allowed(user_id, whitelist):
        logger.warning(f"Ignoring callback from non-whitelisted user_id={user_id}")
        return UpdateOutcome.DENIED

    result = await dispatcher.dispatch_callback(user_id, query.data)

    # Always answer to remove the loading state on the button
    await answer_callback_query(query.id, formatter.to_toast(result))

    outgoing = formatter.to_message(result)
    if outgoing is not None and query.message is not None:
        await send_message(query.message.chat.id, outgoing.text, parse_mode=outgoing.parse_mode)

    return UpdateOutcome.CALLBACK_ANSWERED
