"""
Turns dispatcher ResultSets into Bot API objects.

- inline queries: one InlineQueryResultArticle per item
- direct messages: plain text, or a button grid for service/model choices
- callbacks: toast text plus the confirmation message text
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    InlineQueryResultArticle,
    InputTextMessageContent,
)
from telegram.constants import (
    InlineKeyboardButtonLimit,
    InlineQueryResultLimit,
    MessageLimit,
    ParseMode,
)

from ai_router.logging_config import get_logger
from ai_router.schemas import ResultItem, ResultSet

logger = get_logger("formatter")

# Telegram limits callback answer text to 200 characters
MAX_TOAST_LENGTH = 200


@dataclass
class OutgoingMessage:
    text: str
    parse_mode: Optional[str] = None
    reply_markup: Optional[InlineKeyboardMarkup] = None


def _parse_mode(item: ResultItem) -> Optional[str]:
    return ParseMode.MARKDOWN if item.markdown else None


def _fits(value: str, limit: int) -> bool:
    return len(value.encode("utf-8")) <= limit


def _result_id(item_id: str) -> str:
    # Long service or model names would overflow the 64 byte result id
    if _fits(item_id, InlineQueryResultLimit.MAX_ID_LENGTH):
        return item_id
    return hashlib.sha256(item_id.encode("utf-8")).hexdigest()[:32]


def to_inline_results(result: ResultSet, markdown: bool = True) -> list[InlineQueryResultArticle]:
    """
    One article per item.

    Message text is cut to Telegram's 4096 character limit. With
    markdown=False every article is sent as plain text, used to retry an
    answer Telegram rejected for bad Markdown.
    """
    return [
        InlineQueryResultArticle(
            id=_result_id(item.id),
            title=item.title,
            description=item.description,
            input_message_content=InputTextMessageContent(
                message_text=item.reply_text[:MessageLimit.MAX_TEXT_LENGTH],
                parse_mode=_parse_mode(item) if markdown else None,
            ),
        )
        for item in result.items
    ]


def to_keyboard(result: ResultSet) -> InlineKeyboardMarkup:
    """
    One button per row, each carrying its callback token.

    Tokens over Telegram's 64 byte callback_data limit are logged and
    left out; Telegram rejects a keyboard holding any of them.
    """
    rows = []
    for item in result.items:
        if not item.token:
            continue
        if not _fits(item.token, InlineKeyboardButtonLimit.MAX_CALLBACK_DATA):
            logger.warning(f"Skipping button {item.title!r}: callback data exceeds 64 bytes")
            continue
        rows.append([InlineKeyboardButton(item.title, callback_data=item.token)])
    return InlineKeyboardMarkup(rows)


def to_message(result: ResultSet) -> Optional[OutgoingMessage]:
    """Single outgoing chat message, or None when there is nothing to say."""
    if not result:
        return None

    if result.is_choice:
        keyboard = to_keyboard(result)
        return OutgoingMessage(
            text=result.header or "Choose:",
            reply_markup=keyboard if keyboard.inline_keyboard else None,
        )

    if len(result.items) == 1:
        item = result.items[0]
        return OutgoingMessage(text=item.reply_text, parse_mode=_parse_mode(item))

    return OutgoingMessage(text="\n\n".join(item.reply_text for item in result.items))


def to_toast(result: ResultSet) -> Optional[str]:
    if not result.toast:
        return None
    return result.toast[:MAX_TOAST_LENGTH]
