"""
Telegram Bot API client for sending replies.

Simple wrappers around the Bot API methods the router uses. Payload
objects come from python-telegram-bot and are sent with httpx.

Request URLs contain the bot token, so failures are raised as
TelegramAPIError carrying only the method name, status and Telegram's
description, never the httpx error text.
"""

from typing import Optional, Sequence

import httpx
from telegram import InlineKeyboardMarkup, InlineQueryResult
from telegram.constants import MessageLimit

from ai_router.config import get_settings
from ai_router.logging_config import get_logger

logger = get_logger("telegram_api")

API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = MessageLimit.MAX_TEXT_LENGTH

# Tests swap in an httpx.MockTransport here
_transport: Optional[httpx.AsyncBaseTransport] = None


class TelegramAPIError(Exception):
    """A Bot API call failed. The message never includes the request URL."""

    def __init__(self, method: str, status_code: Optional[int] = None, description: str = ""):
        self.method = method
        self.status_code = status_code
        self.description = description
        super().__init__(f"Telegram {method} failed: {status_code or 'network error'} {description}".strip())


def _method_url(method: str) -> str:
    settings = get_settings()
    return f"{API_BASE}/bot{settings.telegram_bot_token}/{method}"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=_transport)


def _description(response: httpx.Response) -> str:
    try:
        return str(response.json().get("description", ""))
    except ValueError:
        return ""


async def _call(method: str, payload: dict) -> dict:
    try:
        async with _client() as client:
            response = await client.post(_method_url(method), json=payload)
    except httpx.HTTPError as e:
        raise TelegramAPIError(method, description=type(e).__name__) from None

    if not response.is_success:
        raise TelegramAPIError(method, response.status_code, _description(response))
    return response.json()


def split_text(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into message-sized chunks, preferring line breaks."""
    chunks = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    chunks.append(text)
    return chunks


async def answer_inline_query(
    inline_query_id: str,
    results: Sequence[InlineQueryResult],
    cache_time: int = 0
) -> None:
    """
    Answer an inline query.

    Args:
        inline_query_id: Inline query ID
        results: Articles to show
        cache_time: Seconds Telegram may cache the answer. Results depend
                    on the user's session, so the default is 0.
    """
    await _call("answerInlineQuery", {
        "inline_query_id": inline_query_id,
        "results": [result.to_dict() for result in results],
        "cache_time": cache_time,
        "is_personal": True,
    })


async def send_message(
    chat_id: int,
    text: str,
    parse_mode: Optional[str] = None,
    reply_markup: Optional[InlineKeyboardMarkup] = None
) -> dict:
    """
    Send message to a chat.

    Text over Telegram's length limit goes out as several messages; the
    keyboard is attached to the last one. A chunk rejected with 400 while
    a parse mode is set (unbalanced Markdown) is resent as plain text.

    Args:
        chat_id: Telegram chat ID
        text: Message text
        parse_mode: Optional parse mode (Markdown, HTML)
        reply_markup: Optional inline keyboard

    Returns:
        Response dict of the last message sent
    """
    chunks = split_text(text)
    result: dict = {}

    for index, chunk in enumerate(chunks):
        payload = {
            "chat_id": chat_id,
            "text": chunk
        }

        if reply_markup and index == len(chunks) - 1:
            payload["reply_markup"] = reply_markup.to_dict()

        if parse_mode:
            try:
                result = await _call("sendMessage", {**payload, "parse_mode": parse_mode})
                continue
            except TelegramAPIError as e:
                if e.status_code != 400:
                    raise
                logger.warning(f"sendMessage rejected {parse_mode} text for chat_id={chat_id}, resending as plain text")

        result = await _call("sendMessage", payload)

    return result


async def answer_callback_query(callback_query_id: str, text: Optional[str] = None) -> None:
    """Acknowledge a button tap. With text, Telegram shows it as a toast."""
    payload = {"callback_query_id": callback_query_id}
    if text:
        payload["text"] = text
    await _call("answerCallbackQuery", payload)


async def send_chat_action(chat_id: int, action: str = "typing") -> None:
    """
    Send chat action (typing indicator).

    Best-effort: failures are logged and ignored.
    """
    try:
        await _call("sendChatAction", {"chat_id": chat_id, "action": action})
    except TelegramAPIError as e:
        logger.debug(f"sendChatAction failed for chat_id={chat_id}: {e}")


async def get_file_url(file_id: str) -> str:
    """Resolve a file_id to a downloadable URL via getFile. The URL embeds the bot token."""
    settings = get_settings()
    data = await _call("getFile", {"file_id": file_id})
    file_path = data["result"]["file_path"]
    return f"{API_BASE}/file/bot{settings.telegram_bot_token}/{file_path}"


async def set_webhook(url: str, secret_token: Optional[str] = None) -> dict:
    """Register the webhook URL with Telegram."""
    payload = {
        "url": url,
        "allowed_updates": ["message", "inline_query", "callback_query"],
    }
    if secret_token:
        payload["secret_token"] = secret_token
    return await _call("setWebhook", payload)

