"""
Chat completion client for the two supported upstream dialects.

- openai:    POST {base_url}/chat/completions, Bearer auth
- anthropic: POST {base_url}/messages, x-api-key + anthropic-version headers

One attempt per call, no retries. Any network error, non-2xx status or
malformed body raises AIClientError. A well-formed body without the
expected text yields NO_RESPONSE instead.
"""

from __future__ import annotations

import base64
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ai_router.logging_config import get_logger
from ai_router.schemas import (
    ChatMessage,
    Dialect,
    MessageContent,
    ServiceConfig,
    TextOnly,
    TextWithImage,
)

logger = get_logger("ai_client")

MAX_TOKENS = 1000
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_IMAGE_MEDIA_TYPE = "image/jpeg"
NO_RESPONSE = "No response"


class AIClientError(Exception):
    """Upstream call failed (network error, non-2xx, or malformed body)."""


# =========================================================================
# Response decoding
# =========================================================================

class OpenAIMessage(BaseModel):
    content: Optional[str] = None


class OpenAIChoice(BaseModel):
    message: Optional[OpenAIMessage] = None


class OpenAIResponse(BaseModel):
    choices: list[OpenAIChoice] = []

    def text(self) -> Optional[str]:
        if self.choices and self.choices[0].message:
            return self.choices[0].message.content
        return None


class AnthropicBlock(BaseModel):
    type: str = "text"
    text: Optional[str] = None


class AnthropicResponse(BaseModel):
    content: list[AnthropicBlock] = []

    def text(self) -> Optional[str]:
        for block in self.content:
            if block.type == "text":
                return block.text
        return None


def _decode(response: httpx.Response, model_cls: type[OpenAIResponse] | type[AnthropicResponse], label: str) -> str:
    try:
        parsed = model_cls.model_validate_json(response.content)
    except ValidationError as e:
        raise AIClientError(f"{label} API returned a malformed response: {e.error_count()} error(s)") from e
    return parsed.text() or NO_RESPONSE


# =========================================================================
# Request building
# =========================================================================

def build_messages(prompt: str, image_url: Optional[str] = None, system_prompt: Optional[str] = None) -> list[ChatMessage]:
    """Normalize a prompt (and optional image) into the internal message list."""
    content: MessageContent = TextWithImage(prompt, image_url) if image_url else TextOnly(prompt)
    messages = []
    if system_prompt:
        messages.append(ChatMessage(role="system", content=TextOnly(system_prompt)))
    messages.append(ChatMessage(role="user", content=content))
    return messages


def data_url(image: tuple[str, bytes]) -> str:
    media_type, data = image
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def openai_content(content: MessageContent, image: Optional[tuple[str, bytes]] = None) -> Any:
    """
    Plain string for text, [image, text] parts when an image is attached.

    The image goes inline as a data URL: Telegram file URLs embed the bot
    token and must not be handed to a third party.
    """
    if isinstance(content, TextWithImage) and image is not None:
        return [
            {"type": "image_url", "image_url": {"url": data_url(image)}},
            {"type": "text", "text": content.text},
        ]
    return content.text


def build_openai_payload(
    model: str,
    messages: list[ChatMessage],
    image: Optional[tuple[str, bytes]] = None,
) -> dict:
    return {
        "model": model,
        "messages": [{"role": m.role, "content": openai_content(m.content, image)} for m in messages],
        "max_tokens": MAX_TOKENS,
    }


def build_anthropic_payload(
    model: str,
    messages: list[ChatMessage],
    image: Optional[tuple[str, bytes]] = None,
) -> dict:
    """
    Build a Messages API body.

    System messages go to the top-level "system" field. `image` is the
    already downloaded (media_type, bytes) for the TextWithImage message.
    """
    system_parts = [m.content.text for m in messages if m.role == "system"]
    conversation = []

    for m in messages:
        if m.role == "system":
            continue
        if isinstance(m.content, TextWithImage) and image is not None:
            media_type, data = image
            content: Any = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": media_type,
                        "data": base64.b64encode(data).decode("ascii"),
                    },
                },
                {"type": "text", "text": m.content.text},
            ]
        else:
            content = m.content.text
        conversation.append({"role": m.role, "content": content})

    payload: dict[str, Any] = {
        "model": model,
        "max_tokens": MAX_TOKENS,
        "messages": conversation,
    }
    if system_parts:
        payload["system"] = "\n\n".join(system_parts)
    return payload


# =========================================================================
# Client
# =========================================================================

class AIClient:
    """
    Sends chat completions to configured backends.

    Holds one httpx.AsyncClient; tests pass their own client with a
    MockTransport to capture requests.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 60.0):
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    async def call(
        self,
        config: ServiceConfig,
        model: str,
        prompt: str,
        image_url: Optional[str] = None,
    ) -> str:
        """Single-turn completion. Returns the reply text or raises AIClientError."""
        messages = build_messages(prompt, image_url, config.system_prompt)

        if config.dialect == Dialect.ANTHROPIC:
            return await self._call_anthropic(config, model, messages)
        return await self._call_openai(config, model, messages)

    async def _call_openai(self, config: ServiceConfig, model: str, messages: list[ChatMessage]) -> str:
        image = await self._attached_image(messages)
        response = await self._post(
            f"{config.base_url.rstrip('/')}/chat/completions",
            build_openai_payload(model, messages, image),
            {"Authorization": f"Bearer {config.api_key}"},
            label="OpenAI",
        )
        return _decode(response, OpenAIResponse, "OpenAI")

    async def _call_anthropic(self, config: ServiceConfig, model: str, messages: list[ChatMessage]) -> str:
        image = await self._attached_image(messages)
        response = await self._post(
            f"{config.base_url.rstrip('/')}/messages",
            build_anthropic_payload(model, messages, image),
            {"x-api-key": config.api_key, "anthropic-version": ANTHROPIC_VERSION},
            label="Anthropic",
        )
        return _decode(response, AnthropicResponse, "Anthropic")

    async def _attached_image(self, messages: list[ChatMessage]) -> Optional[tuple[str, bytes]]:
        image_url = next(
            (m.content.image_url for m in messages if isinstance(m.content, TextWithImage)),
            None,
        )
        if not image_url:
            return None
        return await self.fetch_image(image_url)

    async def fetch_image(self, url: str) -> tuple[str, bytes]:
        """Download an image. Returns (media_type, bytes)."""
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise AIClientError(f"Image download failed: {type(e).__name__}") from e
        if not response.is_success:
            raise AIClientError(f"Image download failed: {response.status_code}")

        content_type = response.headers.get("content-type", "")
        media_type = content_type.split(";")[0].strip() or DEFAULT_IMAGE_MEDIA_TYPE
        return media_type, response.content

    async def _post(self, url: str, payload: dict, headers: dict, label: str) -> httpx.Response:
        logger.debug(f"{label} request to {url}, model={payload.get('model')}")
        try:
            response = await self.client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise AIClientError(f"{label} API request failed: {e}") from e

        if not response.is_success:
            logger.warning(f"{label} API error {response.status_code}: {response.text[:200]}")
            raise AIClientError(f"{label} API error: {response.status_code}")
        return response

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()


# Global instance
_ai_client: Optional[AIClient] = None


def get_ai_client() -> AIClient:
    """Get or create AI client singleton."""
    global _ai_client
    if _ai_client is None:
        from ai_router.config import get_settings

        _ai_client = AIClient(timeout=get_settings().upstream_timeout_seconds)
    return _ai_client


async def close_ai_client() -> None:
    global _ai_client
    if _ai_client is not None:
        await _ai_client.close()
        _ai_client = None
