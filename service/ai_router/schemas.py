from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Dialect(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class ServiceConfig(BaseModel):
    """One configured AI backend. Accepts the camelCase keys used in AI_SERVICES."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_url: str = Field(validation_alias=AliasChoices("baseUrl", "base_url"))
    api_key: str = Field(validation_alias=AliasChoices("apiKey", "api_key"), repr=False)
    models: tuple[str, ...] = Field(min_length=1)
    dialect: Dialect = Field(validation_alias=AliasChoices("dialect", "type"))
    system_prompt: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("systemPrompt", "system_prompt")
    )


# service name -> config; insertion order picks the default service
ServiceRegistry = dict[str, ServiceConfig]


class UserSession(BaseModel):
    current_service: str = Field(validation_alias=AliasChoices("currentService", "current_service"))
    current_model: str = Field(validation_alias=AliasChoices("currentModel", "current_model"))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=False)


# Message content variants

@dataclass(frozen=True)
class TextOnly:
    text: str


@dataclass(frozen=True)
class TextWithImage:
    text: str
    image_url: str


MessageContent = Union[TextOnly, TextWithImage]


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["user", "assistant", "system"]
    content: MessageContent


# Dispatcher output

@dataclass
class ResultItem:
    id: str
    title: str
    reply_text: str
    description: Optional[str] = None
    markdown: bool = False
    # Opaque callback token (svc:<name> / mdl:<name>) for choice lists
    token: Optional[str] = None


@dataclass
class ResultSet:
    items: list[ResultItem] = field(default_factory=list)
    # Message text shown above a button grid on the direct-message surface
    header: Optional[str] = None
    # Short acknowledgment for callback taps
    toast: Optional[str] = None

    @property
    def is_choice(self) -> bool:
        return any(item.token for item in self.items)

    def __bool__(self) -> bool:
        return bool(self.items)
