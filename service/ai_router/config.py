import json
from functools import lru_cache

from pydantic import TypeAdapter
from pydantic_settings import BaseSettings

from ai_router.schemas import ServiceConfig, ServiceRegistry


_registry_adapter = TypeAdapter(dict[str, ServiceConfig])


def parse_service_registry(raw: str) -> ServiceRegistry:
    """
    Parse the AI_SERVICES JSON object into a registry.

    Key order is kept: the first service is the default for new users.
    Raises ValueError if no service is configured.
    """
    data = json.loads(raw or "{}")
    if not isinstance(data, dict) or not data:
        raise ValueError("AI_SERVICES must be a non-empty JSON object")
    return _registry_adapter.validate_python(data)


def parse_whitelist(raw: str) -> frozenset[int]:
    """Comma separated Telegram user ids. Empty means everyone is allowed."""
    return frozenset(int(part.strip()) for part in (raw or "").split(",") if part.strip())


class Settings(BaseSettings):
    # Telegram
    telegram_bot_token: str
    telegram_webhook_secret: str = ""  # Optional: for webhook verification

    # Access control
    whitelist: str = ""

    # AI backends (JSON object, see parse_service_registry)
    ai_services: str = "{}"
    upstream_timeout_seconds: float = 60.0

    # Session store
    redis_url: str = "redis://localhost:6379/0"
    session_ttl_days: int = 30

    # Environment
    environment: str = "development"  # LOG_LEVEL is read by logging_config at import

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def allowed_user_ids(self) -> frozenset[int]:
        return parse_whitelist(self.whitelist)

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_days * 24 * 60 * 60


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_service_registry() -> ServiceRegistry:
    return parse_service_registry(get_settings().ai_services)
