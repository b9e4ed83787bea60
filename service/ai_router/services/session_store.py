"""
Per-user backend/model selection, kept in Redis.

Records live under "session:<user_id>" with a TTL. The store is
best-effort: read failures fall back to the default selection and write
failures are logged and dropped, so an unavailable Redis never fails a
request.
"""

from __future__ import annotations

from typing import Optional, Protocol

from pydantic import ValidationError
from redis.exceptions import RedisError

from ai_router.logging_config import get_logger
from ai_router.schemas import ServiceRegistry, UserSession

logger = get_logger("store")

DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60


class KeyValueClient(Protocol):
    async def get(self, name: str) -> Optional[str]: ...

    async def set(self, name: str, value: str, ex: Optional[int] = None) -> object: ...


def session_key(user_id: int | str) -> str:
    return f"session:{user_id}"


def default_session(registry: ServiceRegistry) -> UserSession:
    """First configured service with its first model."""
    service_name = next(iter(registry))
    return UserSession(
        current_service=service_name,
        current_model=registry[service_name].models[0],
    )


def is_valid_session(session: UserSession, registry: ServiceRegistry) -> bool:
    service = registry.get(session.current_service)
    return service is not None and session.current_model in service.models


class SessionStore:
    """Reads and writes UserSession records through an async key-value client."""

    def __init__(self, client: KeyValueClient, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def get_session(self, user_id: int | str, registry: ServiceRegistry) -> UserSession:
        """Never raises. Missing, unreadable or stale records yield the default session."""
        try:
            raw = await self.client.get(session_key(user_id))
        except (RedisError, OSError) as e:
            logger.warning(f"Session read failed for user_id={user_id}: {e}")
            return default_session(registry)

        if not raw:
            return default_session(registry)

        try:
            session = UserSession.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable session for user_id={user_id}: {e}")
            return default_session(registry)

        if not is_valid_session(session, registry):
            logger.info(
                f"Stored session {session.current_service}/{session.current_model} "
                f"no longer configured for user_id={user_id}, using default"
            )
            return default_session(registry)

        return session

    async def save_session(self, user_id: int | str, session: UserSession) -> None:
        """Write-through, best-effort."""
        try:
            await self.client.set(session_key(user_id), session.to_json(), ex=self.ttl_seconds)
        except (RedisError, OSError) as e:
            logger.warning(f"Session write failed for user_id={user_id}: {e}")


_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the session store singleton."""
    global _session_store
    if _session_store is None:
        from ai_router.config import get_settings
        from ai_router.redis_client import get_redis

        _session_store = SessionStore(get_redis(), ttl_seconds=get_settings().session_ttl_seconds)
    return _session_store
