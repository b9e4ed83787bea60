"""
Command dispatcher - parses the command grammar and builds result sets.

Grammar (aliases are exact matches):
    ""                  -> help summary
    /services, /s       -> service list
    /models, /m         -> model list of the current service
    /use <name>         -> switch service (resets model to its first)
    /model <name>       -> switch model within the current service
    /status, /st        -> current selection
    /start, /help       -> usage text (direct messages only)
    other /...          -> unknown command
    anything else       -> AI prompt

Callback buttons carry "svc:<name>" / "mdl:<name>" tokens that map onto
/use and /model.

The dispatcher knows nothing about Telegram payloads. Handlers pass in
plain text and ids; the formatter turns ResultSets into Bot API calls.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ai_router.logging_config import get_logger
from ai_router.schemas import ResultItem, ResultSet, ServiceRegistry, UserSession
from ai_router.services.ai_client import AIClient, AIClientError
from ai_router.services.session_store import SessionStore

logger = get_logger("dispatcher")

PREVIEW_LENGTH = 100
SERVICE_TOKEN_PREFIX = "svc:"
MODEL_TOKEN_PREFIX = "mdl:"


class Surface(str, Enum):
    INLINE = "inline"
    MESSAGE = "message"
    CALLBACK = "callback"


class CommandKind(str, Enum):
    HELP = "help"
    SERVICES = "services"
    MODELS = "models"
    USE = "use"
    MODEL = "model"
    STATUS = "status"
    USAGE = "usage"
    PROMPT = "prompt"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    argument: str = ""


_ALIASES = {
    "/services": CommandKind.SERVICES,
    "/s": CommandKind.SERVICES,
    "/models": CommandKind.MODELS,
    "/m": CommandKind.MODELS,
    "/status": CommandKind.STATUS,
    "/st": CommandKind.STATUS,
    "/start": CommandKind.USAGE,
    "/help": CommandKind.USAGE,
}


def parse_command(text: str) -> Command:
    text = (text or "").strip()

    if not text:
        return Command(CommandKind.HELP)
    if not text.startswith("/"):
        return Command(CommandKind.PROMPT, text)
    if text in _ALIASES:
        return Command(_ALIASES[text])
    if text.startswith("/use "):
        return Command(CommandKind.USE, text[len("/use "):].strip())
    if text.startswith("/model "):
        return Command(CommandKind.MODEL, text[len("/model "):].strip())
    return Command(CommandKind.UNKNOWN, text)


def parse_callback_token(data: Optional[str]) -> Optional[Command]:
    """svc:<name> -> /use <name>, mdl:<name> -> /model <name>. Anything else -> None."""
    if not data:
        return None
    if data.startswith(SERVICE_TOKEN_PREFIX):
        return Command(CommandKind.USE, data[len(SERVICE_TOKEN_PREFIX):])
    if data.startswith(MODEL_TOKEN_PREFIX):
        return Command(CommandKind.MODEL, data[len(MODEL_TOKEN_PREFIX):])
    return None


def quote_prompt(quoted_text: str, text: str) -> str:
    return f'Quoted content:\n"""\n{quoted_text}\n"""\n\nMy question: {text}'


def preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


UNKNOWN_COMMAND_ITEM = ResultItem(
    id="unknown",
    title="❓ Unknown command",
    reply_text="Unknown command. Send an empty query to see help.",
)


class CommandDispatcher:
    """Runs one command for one user against the session store and AI backends."""

    def __init__(self, services: ServiceRegistry, store: SessionStore, ai_client: AIClient):
        self.services = services
        self.store = store
        self.ai_client = ai_client

    async def dispatch(
        self,
        user_id: int,
        text: str,
        surface: Surface,
        quoted_text: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> ResultSet:
        """
        Handle free text from an inline query or a direct message.

        Args:
            user_id: Telegram user id (session key)
            text: Raw query / message text
            surface: Where the text came from (changes help and unknown handling)
            quoted_text: Text of the replied-to message (direct messages only)
            image_url: Downloadable image for the AI prompt

        Returns:
            ResultSet, empty when nothing should be sent
        """
        command = parse_command(text)
        if command.kind == CommandKind.USAGE and surface != Surface.MESSAGE:
            command = Command(CommandKind.UNKNOWN, command.argument)

        session = await self.store.get_session(user_id, self.services)
        logger.info(f"user_id={user_id} surface={surface.value} command={command.kind.value}")

        if command.kind == CommandKind.HELP:
            result = self.help(session, surface)
        elif command.kind == CommandKind.SERVICES:
            result = self.list_services(session)
        elif command.kind == CommandKind.MODELS:
            result = self.list_models(session)
        elif command.kind == CommandKind.USE:
            result = await self.use_service(user_id, session, command.argument)
        elif command.kind == CommandKind.MODEL:
            result = await self.use_model(user_id, session, command.argument)
        elif command.kind == CommandKind.STATUS:
            result = self.status(session)
        elif command.kind == CommandKind.USAGE:
            result = self.usage(session)
        elif command.kind == CommandKind.PROMPT:
            prompt = quote_prompt(quoted_text, command.argument) if quoted_text else command.argument
            result = await self.ask(session, prompt, image_url)
        else:
            result = ResultSet()

        # Inline queries always show something; direct messages stay silent
        if not result and surface == Surface.INLINE:
            result = ResultSet(items=[UNKNOWN_COMMAND_ITEM])
        return result

    async def dispatch_callback(self, user_id: int, data: Optional[str]) -> ResultSet:
        """Handle a button tap. Unknown tokens and stale selections yield an empty set."""
        command = parse_callback_token(data)
        if command is None:
            logger.info(f"Ignoring callback data={data!r} from user_id={user_id}")
            return ResultSet()

        session = await self.store.get_session(user_id, self.services)
        logger.info(f"user_id={user_id} surface=callback command={command.kind.value}")

        if command.kind == CommandKind.USE:
            return await self.use_service(user_id, session, command.argument)
        return await self.use_model(user_id, session, command.argument)

    # =========================================================================
    # Read-only commands
    # =========================================================================

    def help(self, session: UserSession, surface: Surface) -> ResultSet:
        current = f"{session.current_service} / {session.current_model}"

        if surface == Surface.MESSAGE:
            return ResultSet(items=[ResultItem(
                id="help",
                title=f"📊 {current}",
                reply_text=(
                    f"Current: {current}\n\n"
                    "/services or /s — switch AI service\n"
                    "/models or /m — switch model\n"
                    "Or just send a question."
                ),
            )])

        return ResultSet(items=[
            ResultItem(
                id="help-status",
                title=f"📊 {current}",
                description="Current service and model",
                reply_text=f"Current: {current}",
            ),
            ResultItem(
                id="help-services",
                title="🔄 /services or /s",
                description="List and switch AI services",
                reply_text="Type /s to see the service list",
            ),
            ResultItem(
                id="help-models",
                title="🤖 /models or /m",
                description="List and switch models",
                reply_text="Type /m to see the model list",
            ),
            ResultItem(
                id="help-ask",
                title="💬 Type your question",
                description="Ask the AI directly",
                reply_text="Just type a question to ask the AI",
            ),
        ])

    def list_services(self, session: UserSession) -> ResultSet:
        items = []
        for name, config in self.services.items():
            mark = "✅" if name == session.current_service else "⬜"
            items.append(ResultItem(
                id=f"{SERVICE_TOKEN_PREFIX}{name}",
                title=f"{mark} {name}",
                description=f"{config.dialect.value} - {len(config.models)} models",
                reply_text=f"/use {name}",
                token=f"{SERVICE_TOKEN_PREFIX}{name}",
            ))
        return ResultSet(items=items, header=f"Current service: {session.current_service}\nChoose a service:")

    def list_models(self, session: UserSession) -> ResultSet:
        service = self.services[session.current_service]
        items = []
        for model in service.models:
            mark = "✅" if model == session.current_model else "⬜"
            items.append(ResultItem(
                id=f"{MODEL_TOKEN_PREFIX}{model}",
                title=f"{mark} {model}",
                description=f"Service: {session.current_service}",
                reply_text=f"/model {model}",
                token=f"{MODEL_TOKEN_PREFIX}{model}",
            ))
        return ResultSet(
            items=items,
            header=f"Service: {session.current_service}\nCurrent model: {session.current_model}\nChoose a model:",
        )

    def status(self, session: UserSession) -> ResultSet:
        return ResultSet(items=[ResultItem(
            id="status",
            title="📊 Current status",
            description=f"{session.current_service} / {session.current_model}",
            reply_text=f"Current service: {session.current_service}\nCurrent model: {session.current_model}",
        )])

    def usage(self, session: UserSession) -> ResultSet:
        return ResultSet(items=[ResultItem(
            id="usage",
            title="📖 Usage",
            reply_text=(
                "🤖 AI assistant bot\n\n"
                "Send any message to ask the AI. Reply to a message to ask about it, "
                "or attach a photo.\n"
                "In any chat, type @<bot> <question> for inline answers.\n\n"
                "Commands:\n"
                "/services (/s) — list AI services\n"
                "/models (/m) — list models of the current service\n"
                "/use <service> — switch service\n"
                "/model <model> — switch model\n"
                "/status (/st) — show current selection\n\n"
                f"Current: {session.current_service} / {session.current_model}"
            ),
        )])

    # =========================================================================
    # Session mutations
    # =========================================================================

    async def use_service(self, user_id: int, session: UserSession, name: str) -> ResultSet:
        config = self.services.get(name)
        if config is None:
            logger.info(f"Unknown service {name!r} requested by user_id={user_id}")
            return ResultSet()

        updated = UserSession(current_service=name, current_model=config.models[0])
        await self.store.save_session(user_id, updated)

        return ResultSet(
            items=[ResultItem(
                id="switched",
                title=f"✅ Switched to {name}",
                reply_text=f"Switched to service: {name}\nModel: {updated.current_model}",
            )],
            toast=f"✅ {name}",
        )

    async def use_model(self, user_id: int, session: UserSession, name: str) -> ResultSet:
        service = self.services[session.current_service]
        if name not in service.models:
            logger.info(f"Unknown model {name!r} for {session.current_service} requested by user_id={user_id}")
            return ResultSet()

        updated = UserSession(current_service=session.current_service, current_model=name)
        await self.store.save_session(user_id, updated)

        return ResultSet(
            items=[ResultItem(
                id="model-switched",
                title=f"✅ Switched to {name}",
                reply_text=f"Switched to model: {name}",
            )],
            toast=f"✅ {name}",
        )

    # =========================================================================
    # AI prompt
    # =========================================================================

    async def ask(self, session: UserSession, prompt: str, image_url: Optional[str] = None) -> ResultSet:
        service = self.services[session.current_service]

        try:
            answer = await self.ai_client.call(service, session.current_model, prompt, image_url)
        except AIClientError as e:
            logger.warning(f"AI request to {session.current_service}/{session.current_model} failed: {e}")
            return ResultSet(items=[ResultItem(
                id="error",
                title="❌ Request failed",
                description=str(e),
                reply_text=f"Request failed: {e}",
            )])

        return ResultSet(items=[ResultItem(
            id=f"ai-{uuid.uuid4().hex[:16]}",
            title="💬 AI reply",
            description=preview(answer),
            reply_text=answer,
            markdown=True,
        )])
