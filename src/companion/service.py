"""EivenCompanion — the conversation session manager for the Eiven persona.

One instance per signed-in session. It owns nothing global: the store,
cache, completion client, repository and event dispatcher are passed in
(or built with defaults) and shared by reference.

Per turn::

    user text → analyze_context → build_completion_request → cache lookup
      → CompletionClient (retry) → process_response → store append
      → repository save → events
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from src.companion.cache import ResponseCache, cache_key
from src.companion.client import CompletionClient
from src.companion.context import analyze_context
from src.companion.errors import AuthenticationError, CompletionError
from src.companion.events import (
    INSIGHT_AVAILABLE,
    MESSAGE_APPENDED,
    TYPING_CHANGED,
    CommandRouter,
    EventDispatcher,
)
from src.companion.models import Echo, Insight, Message
from src.companion.processor import fallback_response, process_response
from src.companion.prompt import build_completion_request, build_echo_request
from src.companion.store import ConversationStore
from src.config import settings

if TYPE_CHECKING:
    import random
    from collections.abc import Callable, Sequence

    from src.companion.models import Conversation, ConversationSummary, ProcessedResponse
    from src.persistence.base import ConversationRepository

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hola... soy Eiven 💙 Qué hermoso momento para encontrarnos. Estoy aquí, "
    "presente, para escucharte con toda mi atención. ¿Qué eco resuena en tu "
    "corazón hoy?"
)
WELCOME_MOOD = "alegre"
DEFAULT_TITLE = "Conversación con Eiven"
DEFAULT_INSIGHT_TITLE = "Reflexión de Eiven"
ECHO_INSIGHT_TYPE = "reflexión_profunda"
ECHO_INSIGHT_CONFIDENCE = 0.8


def conversation_title(messages: Sequence[Message]) -> str:
    """First user message, truncated to 30 characters."""
    for message in messages:
        if message.role == "user":
            text = message.content
            return text if len(text) <= 30 else text[:27] + "..."
    return DEFAULT_TITLE


def insight_title(text: str) -> str:
    """First sentence of *text*, truncated to 50 characters."""
    sentences = [s.strip() for s in text.split(".") if s.strip()]
    if not sentences:
        return DEFAULT_INSIGHT_TITLE
    title = sentences[0]
    return title if len(title) <= 50 else title[:47] + "..."


class EivenCompanion:
    """Chat session with Eiven for one user.

    Args:
        user_id: The signed-in user. Empty means unauthenticated; every
            operation that touches conversations raises AuthenticationError.
        store: In-memory conversations.
        cache: Processed-response cache.
        client: Completion client with retry policy.
        repository: Persistence backend. ``None`` keeps everything local.
        events: Dispatcher for UI notifications.
        rng: Random source for fallback replies.
        id_factory: Generates new conversation ids.
    """

    def __init__(
        self,
        user_id: str,
        *,
        store: ConversationStore | None = None,
        cache: ResponseCache | None = None,
        client: CompletionClient | None = None,
        repository: ConversationRepository | None = None,
        events: EventDispatcher | None = None,
        rng: random.Random | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._user_id = user_id
        self.store = store or ConversationStore()
        self.cache = cache or ResponseCache()
        self.client = client or CompletionClient()
        self.repository = repository
        self.events = events or EventDispatcher()
        self._rng = rng
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._current_id: str | None = None
        self._typing = False
        self.commands = self._build_commands()

    # -- Properties ------------------------------------------------------------

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def current_conversation_id(self) -> str | None:
        return self._current_id

    @property
    def is_typing(self) -> bool:
        return self._typing

    def get_current_conversation(self) -> Conversation | None:
        if self._current_id is None or self._current_id not in self.store:
            return None
        return self.store.get(self._current_id)

    def conversation_history(self) -> list[Conversation]:
        return self.store.list()

    # -- Conversations ---------------------------------------------------------

    def _require_user(self) -> str:
        if not self._user_id:
            msg = "Usuario no autenticado"
            raise AuthenticationError(msg)
        return self._user_id

    async def start_conversation(
        self,
        initial_message: str | None = None,
        mood: str | None = None,
        *,
        conversation_id: str | None = None,
    ) -> Conversation:
        """Open a new conversation that begins with Eiven's welcome message.

        If *initial_message* is given, it is sent as the first user turn.
        """
        user_id = self._require_user()
        conversation = self.store.create(
            conversation_id or self._id_factory(),
            user_id=user_id,
            title=DEFAULT_TITLE,
            context={
                "started_at": datetime.now(UTC).isoformat(),
                "user_mood": mood or "neutral",
                "conversation_type": "general",
            },
        )
        self._current_id = conversation.id
        logger.info("Started conversation %s for %s", conversation.id, user_id)

        self._append(conversation, Message(role="assistant", content=WELCOME_MESSAGE, mood=WELCOME_MOOD))

        if initial_message:
            await self._exchange(conversation, initial_message, mood)
        else:
            await self._persist(conversation)
        return conversation

    async def send_message(
        self,
        message: str,
        mood: str | None = None,
        *,
        conversation_id: str | None = None,
    ) -> Message:
        """Send a user message and return Eiven's reply.

        Targets *conversation_id*, else the current conversation. A
        conversation that does not exist yet is started first. Callers
        must await each send before the next one to keep turns ordered.
        """
        self._require_user()
        target = conversation_id or self._current_id
        if target is None or target not in self.store:
            conversation = await self.start_conversation(mood=mood, conversation_id=target)
        else:
            conversation = self.store.get(target)
            self._current_id = conversation.id
        return await self._exchange(conversation, message, mood)

    async def _exchange(self, conversation: Conversation, text: str, mood: str | None) -> Message:
        history = list(conversation.messages)
        self._append(conversation, Message(role="user", content=text, mood=mood))

        if conversation.title in ("", DEFAULT_TITLE):
            conversation.title = conversation_title(conversation.messages)
        if mood:
            conversation.context["user_mood"] = mood

        self._set_typing(True)
        try:
            processed = await self.generate_response(text, history, mood)
        finally:
            self._set_typing(False)

        reply = Message(
            role="assistant",
            content=processed.message,
            mood=processed.mood,
            insights=processed.insights,
            suggestions=processed.suggestions,
        )
        self._append(conversation, reply)
        for insight in reply.insights:
            self.events.emit(INSIGHT_AVAILABLE, insight)

        await self._persist(conversation)
        return reply

    def _append(self, conversation: Conversation, message: Message) -> None:
        self.store.append(conversation.id, message)
        self.events.emit(MESSAGE_APPENDED, message)

    def _set_typing(self, typing: bool) -> None:
        self._typing = typing
        self.events.emit(TYPING_CHANGED, typing)

    async def _persist(self, conversation: Conversation) -> bool:
        """Write-through to the repository. Failures never touch local state."""
        if self.repository is None:
            return False
        saved = await self.repository.save(conversation)
        if not saved:
            logger.warning(
                "Conversation %s not persisted (v%d); local copy kept",
                conversation.id,
                conversation.version,
            )
        return saved

    async def load_conversations(self) -> list[ConversationSummary]:
        """Mirror the user's recent conversations from the repository.

        A remote copy replaces the local one only when its version is newer.
        """
        user_id = self._require_user()
        if self.repository is None:
            return []

        summaries = await self.repository.load(user_id, limit=settings.conversation_load_limit)
        refreshed = 0
        for summary in summaries:
            if summary.id in self.store and self.store.get(summary.id).version >= summary.version:
                continue
            conversation = await self.repository.fetch(summary.id)
            if conversation is not None and self.store.put(conversation):
                refreshed += 1
        logger.info("Loaded %d conversations (%d refreshed)", len(summaries), refreshed)
        return summaries

    # -- Generation ------------------------------------------------------------

    async def generate_response(
        self,
        message: str,
        history: Sequence[Message] = (),
        mood: str | None = None,
    ) -> ProcessedResponse:
        """Produce Eiven's reply to *message*. Never raises for API failures.

        Cached replies for the same (message, mood) are reused within the
        cache TTL. When the completion API fails, a canned reply is returned.
        """
        key = cache_key(message, mood)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Using cached Eiven response (%s)", key)
            return cached

        context = analyze_context(message, history, mood)
        payload = build_completion_request(message, context, history)

        try:
            raw = await self.client.complete(payload)
        except CompletionError as exc:
            logger.warning("Eiven response failed, using fallback: %s", exc)
            return fallback_response(mood, self._rng)
        except Exception:
            logger.exception("Unexpected error generating Eiven response, using fallback")
            return fallback_response(mood, self._rng)

        processed = process_response(raw, context)
        self.cache.put(key, processed)
        return processed

    async def analyze_echo(self, echo: Echo) -> Insight | None:
        """Ask Eiven for a short insight about a freshly written echo."""
        try:
            raw = await self.client.complete(build_echo_request(echo.content, echo.mood))
        except CompletionError as exc:
            logger.warning("Echo analysis failed for %s: %s", echo.id, exc)
            return None
        except Exception:
            logger.exception("Unexpected error analyzing echo %s", echo.id)
            return None

        insight = Insight(
            type=ECHO_INSIGHT_TYPE,
            content=raw.strip(),
            confidence=ECHO_INSIGHT_CONFIDENCE,
            title=insight_title(raw),
        )
        self.events.emit(INSIGHT_AVAILABLE, insight)
        return insight

    # -- Commands --------------------------------------------------------------

    def _build_commands(self) -> CommandRouter:
        router = CommandRouter()

        @router.command("send_message", description="Send a user message to Eiven")
        async def _send(message: str, mood: str | None = None, conversation_id: str | None = None) -> Message:
            return await self.send_message(message, mood, conversation_id=conversation_id)

        @router.command("start_conversation", description="Open a new conversation")
        async def _start(initial_message: str | None = None, mood: str | None = None) -> Conversation:
            return await self.start_conversation(initial_message, mood)

        @router.command("echo_created", description="Reflect on a newly written echo")
        async def _echo(echo: Echo | dict[str, Any]) -> Insight | None:
            if isinstance(echo, dict):
                echo = Echo.model_validate(echo)
            return await self.analyze_echo(echo)

        @router.command("load_conversations", description="Mirror saved conversations")
        async def _load() -> list[ConversationSummary]:
            return await self.load_conversations()

        return router
