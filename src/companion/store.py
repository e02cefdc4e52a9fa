"""In-memory conversation store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.companion.errors import ConversationNotFoundError
from src.companion.models import Conversation

if TYPE_CHECKING:
    from src.companion.models import Message

logger = logging.getLogger(__name__)


class ConversationStore:
    """Conversations for the active session, keyed by id.

    Single writer: appends from concurrent callers are not serialized.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    def create(
        self,
        conversation_id: str,
        *,
        user_id: str = "",
        title: str = "",
        context: dict[str, Any] | None = None,
    ) -> Conversation:
        """Create an empty conversation. Raises ValueError if the id exists."""
        if conversation_id in self._conversations:
            msg = f"Conversation '{conversation_id}' already exists"
            raise ValueError(msg)
        conversation = Conversation(
            id=conversation_id,
            user_id=user_id,
            title=title,
            context=dict(context or {}),
        )
        self._conversations[conversation_id] = conversation
        logger.debug("Created conversation %s", conversation_id)
        return conversation

    def get(self, conversation_id: str) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(conversation_id) from None

    def append(self, conversation_id: str, message: Message) -> Conversation:
        """Append *message* to the conversation and return it."""
        conversation = self.get(conversation_id)
        conversation.append(message)
        return conversation

    def put(self, conversation: Conversation) -> bool:
        """Mirror a conversation loaded from persistence.

        The incoming copy replaces the local one only if its version is
        newer. Returns True when the store changed.
        """
        current = self._conversations.get(conversation.id)
        if current is not None and current.version >= conversation.version:
            return False
        self._conversations[conversation.id] = conversation
        return True

    def list(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        return sorted(self._conversations.values(), key=lambda c: c.updated_at, reverse=True)
