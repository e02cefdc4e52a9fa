"""ConversationRepository protocol — interface for conversation persistence backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.companion.models import Conversation, ConversationSummary


@runtime_checkable
class ConversationRepository(Protocol):
    """Protocol that all persistence backends must satisfy.

    Writes are last-write-wins by ``Conversation.version``: a save whose
    version is not newer than the stored copy leaves the row untouched.
    Implementations log failures and report them through the return value
    instead of raising.
    """

    @property
    def name(self) -> str:
        """Backend identifier (e.g. 'sqlite', 'supabase')."""
        ...

    async def save(self, conversation: Conversation) -> bool:
        """Upsert a conversation. Returns True on success."""
        ...

    async def load(self, user_id: str, limit: int = 10) -> list[ConversationSummary]:
        """Active conversations for *user_id*, most recently updated first."""
        ...

    async def fetch(self, conversation_id: str) -> Conversation | None:
        """Full conversation by id, or None if missing or on failure."""
        ...
