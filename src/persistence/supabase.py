"""Conversation persistence backed by Supabase (hosted Postgres).

The ``supabase`` client is synchronous, so every call is pushed onto a
worker thread with ``asyncio.to_thread()``. Version checks happen before
the upsert; under the single-writer assumption that is enough to keep
last-write-wins ordering.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from src.companion.models import Conversation, ConversationSummary, parse_timestamp
from src.config import settings

if TYPE_CHECKING:
    from supabase import Client

logger = logging.getLogger(__name__)

TABLE = "eiven_conversations"


class SupabaseConversationRepository:
    """Reads and writes the ``eiven_conversations`` table."""

    def __init__(self, client: Client | None = None) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return "supabase"

    def _get_client(self) -> Client:
        """Lazily initialize the Supabase client."""
        if self._client is None:
            from supabase import create_client

            self._client = create_client(settings.supabase_url, settings.supabase_key)
        return self._client

    def _table(self) -> Any:
        return self._get_client().table(TABLE)

    # -- Sync helpers (run in a worker thread) ---------------------------------

    def _stored_version(self, conversation_id: str) -> int | None:
        result = self._table().select("version").eq("id", conversation_id).limit(1).execute()
        if not result.data:
            return None
        return int(result.data[0].get("version") or 0)

    def _save_sync(self, conversation: Conversation) -> bool:
        stored = self._stored_version(conversation.id)
        if stored is not None and stored >= conversation.version:
            logger.debug(
                "Skipped stale write for %s (v%d <= v%d)",
                conversation.id,
                conversation.version,
                stored,
            )
            return True
        record = conversation.to_record()
        record["is_active"] = True
        self._table().upsert(record).execute()
        return True

    # -- Repository API --------------------------------------------------------

    async def save(self, conversation: Conversation) -> bool:
        try:
            saved = await asyncio.to_thread(self._save_sync, conversation)
        except Exception:
            logger.exception("Failed to save conversation %s", conversation.id)
            return False
        logger.debug("Saved conversation %s (v%d)", conversation.id, conversation.version)
        return saved

    async def load(self, user_id: str, limit: int = 10) -> list[ConversationSummary]:
        def _query() -> list[dict[str, Any]]:
            result = (
                self._table()
                .select("id, title, messages, version, updated_at")
                .eq("user_id", user_id)
                .eq("is_active", True)
                .order("updated_at", desc=True)
                .limit(limit)
                .execute()
            )
            return result.data or []

        try:
            rows = await asyncio.to_thread(_query)
        except Exception:
            logger.exception("Failed to load conversations for %s", user_id)
            return []

        return [
            ConversationSummary(
                id=row["id"],
                title=row.get("title") or "",
                message_count=len(row.get("messages") or []),
                version=int(row.get("version") or 0),
                updated_at=parse_timestamp(row["updated_at"]),
            )
            for row in rows
        ]

    async def fetch(self, conversation_id: str) -> Conversation | None:
        def _query() -> list[dict[str, Any]]:
            result = self._table().select("*").eq("id", conversation_id).limit(1).execute()
            return result.data or []

        try:
            rows = await asyncio.to_thread(_query)
        except Exception:
            logger.exception("Failed to fetch conversation %s", conversation_id)
            return None
        return Conversation.from_record(rows[0]) if rows else None
