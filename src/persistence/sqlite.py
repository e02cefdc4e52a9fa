"""SqliteConversationRepository: aiosqlite persistence for Eiven conversations."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import aiosqlite

from src.companion.models import Conversation, ConversationSummary, parse_timestamp
from src.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS eiven_conversations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    messages TEXT NOT NULL,
    context TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL
)
"""

# Only overwrite when the incoming copy is newer (last write wins by version).
_UPSERT = """
INSERT INTO eiven_conversations
    (id, user_id, title, messages, context, version, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    title = excluded.title,
    messages = excluded.messages,
    context = excluded.context,
    version = excluded.version,
    updated_at = excluded.updated_at
WHERE excluded.version > eiven_conversations.version
"""

_COLUMNS = "id, user_id, title, messages, context, version, updated_at"


def _to_row(conversation: Conversation) -> tuple:
    record = conversation.to_record()
    return (
        record["id"],
        record["user_id"],
        record["title"],
        json.dumps(record["messages"], ensure_ascii=False),
        json.dumps(record["context"], ensure_ascii=False),
        record["version"],
        record["updated_at"],
    )


def _from_row(row: tuple) -> Conversation:
    return Conversation.from_record(dict(zip(_COLUMNS.split(", "), row, strict=True)))


class SqliteConversationRepository:
    """Persists conversations in a local SQLite file.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    @property
    def name(self) -> str:
        return "sqlite"

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    # -- Repository API --------------------------------------------------------

    async def save(self, conversation: Conversation) -> bool:
        try:
            db = await self._connect()
            try:
                await db.execute(_UPSERT, _to_row(conversation))
                await db.commit()
            finally:
                await db.close()
        except (aiosqlite.Error, OSError):
            logger.exception("Failed to save conversation %s", conversation.id)
            return False
        logger.debug("Saved conversation %s (v%d)", conversation.id, conversation.version)
        return True

    async def load(self, user_id: str, limit: int = 10) -> list[ConversationSummary]:
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    """
                    SELECT id, title, messages, version, updated_at
                    FROM eiven_conversations
                    WHERE user_id = ? AND is_active = 1
                    ORDER BY updated_at DESC
                    LIMIT ?
                    """,
                    (user_id, limit),
                )
                rows = await cursor.fetchall()
            finally:
                await db.close()
        except (aiosqlite.Error, OSError):
            logger.exception("Failed to load conversations for %s", user_id)
            return []

        return [
            ConversationSummary(
                id=row[0],
                title=row[1],
                message_count=len(json.loads(row[2])),
                version=row[3],
                updated_at=parse_timestamp(row[4]),
            )
            for row in rows
        ]

    async def fetch(self, conversation_id: str) -> Conversation | None:
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM eiven_conversations WHERE id = ?",  # noqa: S608
                    (conversation_id,),
                )
                row = await cursor.fetchone()
            finally:
                await db.close()
        except (aiosqlite.Error, OSError):
            logger.exception("Failed to fetch conversation %s", conversation_id)
            return None
        return _from_row(row) if row else None

    async def deactivate(self, conversation_id: str) -> bool:
        """Hide a conversation from :meth:`load`. Returns True if a row was updated."""
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "UPDATE eiven_conversations SET is_active = 0 WHERE id = ?",
                    (conversation_id,),
                )
                await db.commit()
                updated = cursor.rowcount > 0
            finally:
                await db.close()
        except (aiosqlite.Error, OSError):
            logger.exception("Failed to deactivate conversation %s", conversation_id)
            return False
        return updated
