"""Conversation persistence backends."""

import logging

from src.config import settings
from src.persistence.base import ConversationRepository
from src.persistence.sqlite import SqliteConversationRepository
from src.persistence.supabase import SupabaseConversationRepository

logger = logging.getLogger(__name__)

__all__ = [
    "ConversationRepository",
    "SqliteConversationRepository",
    "SupabaseConversationRepository",
    "create_repository",
]


def create_repository(backend: str | None = None) -> ConversationRepository:
    """Build the repository named by *backend* (default ``settings.persistence_backend``).

    Falls back to SQLite when Supabase is requested but not configured.
    """
    backend = backend or settings.persistence_backend
    if backend == "supabase":
        if settings.supabase_enabled:
            logger.info("Persistence: Supabase (%s)", settings.supabase_url)
            return SupabaseConversationRepository()
        logger.warning("SUPABASE_URL/SUPABASE_KEY not set, falling back to SQLite")
    elif backend != "sqlite":
        msg = f"Unknown persistence backend: {backend}"
        raise ValueError(msg)
    logger.info("Persistence: SQLite (%s)", settings.database_path)
    return SqliteConversationRepository()
