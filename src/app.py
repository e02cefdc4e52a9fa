"""Service wiring for an Eiven chat session."""

import logging

from src.companion.cache import ResponseCache
from src.companion.client import CompletionClient
from src.companion.events import EventDispatcher
from src.companion.service import EivenCompanion
from src.companion.store import ConversationStore
from src.config import settings
from src.persistence import create_repository

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )


def create_companion(
    user_id: str,
    *,
    events: EventDispatcher | None = None,
    backend: str | None = None,
) -> EivenCompanion:
    """Build an EivenCompanion with every collaborator constructed once.

    Pass *events* to share a dispatcher with UI code that has already
    subscribed its handlers.
    """
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is empty, Eiven will answer with fallback replies")

    companion = EivenCompanion(
        user_id,
        store=ConversationStore(),
        cache=ResponseCache(),
        client=CompletionClient(),
        repository=create_repository(backend),
        events=events or EventDispatcher(),
    )
    logger.info("Eiven companion ready for %s (model %s)", user_id, settings.eiven_model)
    return companion
