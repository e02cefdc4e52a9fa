"""Test doubles for the OpenAI SDK and persistence backends."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai

from src.companion.models import Conversation, ConversationSummary

API_URL = "https://api.openai.com/v1/chat/completions"


def completion(text: str | None, total_tokens: int = 42) -> SimpleNamespace:
    """Build an object shaped like an OpenAI ChatCompletion."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", API_URL))


def rate_limit_error() -> openai.RateLimitError:
    return openai.RateLimitError("Rate limit reached", response=_response(429), body=None)


def server_error() -> openai.InternalServerError:
    return openai.InternalServerError("Server error", response=_response(500), body=None)


def bad_request_error() -> openai.BadRequestError:
    return openai.BadRequestError("Bad request", response=_response(400), body=None)


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", API_URL))


def make_openai(*results) -> MagicMock:
    """Mock AsyncOpenAI whose ``chat.completions.create`` yields *results* in order.

    Exceptions in *results* are raised, other values are returned.
    """
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(results))
    return client


class FakeRepository:
    """In-memory ConversationRepository that records every save."""

    def __init__(self, *, fail: bool = False) -> None:
        self.rows: dict[str, dict] = {}
        self.saves: list[tuple[str, int]] = []
        self.fail = fail

    @property
    def name(self) -> str:
        return "fake"

    async def save(self, conversation: Conversation) -> bool:
        if self.fail:
            return False
        self.saves.append((conversation.id, conversation.version))
        stored = self.rows.get(conversation.id)
        if stored is None or stored["version"] < conversation.version:
            self.rows[conversation.id] = conversation.to_record()
        return True

    async def load(self, user_id: str, limit: int = 10) -> list[ConversationSummary]:
        rows = [r for r in self.rows.values() if r["user_id"] == user_id]
        rows.sort(key=lambda r: r["updated_at"], reverse=True)
        return [Conversation.from_record(r).summary() for r in rows[:limit]]

    async def fetch(self, conversation_id: str) -> Conversation | None:
        row = self.rows.get(conversation_id)
        return Conversation.from_record(row) if row else None
