"""Data models for Eiven conversations."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["user", "assistant"]


def _now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a stored timestamp. Values without an offset are taken as UTC."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    return _as_utc(parsed)


class Insight(BaseModel):
    """An observational snippet derived from a companion response or an echo."""

    model_config = ConfigDict(frozen=True)

    type: str = "observation"
    content: str
    confidence: float = 0.7
    title: str = ""


class Suggestion(BaseModel):
    """An advisory snippet derived from a companion response."""

    model_config = ConfigDict(frozen=True)

    type: str = "reflection"
    content: str
    actionable: bool = True


class Message(BaseModel):
    """A single conversation message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_now)
    mood: str | None = None
    insights: tuple[Insight, ...] = ()
    suggestions: tuple[Suggestion, ...] = ()

    @field_validator("timestamp")
    @classmethod
    def timestamp_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def to_api(self) -> dict[str, str]:
        """Format for the chat completion API."""
        return {"role": self.role, "content": self.content}


class Echo(BaseModel):
    """A journal entry written by the user, optionally planted in a garden."""

    id: str
    user_id: str
    content: str
    mood: str | None = None
    garden_id: str | None = None


class ProcessedResponse(BaseModel):
    """A completion after insight/suggestion extraction and mood tagging."""

    model_config = ConfigDict(frozen=True)

    message: str
    mood: str
    insights: tuple[Insight, ...] = ()
    suggestions: tuple[Suggestion, ...] = ()
    from_fallback: bool = False


class ConversationSummary(BaseModel):
    """Lightweight listing entry returned by the persistence layer."""

    id: str
    title: str
    updated_at: datetime
    message_count: int = 0
    version: int = 0


@dataclass
class Conversation:
    """An ordered list of messages plus free-form session metadata.

    ``version`` increments on every append and is used as the
    last-write-wins stamp when the conversation is persisted.
    """

    id: str
    user_id: str = ""
    title: str = ""
    messages: list[Message] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    version: int = 0
    updated_at: datetime = field(default_factory=_now)

    def append(self, message: Message) -> None:
        self.messages.append(message)
        self.version += 1
        self.updated_at = _now()

    @property
    def user_messages(self) -> list[Message]:
        return [m for m in self.messages if m.role == "user"]

    def to_api_messages(self) -> list[dict[str, str]]:
        return [m.to_api() for m in self.messages]

    def summary(self) -> ConversationSummary:
        return ConversationSummary(
            id=self.id,
            title=self.title,
            updated_at=self.updated_at,
            message_count=len(self.messages),
            version=self.version,
        )

    # -- Serialization ---------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict matching the ``eiven_conversations`` columns."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "context": self.context,
            "version": self.version,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Conversation:
        """Deserialize from a stored row. ``messages``/``context`` may be JSON strings."""
        messages = record.get("messages") or []
        if isinstance(messages, str):
            messages = json.loads(messages)
        context = record.get("context") or {}
        if isinstance(context, str):
            context = json.loads(context)
        updated_at = record.get("updated_at")
        return cls(
            id=record["id"],
            user_id=record.get("user_id") or "",
            title=record.get("title") or "",
            messages=[Message.model_validate(m) for m in messages],
            context=context,
            version=int(record.get("version") or 0),
            updated_at=parse_timestamp(updated_at) if updated_at else _now(),
        )
