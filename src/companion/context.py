"""Heuristic context analysis for incoming user messages.

Everything here is keyword matching: lower-cased substring lookups
against small Spanish vocabularies. No model calls, no side effects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from src.companion.models import Message

NEUTRAL_TONE = "neutral"

TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "trabajo": ("trabajo", "oficina", "jefe", "carrera", "profesional"),
    "relaciones": ("pareja", "familia", "amigo", "amor", "relación"),
    "salud": ("salud", "ejercicio", "dormir", "cansado", "energía"),
    "emociones": ("siento", "emoción", "tristeza", "alegría", "miedo"),
    "futuro": ("futuro", "mañana", "planear", "objetivo", "meta"),
    "creatividad": ("crear", "escribir", "pintar", "música", "inspiración"),
}

TONE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "positivo": ("bien", "feliz", "alegre", "genial", "increíble"),
    "negativo": (
        "mal",
        "triste",
        "difícil",
        "problema",
        "preocupado",
        "ansioso",
        "ansiedad",
        "estresado",
    ),
    NEUTRAL_TONE: ("normal", "regular", "común", "habitual"),
    "reflexivo": ("pienso", "reflexiono", "me pregunto", "considero"),
}

SUPPORT_KEYWORDS: tuple[str, ...] = (
    "ayuda",
    "no sé",
    "confundido",
    "perdido",
    "difícil",
    "no puedo",
    "problema",
    "preocupado",
    "ansioso",
)


@dataclass(frozen=True)
class UserContext:
    """Signals derived from a user message and the conversation so far."""

    user_mood: str | None = None
    message_length: int = 0
    conversation_length: int = 0
    topics: tuple[str, ...] = ()
    emotional_tone: str = NEUTRAL_TONE
    needs_support: bool = False
    time_of_day: int = 0
    previous_moods: tuple[str, ...] = field(default_factory=tuple)


def keyword_score(text: str, keywords: Sequence[str]) -> int:
    """Count how many of *keywords* occur in *text* (case-insensitive)."""
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def best_label(text: str, table: Mapping[str, Sequence[str]], default: str) -> str:
    """Return the label whose keywords score highest in *text*.

    A zero score everywhere yields *default*; ties keep the earlier label.
    """
    best, best_score = default, 0
    for label, keywords in table.items():
        score = keyword_score(text, keywords)
        if score > best_score:
            best, best_score = label, score
    return best


def extract_topics(message: str) -> tuple[str, ...]:
    """All topic labels with at least one keyword in *message*, in table order."""
    return tuple(
        topic for topic, keywords in TOPIC_KEYWORDS.items() if keyword_score(message, keywords)
    )


def detect_emotional_tone(message: str) -> str:
    return best_label(message, TONE_KEYWORDS, NEUTRAL_TONE)


def detect_support_needs(message: str) -> bool:
    return keyword_score(message, SUPPORT_KEYWORDS) > 0


def analyze_context(
    message: str,
    history: Sequence[Message] = (),
    mood: str | None = None,
    now: datetime | None = None,
) -> UserContext:
    """Build the context record for *message*.

    Args:
        message: The new user message.
        history: Messages already in the conversation, oldest first.
        mood: Mood label the user picked explicitly, if any.
        now: Clock override; defaults to the current local time.
    """
    now = now or datetime.now()
    return UserContext(
        user_mood=mood or None,
        message_length=len(message),
        conversation_length=len(history),
        topics=extract_topics(message),
        emotional_tone=detect_emotional_tone(message),
        needs_support=detect_support_needs(message),
        time_of_day=now.hour,
        previous_moods=tuple(m.mood for m in history if m.mood),
    )
