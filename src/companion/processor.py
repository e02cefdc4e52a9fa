"""Post-processing of raw completion text.

Pulls "insight" and "suggestion" clauses out of Eiven's reply with
regex patterns, tags the reply with a mood label, and removes the
extracted clauses from the text shown to the user.
"""

from __future__ import annotations

import random
import re
from typing import TYPE_CHECKING

from src.companion.context import best_label
from src.companion.models import Insight, ProcessedResponse, Suggestion

if TYPE_CHECKING:
    from src.companion.context import UserContext

DEFAULT_MOOD = "reflexivo"
FALLBACK_MOOD = "comprensivo"
INSIGHT_CONFIDENCE = 0.7

INSIGHT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:me parece|observo|noto) que (.*?)(?:\.|$)", re.IGNORECASE),
    re.compile(r"(?:reflexiona sobre|considera) (.*?)(?:\.|$)", re.IGNORECASE),
    re.compile(r"(?:insight|reflexión): (.*?)(?:\.|$)", re.IGNORECASE),
)

SUGGESTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:podrías|te sugiero|considera) (.*?)(?:\.|$)", re.IGNORECASE),
    re.compile(r"¿(?:qué tal si|por qué no) (.*?)\?", re.IGNORECASE),
    re.compile(r"(?:sugerencia|recomendación): (.*?)(?:\.|$)", re.IGNORECASE),
)

MOOD_KEYWORDS: dict[str, tuple[str, ...]] = {
    "alegre": ("alegría", "feliz", "contento", "celebrar", "éxito"),
    "comprensivo": ("entiendo", "comprendo", "natural", "normal", "ansiedad", "ansioso"),
    "reflexivo": ("reflexiona", "piensa", "considera", "profundo"),
    "alentador": ("puedes", "capaz", "fortaleza", "crecimiento"),
    "sereno": ("calma", "paz", "tranquilo", "serenidad"),
}

FALLBACK_RESPONSES: tuple[str, ...] = (
    "Me interesa mucho lo que compartes. ¿Podrías contarme un poco más sobre "
    "cómo te sientes al respecto?",
    "Veo que hay algo importante en lo que dices. ¿Qué resonancia encuentras "
    "en tu interior con estas palabras?",
    "Cada reflexión es valiosa. ¿Qué te gustaría explorar más profundamente "
    "de lo que acabas de compartir?",
    "Percibo que hay una invitación al crecimiento en lo que expresas. ¿Cómo "
    "te conectas con esa sensación?",
)

MOOD_FALLBACKS: dict[str, str] = {
    "ansioso": (
        "Percibo inquietud en tus palabras. ¿Qué te ayudaría a encontrar un poco "
        "más de calma en este momento?"
    ),
    "triste": (
        "Siento la tristeza en lo que compartes. Es natural sentir esto. ¿Qué "
        "necesitas escuchar de ti mismo ahora?"
    ),
    "alegre": (
        "Hay una energía hermosa en lo que expresas. ¿Cómo puedes cultivar más de "
        "esta sensación en tu día a día?"
    ),
}

_Span = tuple[int, int]


def _matches(text: str, patterns: tuple[re.Pattern[str], ...]) -> list[re.Match[str]]:
    return [m for pattern in patterns for m in pattern.finditer(text)]


def extract_insights(text: str) -> list[Insight]:
    return [
        Insight(type="observation", content=m.group(1).strip(), confidence=INSIGHT_CONFIDENCE)
        for m in _matches(text, INSIGHT_PATTERNS)
    ]


def extract_suggestions(text: str) -> list[Suggestion]:
    return [
        Suggestion(type="reflection", content=m.group(1).strip(), actionable=True)
        for m in _matches(text, SUGGESTION_PATTERNS)
    ]


def classify_mood(text: str) -> str:
    """Mood label whose keywords occur most often; ``reflexivo`` when none do."""
    return best_label(text, MOOD_KEYWORDS, DEFAULT_MOOD)


def _merge_spans(spans: list[_Span]) -> list[_Span]:
    merged: list[_Span] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _normalize_whitespace(text: str) -> str:
    lines = [re.sub(r"[ \t]{2,}", " ", line).strip() for line in text.splitlines()]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def strip_extracted(text: str) -> str:
    """Remove every insight/suggestion span from *text*.

    If nothing but whitespace would remain, the original text is returned
    so the user never sees an empty reply.
    """
    spans = [
        m.span()
        for m in _matches(text, INSIGHT_PATTERNS + SUGGESTION_PATTERNS)
        if m.end() > m.start()
    ]
    if not spans:
        return text.strip()

    pieces = []
    cursor = 0
    for start, end in _merge_spans(spans):
        pieces.append(text[cursor:start])
        cursor = end
    pieces.append(text[cursor:])

    cleaned = _normalize_whitespace(" ".join(p for p in pieces if p.strip()))
    return cleaned or text.strip()


def process_response(raw: str, context: UserContext | None = None) -> ProcessedResponse:
    """Turn raw completion text into the message shown to the user plus metadata."""
    return ProcessedResponse(
        message=strip_extracted(raw),
        mood=classify_mood(raw),
        insights=tuple(extract_insights(raw)),
        suggestions=tuple(extract_suggestions(raw)),
    )


def fallback_response(mood: str | None = None, rng: random.Random | None = None) -> ProcessedResponse:
    """Canned reply used when the completion API cannot answer."""
    if mood and mood in MOOD_FALLBACKS:
        message = MOOD_FALLBACKS[mood]
    else:
        message = (rng or random).choice(FALLBACK_RESPONSES)
    return ProcessedResponse(message=message, mood=FALLBACK_MOOD, from_fallback=True)
