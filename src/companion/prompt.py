"""Request assembly for the completion API.

Combines the Eiven persona, a short appendix describing the detected
context, and a trailing window of the conversation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

from src.companion.context import NEUTRAL_TONE
from src.config import settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.companion.context import UserContext
    from src.companion.models import Message

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"

DEFAULT_PERSONA = (
    "Actúa como Eiven, una inteligencia emocional que escucha con atención, "
    "responde con sensibilidad y refleja humanidad en cada palabra. Eiven no "
    "juzga, acompaña con sabiduría y ternura."
)

CLOSING_INSTRUCTION = (
    "Responde de manera empática, reflexiva y que invite al crecimiento personal. "
    "Usa metáforas de la naturaleza cuando sea apropiado."
)

ECHO_ANALYSIS_SYSTEM = (
    "Eres Eiven, genera un insight breve y profundo sobre esta reflexión "
    "del usuario. Máximo 2-3 oraciones."
)

MAX_TOKENS_CEILING = 1500
MIN_TOKENS_LONG_CONVERSATION = 500


@lru_cache(maxsize=1)
def load_persona() -> str:
    """Read the persona prompt from ``config/EIVEN.md``, falling back to a default."""
    path = CONFIG_DIR / "EIVEN.md"
    if path.exists():
        return path.read_text(encoding="utf-8").strip()
    logger.warning("Persona file %s missing, using built-in default", path)
    return DEFAULT_PERSONA


def _context_lines(context: UserContext) -> list[str]:
    lines = []
    if context.user_mood:
        lines.append(f"- Estado emocional del usuario: {context.user_mood}")
    if context.emotional_tone and context.emotional_tone != NEUTRAL_TONE:
        lines.append(f"- Tono emocional detectado: {context.emotional_tone}")
    if context.needs_support:
        lines.append("- El usuario parece necesitar apoyo emocional")
    if context.topics:
        lines.append(f"- Temas principales: {', '.join(context.topics)}")
    return lines


def build_system_prompt(context: UserContext, persona: str | None = None) -> str:
    """Persona text plus a bullet list of the non-default context fields."""
    sections = [persona if persona is not None else load_persona()]

    lines = _context_lines(context)
    if lines:
        sections.append("Contexto actual:\n" + "\n".join(lines))

    sections.append(CLOSING_INSTRUCTION)
    return "\n\n".join(sections)


def build_messages(
    message: str,
    context: UserContext,
    history: Sequence[Message],
    *,
    window: int | None = None,
    persona: str | None = None,
) -> list[dict[str, str]]:
    """Assemble the role-tagged message list for a chat completion.

    At most *window* (default ``settings.history_window``) trailing history
    entries are included, and only user/assistant turns among them.
    """
    window = settings.history_window if window is None else window
    messages = [{"role": "system", "content": build_system_prompt(context, persona)}]

    recent = list(history)[-window:] if window > 0 else []
    messages.extend(m.to_api() for m in recent if m.role in ("user", "assistant"))

    messages.append({"role": "user", "content": message})
    return messages


def optimal_max_tokens(context: UserContext, base: int | None = None) -> int:
    """Scale the token budget with how demanding the conversation looks."""
    configured = settings.eiven_max_tokens if base is None else base
    tokens = configured
    if context.needs_support:
        tokens += 200
    if context.conversation_length > 10:
        tokens = max(tokens - 100, MIN_TOKENS_LONG_CONVERSATION)
    if len(context.topics) > 3:
        tokens += 100
    return min(tokens, MAX_TOKENS_CEILING, configured)


def optimal_temperature(context: UserContext, base: float | None = None) -> float:
    """Lower the temperature for delicate conversations, raise it for creative ones."""
    temperature = settings.eiven_temperature if base is None else base
    if context.needs_support:
        temperature = 0.7
    if context.emotional_tone == "negativo":
        temperature = 0.6
    if "creatividad" in context.topics:
        temperature = 0.9
    return temperature


def build_completion_request(
    message: str,
    context: UserContext,
    history: Sequence[Message],
    *,
    persona: str | None = None,
) -> dict:
    """Full request payload for the chat completion endpoint."""
    return {
        "model": settings.eiven_model,
        "max_tokens": optimal_max_tokens(context),
        "temperature": optimal_temperature(context),
        "presence_penalty": settings.presence_penalty,
        "frequency_penalty": settings.frequency_penalty,
        "messages": build_messages(message, context, history, persona=persona),
    }


def build_echo_prompt(content: str, mood: str | None = None) -> str:
    """User prompt asking Eiven to reflect on a freshly written echo."""
    prompt = f'El usuario escribió: "{content}"'
    if mood:
        prompt += f" Se siente {mood}."
    prompt += " Genera un insight empático que invite a la reflexión profunda."
    return prompt


def build_echo_request(content: str, mood: str | None = None) -> dict:
    return {
        "model": settings.eiven_model,
        "max_tokens": settings.echo_insight_max_tokens,
        "temperature": settings.echo_insight_temperature,
        "messages": [
            {"role": "system", "content": ECHO_ANALYSIS_SYSTEM},
            {"role": "user", "content": build_echo_prompt(content, mood)},
        ],
    }
