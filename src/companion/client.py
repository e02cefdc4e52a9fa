"""Chat completion client with rate-limit aware retries."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import openai

from src.companion.errors import CompletionError, CompletionUnavailableError, EmptyCompletionError
from src.config import settings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class CompletionClient:
    """Wraps ``AsyncOpenAI`` chat completions and owns the retry policy.

    - HTTP 429: retry after ``base_delay * 2**attempt`` seconds.
    - Connection errors, timeouts and 5xx: retry after
      ``base_delay * (attempt + 1)`` seconds.
    - Any other API error, or a reply without content: raise immediately.

    After ``max_attempts`` failed calls ``CompletionUnavailableError`` is
    raised. The SDK's own retries are disabled so attempts are counted here.
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.max_attempts = max(1, settings.retry_max_attempts if max_attempts is None else max_attempts)
        self.base_delay = settings.retry_base_delay_seconds if base_delay is None else base_delay
        self._sleep = sleep

    def _get_client(self) -> AsyncOpenAI:
        """Lazily initialize the OpenAI client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
        return self._client

    async def create(self, payload: dict[str, Any]) -> Any:
        """Submit *payload* to ``chat.completions.create`` with retries.

        Returns the SDK response object.
        """
        client = self._get_client()
        last_error: Exception | None = None
        status_code: int | None = None

        for attempt in range(self.max_attempts):
            try:
                return await client.chat.completions.create(**payload)
            except openai.RateLimitError as exc:
                last_error, status_code = exc, exc.status_code
                delay = self.base_delay * 2**attempt
                logger.warning(
                    "Rate limited by completion API (attempt %d/%d)", attempt + 1, self.max_attempts
                )
            except (openai.APIConnectionError, openai.InternalServerError) as exc:
                last_error = exc
                status_code = getattr(exc, "status_code", None)
                delay = self.base_delay * (attempt + 1)
                logger.warning(
                    "Completion API unavailable (attempt %d/%d): %s",
                    attempt + 1,
                    self.max_attempts,
                    exc,
                )
            except openai.APIStatusError as exc:
                msg = f"Completion API error: {exc.status_code}"
                raise CompletionError(msg, status_code=exc.status_code) from exc
            except openai.OpenAIError as exc:
                msg = f"Completion API error: {exc}"
                raise CompletionError(msg) from exc

            if attempt < self.max_attempts - 1:
                await self._sleep(delay)

        msg = f"Completion API unavailable after {self.max_attempts} attempts"
        raise CompletionUnavailableError(
            msg, attempts=self.max_attempts, status_code=status_code
        ) from last_error

    async def complete(self, payload: dict[str, Any]) -> str:
        """Like :meth:`create` but returns only the reply text.

        Raises:
            EmptyCompletionError: The reply has no choices or empty content.
        """
        t0 = time.monotonic()
        response = await self.create(payload)

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            msg = "Malformed completion response"
            raise EmptyCompletionError(msg) from exc

        if not content or not content.strip():
            msg = "Completion response had no content"
            raise EmptyCompletionError(msg)

        usage = getattr(response, "usage", None)
        logger.info(
            "Completion in %.2fs (%s tokens)",
            time.monotonic() - t0,
            getattr(usage, "total_tokens", "?"),
        )
        return content
