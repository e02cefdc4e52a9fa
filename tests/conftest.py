"""Shared test fixtures."""

from unittest.mock import AsyncMock

import pytest
from fakes import make_openai

from src.companion.client import CompletionClient


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records requested delays."""
    return AsyncMock()


@pytest.fixture
def make_client(sleep: AsyncMock):
    """Factory for a CompletionClient over a mocked OpenAI SDK."""

    def _make(*results, max_attempts: int = 3, base_delay: float = 1.0) -> CompletionClient:
        return CompletionClient(
            make_openai(*results),
            max_attempts=max_attempts,
            base_delay=base_delay,
            sleep=sleep,
        )

    return _make
