"""Short-lived cache of processed Eiven responses keyed by (message, mood)."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.companion.models import ProcessedResponse

logger = logging.getLogger(__name__)

KEY_PREFIX = "eiven_response_"
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def string_hash(text: str) -> str:
    """32-bit rolling hash (``h * 31 + c``) of *text*, absolute value in base 36.

    Operates on UTF-16 code units so keys are stable across clients that
    hash the same way. Collisions are possible and tolerated.
    """
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def cache_key(message: str, mood: str | None = None) -> str:
    return KEY_PREFIX + string_hash(message.lower() + (mood or ""))


@dataclass
class CacheEntry:
    key: str
    response: ProcessedResponse
    created_at: float


class ResponseCache:
    """In-process TTL cache. Expired entries are evicted when looked up
    and swept whenever a new entry is stored.

    Pass *clock* (a zero-arg callable returning seconds) for tests.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = settings.response_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> ProcessedResponse | None:
        """Return the cached response, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        age = self._clock() - entry.created_at
        if age >= self._ttl:
            del self._entries[key]
            logger.debug("Cache entry %s expired after %.0fs", key, age)
            return None
        return entry.response

    def put(self, key: str, response: ProcessedResponse) -> None:
        now = self._clock()
        self._sweep(now)
        self._entries[key] = CacheEntry(key=key, response=response, created_at=now)

    def _sweep(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if now - e.created_at >= self._ttl]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> int:
        """Drop all entries. Returns the count removed."""
        count = len(self._entries)
        self._entries.clear()
        return count
