"""Tests for the response cache."""

import pytest
from pydantic import ValidationError

from src.companion.cache import KEY_PREFIX, ResponseCache, cache_key, string_hash
from src.companion.models import ProcessedResponse


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _response(text: str = "Aquí estoy.") -> ProcessedResponse:
    return ProcessedResponse(message=text, mood="sereno")


# -- Keys ---------------------------------------------------------------------


def test_string_hash_known_values() -> None:
    assert string_hash("") == "0"
    # 'a' is code unit 97 → base36 "2p"
    assert string_hash("a") == "2p"
    # "ab" → 97 * 31 + 98 = 3105 → base36 "2e9"
    assert string_hash("ab") == "2e9"


def test_string_hash_wraps_to_32_bits() -> None:
    value = string_hash("una frase bastante larga para desbordar el entero de 32 bits")
    assert int(value, 36) <= 2**31


def test_cache_key_normalizes_case_and_includes_mood() -> None:
    assert cache_key("Hola") == cache_key("hola")
    assert cache_key("hola", "triste") != cache_key("hola")
    assert cache_key("hola", "triste") == KEY_PREFIX + string_hash("holatriste")
    assert cache_key("hola", None) == cache_key("hola", "")


# -- ResponseCache ------------------------------------------------------------


def test_round_trip_within_ttl() -> None:
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=3600, clock=clock)
    response = _response()
    cache.put("k", response)

    clock.now += 3599
    assert cache.get("k") is response


def test_expired_entry_is_a_miss_and_evicted() -> None:
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=3600, clock=clock)
    cache.put("k", _response())

    clock.now += 3600
    assert cache.get("k") is None
    assert "k" not in cache
    assert len(cache) == 0


def test_missing_key() -> None:
    assert ResponseCache(ttl_seconds=10).get("nope") is None


def test_put_overwrites_and_resets_age() -> None:
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=100, clock=clock)
    cache.put("k", _response("uno"))
    clock.now += 90
    cache.put("k", _response("dos"))
    clock.now += 50
    assert cache.get("k").message == "dos"


def test_put_sweeps_expired_entries() -> None:
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=100, clock=clock)
    cache.put("old", _response())
    clock.now += 60
    cache.put("recent", _response())
    clock.now += 40
    cache.put("new", _response())

    assert "old" not in cache
    assert "recent" in cache
    assert len(cache) == 2


def test_cached_response_cannot_be_mutated() -> None:
    cache = ResponseCache(ttl_seconds=100)
    cache.put("k", _response("original"))

    with pytest.raises(ValidationError):
        cache.get("k").message = "changed"
    assert cache.get("k").message == "original"


def test_clear() -> None:
    cache = ResponseCache(ttl_seconds=100)
    cache.put("a", _response())
    cache.put("b", _response())
    assert cache.clear() == 2
    assert len(cache) == 0


def test_default_ttl_from_settings() -> None:
    assert ResponseCache().ttl_seconds == 3600.0
