"""Tests for CompletionClient retry behaviour."""

from unittest.mock import call, patch

import openai
import pytest
from fakes import (
    bad_request_error,
    completion,
    connection_error,
    make_openai,
    rate_limit_error,
    server_error,
)

from src.companion.client import CompletionClient
from src.companion.errors import (
    CompletionError,
    CompletionUnavailableError,
    EmptyCompletionError,
)

PAYLOAD = {"model": "gpt-4o", "messages": [{"role": "user", "content": "hola"}]}


async def test_complete_returns_content(make_client, sleep) -> None:
    client = make_client(completion("Aquí estoy."))
    assert await client.complete(PAYLOAD) == "Aquí estoy."
    sleep.assert_not_awaited()


async def test_payload_forwarded_as_kwargs(make_client) -> None:
    client = make_client(completion("ok"))
    await client.complete(PAYLOAD)
    sdk = client._get_client()
    sdk.chat.completions.create.assert_awaited_once_with(**PAYLOAD)


async def test_rate_limit_retries_with_exponential_backoff(make_client, sleep) -> None:
    client = make_client(rate_limit_error(), rate_limit_error(), completion("ok"), max_attempts=4)
    assert await client.complete(PAYLOAD) == "ok"
    assert sleep.await_args_list == [call(1.0), call(2.0)]


async def test_transport_errors_retry_with_linear_backoff(make_client, sleep) -> None:
    client = make_client(connection_error(), server_error(), completion("ok"), base_delay=0.5)
    assert await client.complete(PAYLOAD) == "ok"
    assert sleep.await_args_list == [call(0.5), call(1.0)]


async def test_rate_limit_cap_propagates_failure(make_client, sleep) -> None:
    client = make_client(*[rate_limit_error() for _ in range(5)], max_attempts=3)

    with pytest.raises(CompletionUnavailableError) as excinfo:
        await client.complete(PAYLOAD)

    assert excinfo.value.attempts == 3
    assert excinfo.value.status_code == 429
    assert isinstance(excinfo.value.__cause__, openai.RateLimitError)
    assert client._get_client().chat.completions.create.await_count == 3
    # No sleep after the final attempt
    assert sleep.await_args_list == [call(1.0), call(2.0)]


async def test_connection_errors_exhaust(make_client) -> None:
    client = make_client(*[connection_error() for _ in range(3)])
    with pytest.raises(CompletionUnavailableError):
        await client.complete(PAYLOAD)


async def test_other_status_errors_are_not_retried(make_client, sleep) -> None:
    client = make_client(bad_request_error(), completion("never"))
    with pytest.raises(CompletionError) as excinfo:
        await client.complete(PAYLOAD)

    assert not isinstance(excinfo.value, CompletionUnavailableError)
    assert excinfo.value.status_code == 400
    sleep.assert_not_awaited()


async def test_sdk_errors_outside_api_errors_are_wrapped(make_client, sleep) -> None:
    client = make_client(openai.OpenAIError("missing api key"), completion("never"))
    with pytest.raises(CompletionError, match="missing api key") as excinfo:
        await client.complete(PAYLOAD)

    assert excinfo.value.status_code is None
    assert client._get_client().chat.completions.create.await_count == 1
    sleep.assert_not_awaited()


async def test_empty_content_is_permanent(make_client, sleep) -> None:
    client = make_client(completion(""), completion("later"))
    with pytest.raises(EmptyCompletionError):
        await client.complete(PAYLOAD)
    assert client._get_client().chat.completions.create.await_count == 1
    sleep.assert_not_awaited()


async def test_missing_choices_is_malformed(make_client) -> None:
    from types import SimpleNamespace

    client = make_client(SimpleNamespace(choices=[]))
    with pytest.raises(EmptyCompletionError, match="Malformed"):
        await client.complete(PAYLOAD)


async def test_single_attempt_configuration(sleep) -> None:
    client = CompletionClient(make_openai(rate_limit_error()), max_attempts=1, sleep=sleep)
    with pytest.raises(CompletionUnavailableError):
        await client.complete(PAYLOAD)
    sleep.assert_not_awaited()


def test_defaults_come_from_settings() -> None:
    client = CompletionClient(make_openai())
    assert client.max_attempts == 3
    assert client.base_delay == 1.0


def test_lazy_sdk_client_disables_sdk_retries() -> None:
    with patch("src.companion.client.openai.AsyncOpenAI") as mock_cls:
        client = CompletionClient()
        sdk = client._get_client()
        assert client._get_client() is sdk

    mock_cls.assert_called_once()
    assert mock_cls.call_args.kwargs["max_retries"] == 0
