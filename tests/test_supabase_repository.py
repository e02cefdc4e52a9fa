"""Tests for SupabaseConversationRepository with a mocked supabase client."""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from src.companion.models import Conversation, Message
from src.persistence.base import ConversationRepository
from src.persistence.supabase import TABLE, SupabaseConversationRepository


def _conversation(version_messages: int = 2) -> Conversation:
    conv = Conversation(id="c1", user_id="u1", title="Hola")
    for i in range(version_messages):
        conv.append(Message(role="user", content=f"m{i}"))
    return conv


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def table(client: MagicMock) -> MagicMock:
    return client.table.return_value


@pytest.fixture
def repo(client: MagicMock) -> SupabaseConversationRepository:
    return SupabaseConversationRepository(client=client)


def _version_query(table: MagicMock) -> MagicMock:
    return table.select.return_value.eq.return_value.limit.return_value.execute


def test_satisfies_protocol(repo: SupabaseConversationRepository) -> None:
    assert isinstance(repo, ConversationRepository)
    assert repo.name == "supabase"


async def test_save_inserts_when_no_stored_row(repo, client, table) -> None:
    _version_query(table).return_value = SimpleNamespace(data=[])
    conv = _conversation()

    assert await repo.save(conv) is True

    client.table.assert_called_with(TABLE)
    record = table.upsert.call_args.args[0]
    assert record["id"] == "c1"
    assert record["version"] == 2
    assert record["is_active"] is True
    assert [m["content"] for m in record["messages"]] == ["m0", "m1"]
    table.upsert.return_value.execute.assert_called_once()


async def test_save_skips_stale_write(repo, table) -> None:
    _version_query(table).return_value = SimpleNamespace(data=[{"version": 5}])

    assert await repo.save(_conversation()) is True
    table.upsert.assert_not_called()


async def test_save_failure_is_logged_and_reported(repo, table) -> None:
    _version_query(table).side_effect = RuntimeError("network down")
    assert await repo.save(_conversation()) is False


async def test_load_builds_summaries(repo, table) -> None:
    filtered = table.select.return_value.eq.return_value.eq.return_value
    chain = filtered.order.return_value
    chain.limit.return_value.execute.return_value = SimpleNamespace(
        data=[
            {
                "id": "c2",
                "title": "Trabajo",
                "messages": [{}, {}, {}],
                "version": 3,
                "updated_at": "2025-01-02T10:00:00+00:00",
            },
        ]
    )

    summaries = await repo.load("u1", limit=5)

    assert len(summaries) == 1
    assert summaries[0].id == "c2"
    assert summaries[0].message_count == 3
    assert summaries[0].version == 3
    table.select.return_value.eq.assert_called_with("user_id", "u1")
    table.select.return_value.eq.return_value.eq.assert_called_with("is_active", True)
    filtered.order.assert_called_with("updated_at", desc=True)
    chain.limit.assert_called_with(5)


async def test_load_treats_timestamp_columns_without_offset_as_utc(repo, table) -> None:
    filtered = table.select.return_value.eq.return_value.eq.return_value
    filtered.order.return_value.limit.return_value.execute.return_value = SimpleNamespace(
        data=[{"id": "c2", "messages": [], "version": 1, "updated_at": "2025-01-02T10:00:00"}]
    )

    summaries = await repo.load("u1")

    assert summaries[0].updated_at == datetime(2025, 1, 2, 10, 0, tzinfo=UTC)


async def test_load_failure_returns_empty(repo, table) -> None:
    table.select.side_effect = RuntimeError("boom")
    assert await repo.load("u1") == []


async def test_fetch_round_trip(repo, table) -> None:
    record = _conversation().to_record()
    _version_query(table).return_value = SimpleNamespace(data=[record])

    fetched = await repo.fetch("c1")

    assert fetched is not None
    assert fetched.version == 2
    assert [m.content for m in fetched.messages] == ["m0", "m1"]


async def test_fetch_missing(repo, table) -> None:
    _version_query(table).return_value = SimpleNamespace(data=[])
    assert await repo.fetch("c1") is None


def test_lazy_client_uses_settings() -> None:
    with (
        patch("supabase.create_client") as mock_create,
        patch("src.persistence.supabase.settings") as mock_settings,
    ):
        mock_settings.supabase_url = "https://example.supabase.co"
        mock_settings.supabase_key = "anon"
        repo = SupabaseConversationRepository()
        repo._get_client()
        repo._get_client()

    mock_create.assert_called_once_with("https://example.supabase.co", "anon")
