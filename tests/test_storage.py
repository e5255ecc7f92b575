# tests/test_storage.py
from unittest.mock import AsyncMock

import pytest
import redis

from explainit.exceptions import StorageError
from explainit.storage import JsonFileStore, MemoryStore, RedisStore


@pytest.mark.asyncio
async def test_memory_store_returns_copies():
    store = MemoryStore({"apiKeys": {"openai": "sk-1"}})

    got = await store.get(["apiKeys", "missing"])
    got["apiKeys"]["openai"] = "changed"

    assert "missing" not in got
    assert store.data["apiKeys"] == {"openai": "sk-1"}


@pytest.mark.asyncio
async def test_json_file_store_round_trip(tmp_path):
    path = tmp_path / "nested" / "local.json"
    store = JsonFileStore(path)

    assert await store.get(["provider"]) == {}

    await store.set({"provider": "gemini", "apiKeys": {"gemini": "AIza-1"}})
    await store.set({"provider": "groq"})

    assert await store.get(["provider", "apiKeys"]) == {
        "provider": "groq",
        "apiKeys": {"gemini": "AIza-1"},
    }
    assert not path.with_suffix(".json.tmp").exists()


@pytest.mark.asyncio
async def test_json_file_store_corrupt_file(tmp_path):
    path = tmp_path / "sync.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError) as excinfo:
        await JsonFileStore(path).get(["language"])
    assert excinfo.value.operation == "get"


@pytest.mark.asyncio
async def test_json_file_store_rejects_non_object(tmp_path):
    path = tmp_path / "sync.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(StorageError):
        await JsonFileStore(path).set({"language": "en"})


@pytest.mark.asyncio
async def test_redis_store_prefixes_and_encodes():
    client = AsyncMock()
    client.mget.return_value = [b'"ru"', None]
    store = RedisStore("redis://unused", key_prefix="test:", client=client)

    assert await store.get(["language", "tone"]) == {"language": "ru"}
    client.mget.assert_awaited_once_with(["test:language", "test:tone"])

    await store.set({"tone": "kid"})
    client.mset.assert_awaited_once_with({"test:tone": '"kid"'})


@pytest.mark.asyncio
async def test_redis_errors_become_storage_errors():
    client = AsyncMock()
    client.mset.side_effect = redis.ConnectionError("down")
    store = RedisStore("redis://unused", client=client)

    with pytest.raises(StorageError) as excinfo:
        await store.set({"language": "en"})
    assert excinfo.value.store == "redis"
