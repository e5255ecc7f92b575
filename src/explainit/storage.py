# src/explainit/storage.py
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import redis
import redis.asyncio as aioredis

from explainit.exceptions import StorageError
from explainit.logging_config import get_logger

logger = get_logger("storage")


class BaseStore:
    """Async key-value store interface; failures raise StorageError."""

    name = "base"

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the stored values for keys; missing keys are omitted."""
        raise NotImplementedError

    async def set(self, items: Dict[str, Any]) -> None:
        """Store every item, replacing existing values."""
        raise NotImplementedError


class MemoryStore(BaseStore):
    """In-memory store implementation."""

    name = "memory"

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = json.loads(json.dumps(initial or {}))

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        # Copies so callers cannot mutate stored state
        return {key: json.loads(json.dumps(self.data[key])) for key in keys if key in self.data}

    async def set(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            self.data[key] = json.loads(json.dumps(value))


class JsonFileStore(BaseStore):
    """Store backed by a single JSON object on disk."""

    name = "file"

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            raise StorageError(self.name, "get", str(e), original_error=e)
        if not isinstance(data, dict):
            raise StorageError(self.name, "get", "stored document is not an object")
        return data

    def _write(self, items: Dict[str, Any]) -> None:
        data = self._read()
        data.update(items)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(self.name, "set", str(e), original_error=e)

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._read)
        return {key: data[key] for key in keys if key in data}

    async def set(self, items: Dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, dict(items))
        logger.debug("File store updated", path=str(self.path), keys=sorted(items))


class RedisStore(BaseStore):
    """Redis store implementation, values JSON-encoded under a key prefix."""

    name = "redis"

    def __init__(self, url: str, key_prefix: str = "explainit:", client=None):
        self._client = client or aioredis.Redis.from_url(url)
        self._prefix = key_prefix

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        try:
            values = await self._client.mget([self._prefix + key for key in keys])
        except redis.RedisError as e:
            raise StorageError(self.name, "get", str(e), original_error=e)

        result = {}
        for key, raw in zip(keys, values):
            if raw is None:
                continue
            try:
                result[key] = json.loads(raw)
            except ValueError as e:
                raise StorageError(self.name, "get", f"corrupt value for {key}", original_error=e)
        return result

    async def set(self, items: Dict[str, Any]) -> None:
        try:
            await self._client.mset(
                {self._prefix + key: json.dumps(value) for key, value in items.items()}
            )
        except redis.RedisError as e:
            raise StorageError(self.name, "set", str(e), original_error=e)
