"""In-process key-value backend.

The whole collection lives under one key as ``{"outlines": [...],
"currentOutlineId": "..."}``. This backend is the last resort of the manager: it
always probes true and never depends on user permissions.
"""

from __future__ import annotations

import asyncio
import json
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import redis

from outliner.logging import get_logger
from outliner.models.outline import Outline, outline_to_dict
from outliner.storage.protocol import AsyncBackendMixin, StorageBackend, SyncStorageBackend, WriteFailure
from outliner.storage.utils import validated_outlines

logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Minimal string key-value store."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...  # noqa: A003

    @abstractmethod
    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    """Session-only store; nothing survives the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:  # noqa: A003
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """All keys in one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable store %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:  # noqa: A003
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class RedisKeyValueStore(KeyValueStore):
    """Store keys in Redis so several processes share one collection."""

    def __init__(self, client: Any, key_prefix: str = "outliner") -> None:
        self._client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "outliner") -> RedisKeyValueStore:
        return cls(redis.Redis.from_url(redis_url, decode_responses=True), key_prefix)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def get(self, key: str) -> str | None:
        value = self._client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:  # noqa: A003
        self._client.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self._client.delete(self._key(key))


class LocalStorageBackend(AsyncBackendMixin, SyncStorageBackend, StorageBackend):
    """Whole-collection backend over a :class:`KeyValueStore`.

    Entries are addressed by outline id rather than by file name, so renaming an
    outline never moves data.
    """

    name = "local"

    def __init__(self, store: KeyValueStore | None = None, key: str = "outline-pro-data") -> None:
        self.store = store or MemoryKeyValueStore()
        self.key = key
        self._lock = threading.Lock()

    def file_name_for(self, outline: Outline) -> str:
        return outline.id

    # -- raw document --------------------------------------------------------

    def _load_document(self) -> dict[str, Any]:
        raw = self.store.get(self.key)
        if not raw:
            return {"outlines": [], "currentOutlineId": ""}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Discarding unreadable local store: %s", exc)
            return {"outlines": [], "currentOutlineId": ""}
        if not isinstance(data, dict):
            return {"outlines": [], "currentOutlineId": ""}
        if not isinstance(data.get("outlines"), list):
            data["outlines"] = []
        return data

    def _save_document(self, data: dict[str, Any]) -> None:
        self.store.set(self.key, json.dumps(data, ensure_ascii=False))

    def _upsert(self, data: dict[str, Any], outline: Outline) -> None:
        entries: list[Any] = data["outlines"]
        payload = outline_to_dict(outline)
        for index, entry in enumerate(entries):
            if isinstance(entry, dict) and entry.get("id") == outline.id:
                entries[index] = payload
                return
        entries.append(payload)

    # -- sync backend ----------------------------------------------------------

    def probe_sync(self) -> bool:
        return True

    def list_outlines_sync(self) -> list[Outline]:
        with self._lock:
            data = self._load_document()
        return validated_outlines(data["outlines"], source=f"local store {self.key!r}")

    def read_outline_sync(self, file_name: str) -> Outline | None:
        return next((o for o in self.list_outlines_sync() if o.id == file_name), None)

    def write_outline_sync(self, outline: Outline) -> None:
        with self._lock:
            data = self._load_document()
            self._upsert(data, outline)
            self._save_document(data)

    def delete_outline_sync(self, outline: Outline) -> None:
        with self._lock:
            data = self._load_document()
            data["outlines"] = [
                entry
                for entry in data["outlines"]
                if not (isinstance(entry, dict) and entry.get("id") == outline.id)
            ]
            self._save_document(data)

    def rename_outline_sync(self, old_name: str, outline: Outline) -> None:
        self.write_outline_sync(outline)

    def outline_exists_sync(self, outline: Outline) -> bool:
        with self._lock:
            data = self._load_document()
        return any(isinstance(entry, dict) and entry.get("id") == outline.id for entry in data["outlines"])

    # -- collection-level -----------------------------------------------------

    async def write_many(self, outlines: Sequence[Outline]) -> list[WriteFailure]:
        def _write_all() -> None:
            with self._lock:
                data = self._load_document()
                for outline in outlines:
                    self._upsert(data, outline)
                self._save_document(data)

        await asyncio.to_thread(_write_all)
        return []

    def replace_collection_sync(self, outlines: Sequence[Outline]) -> None:
        """Rewrite the stored collection, keeping the remembered current id."""

        with self._lock:
            data = self._load_document()
            data["outlines"] = [outline_to_dict(o) for o in outlines]
            self._save_document(data)

    async def replace_collection(self, outlines: Sequence[Outline]) -> None:
        await asyncio.to_thread(self.replace_collection_sync, outlines)

    def current_outline_id(self) -> str | None:
        with self._lock:
            value = self._load_document().get("currentOutlineId")
        return value if isinstance(value, str) and value else None

    def set_current_outline_id(self, outline_id: str) -> None:
        with self._lock:
            data = self._load_document()
            data["currentOutlineId"] = outline_id
            self._save_document(data)

    async def recall_current_outline(self) -> str | None:
        return await asyncio.to_thread(self.current_outline_id)

    async def remember_current_outline(self, outline_id: str) -> None:
        await asyncio.to_thread(self.set_current_outline_id, outline_id)
