"""Storage backends and the manager that routes between them."""

from __future__ import annotations

from outliner.storage.directory import (
    DirectoryBackend,
    DirectoryHandle,
    DirectoryHandleStore,
    verify_directory_permission,
)
from outliner.storage.host import OutlineHost
from outliner.storage.host_client import HostBackend, HostTransport, HttpTransport, InProcessTransport
from outliner.storage.local import (
    JsonFileKeyValueStore,
    KeyValueStore,
    LocalStorageBackend,
    MemoryKeyValueStore,
    RedisKeyValueStore,
)
from outliner.storage.manager import (
    ConflictResolution,
    ConflictResolver,
    MigrationConflict,
    MigrationResult,
    StorageData,
    StorageManager,
    default_manager,
)
from outliner.storage.protocol import PendingOperation, StorageBackend, WriteFailure
from outliner.storage.utils import outline_file_name, sanitize_file_name

__all__ = [
    "ConflictResolution",
    "ConflictResolver",
    "DirectoryBackend",
    "DirectoryHandle",
    "DirectoryHandleStore",
    "HostBackend",
    "HostTransport",
    "HttpTransport",
    "InProcessTransport",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "LocalStorageBackend",
    "MemoryKeyValueStore",
    "MigrationConflict",
    "MigrationResult",
    "OutlineHost",
    "PendingOperation",
    "RedisKeyValueStore",
    "StorageBackend",
    "StorageData",
    "StorageManager",
    "WriteFailure",
    "default_manager",
    "outline_file_name",
    "sanitize_file_name",
]
