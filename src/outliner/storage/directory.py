"""User-granted directory backend.

A :class:`DirectoryHandle` stands for a directory the user picked once. Access is
governed by explicit ``read``/``readwrite`` grants which may lapse, so every
operation re-verifies permission (query first, then ask the user) and raises
:class:`~outliner.errors.PermissionDeniedError` when it is refused.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Literal

from outliner.errors import PermissionDeniedError
from outliner.logging import get_logger
from outliner.models.outline import Outline, outline_to_json
from outliner.storage.protocol import AsyncBackendMixin, StorageBackend, SyncStorageBackend
from outliner.storage.utils import outline_file_name, read_outline_file, resolve_inside

logger = get_logger(__name__)

PermissionMode = Literal["read", "readwrite"]
PermissionState = Literal["granted", "denied", "prompt"]
PermissionPrompt = Callable[[Path, PermissionMode], bool]


class DirectoryHandle:
    """A directory plus the permissions the user has granted on it."""

    def __init__(
        self,
        path: Path,
        granted: Iterable[PermissionMode] = (),
        prompt: PermissionPrompt | None = None,
    ) -> None:
        self.path = Path(path)
        self._granted: set[PermissionMode] = set(granted)
        self._prompt = prompt

    @property
    def name(self) -> str:
        return self.path.name

    def _os_allows(self, mode: PermissionMode) -> bool:
        if not self.path.is_dir():
            return False
        flags = os.R_OK | os.X_OK if mode == "read" else os.R_OK | os.W_OK | os.X_OK
        return os.access(self.path, flags)

    def query_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        if not self._os_allows(mode):
            return "denied"
        if mode in self._granted or (mode == "read" and "readwrite" in self._granted):
            return "granted"
        return "prompt"

    def request_permission(self, mode: PermissionMode = "readwrite") -> PermissionState:
        state = self.query_permission(mode)
        if state != "prompt":
            return state
        if self._prompt is None or not self._prompt(self.path, mode):
            return "denied"
        self._granted.add(mode)
        return "granted"

    def revoke(self) -> None:
        self._granted.clear()


def verify_directory_permission(handle: DirectoryHandle, mode: PermissionMode = "readwrite") -> bool:
    """Check, and if needed request, ``mode`` access to the handle's directory."""

    if handle.query_permission(mode) == "granted":
        return True
    return handle.request_permission(mode) == "granted"


class DirectoryHandleStore:
    """Remembers the picked directory across sessions in a small JSON file."""

    KEY = "userDataDir"

    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self, prompt: PermissionPrompt | None = None) -> DirectoryHandle | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to get directory handle: %s", exc)
            return None
        stored = data.get(self.KEY) if isinstance(data, dict) else None
        if not isinstance(stored, str) or not stored:
            return None
        # Grants do not survive a restart; the user is asked again on first use.
        return DirectoryHandle(Path(stored), prompt=prompt)

    def put(self, handle: DirectoryHandle) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({self.KEY: str(handle.path)}, indent=2), encoding="utf-8")


class DirectoryBackend(AsyncBackendMixin, SyncStorageBackend, StorageBackend):
    """One ``.json`` file per outline inside a user-granted directory."""

    name = "directory"
    extension = ".json"

    def __init__(self, handle: DirectoryHandle | None = None, store: DirectoryHandleStore | None = None) -> None:
        self._handle = handle
        self._store = store

    @property
    def handle(self) -> DirectoryHandle | None:
        if self._handle is None and self._store is not None:
            self._handle = self._store.get()
        return self._handle

    def use_directory(self, handle: DirectoryHandle) -> None:
        """Switch to a newly picked directory and remember it."""

        self._handle = handle
        if self._store is not None:
            self._store.put(handle)

    def _require(self, mode: PermissionMode) -> DirectoryHandle:
        handle = self.handle
        if handle is None:
            raise PermissionDeniedError("No directory selected")
        if not verify_directory_permission(handle, mode):
            action = "write" if mode == "readwrite" else "read"
            raise PermissionDeniedError(f"No {action} permission for directory {handle.path}")
        return handle

    def _write(self, directory: Path, outline: Outline) -> str:
        file_name = self.file_name_for(outline)
        resolve_inside(directory, file_name).write_text(outline_to_json(outline), encoding="utf-8")
        return file_name

    def probe_sync(self) -> bool:
        handle = self.handle
        return handle is not None and verify_directory_permission(handle, "readwrite")

    def list_outlines_sync(self) -> list[Outline]:
        handle = self._require("read")
        outlines: list[Outline] = []
        for path in sorted(handle.path.iterdir()):
            if not path.is_file() or path.suffix != self.extension:
                continue
            outline = read_outline_file(path)
            if outline is not None:
                outlines.append(outline)
        logger.info("Loaded %d outlines from %s", len(outlines), handle.path)
        return outlines

    def read_outline_sync(self, file_name: str) -> Outline | None:
        handle = self._require("read")
        path = resolve_inside(handle.path, file_name)
        if not path.is_file():
            return None
        return read_outline_file(path)

    def write_outline_sync(self, outline: Outline) -> None:
        handle = self._require("readwrite")
        file_name = self._write(handle.path, outline)
        logger.info("Saved outline to file: %s", file_name)

    def delete_outline_sync(self, outline: Outline) -> None:
        handle = self._require("readwrite")
        path = resolve_inside(handle.path, self.file_name_for(outline))
        path.unlink(missing_ok=True)
        logger.info("Deleted outline file: %s", path.name)

    def rename_outline_sync(self, old_name: str, outline: Outline) -> None:
        handle = self._require("readwrite")
        old_file = outline_file_name(old_name, self.extension)
        new_file = self.file_name_for(outline)
        if old_file != new_file:
            try:
                resolve_inside(handle.path, old_file).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not delete old file %s: %s", old_file, exc)
        self._write(handle.path, outline)
        logger.info("Renamed outline file: %s -> %s", old_file, new_file)

    def outline_exists_sync(self, outline: Outline) -> bool:
        handle = self._require("read")
        return resolve_inside(handle.path, self.file_name_for(outline)).is_file()
