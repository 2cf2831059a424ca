"""Host-side handlers for the native request surface.

The host owns direct filesystem access. Clients send ``(channel, payload)``
requests and always get a JSON-able ``{"success": bool, ...}`` reply; handler
failures are reported in the reply rather than raised. Requests can be served
in-process or over HTTP by :mod:`outliner.api.app`.
"""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from outliner.logging import get_logger
from outliner.models.outline import is_valid_outline
from outliner.storage.utils import outline_file_name, resolve_inside

logger = get_logger(__name__)

DirectoryPicker = Callable[[], str | None]
Handler = Callable[[dict[str, Any]], dict[str, Any]]

PENDING_DIR = ".pending"

_ID_RE = re.compile(r'"id"\s*:\s*"([^"]+)"')
_NAME_RE = re.compile(r'"name"\s*:\s*"([^"]+)"')
_ROOT_RE = re.compile(r'"rootNodeId"\s*:\s*"([^"]+)"')
_GUIDE_RE = re.compile(r'"isGuide"\s*:\s*(true|false)')
_MODIFIED_RE = re.compile(r'"lastModified"\s*:\s*(\d+)')


class OutlineHost:
    """Serve outline files from the directory stored in the host settings file.

    Args:
        settings_path: JSON file persisting host settings (the chosen directory).
        picker: Called by ``select-directory`` when the request names no directory;
            returns the chosen path or ``None`` when the user cancels.
        extension: Outline file extension.
        lazy_threshold: Files at or above this size are listed from their head only.
        head_bytes: How much of a large file is scanned for metadata.
        bytes_per_node: Divisor for the node-count estimate of large files.
    """

    def __init__(
        self,
        settings_path: Path,
        picker: DirectoryPicker | None = None,
        *,
        extension: str = ".idm",
        lazy_threshold: int = 1024 * 1024,
        head_bytes: int = 4096,
        bytes_per_node: int = 5000,
    ) -> None:
        self.settings_path = settings_path
        self.picker = picker
        self.extension = extension
        self.lazy_threshold = lazy_threshold
        self.head_bytes = head_bytes
        self.bytes_per_node = bytes_per_node
        self._handlers: dict[str, Handler] = {
            "select-directory": self.select_directory,
            "get-stored-directory-path": self.get_stored_directory_path,
            "read-outline-metadata-from-directory": self.read_outline_metadata,
            "load-single-outline": self.load_single_outline,
            "get-outline-mtime": self.get_outline_mtime,
            "read-outlines-from-directory": self.read_outlines,
            "save-outline-to-file": self.save_outline,
            "delete-outline-file": self.delete_outline,
            "rename-outline-file": self.rename_outline,
            "check-outline-exists": self.check_outline_exists,
            "load-outline-from-file": self.load_outline,
            "check-pending-operations": self.check_pending_operations,
            "delete-pending-operation": self.delete_pending_operation,
        }

    @property
    def channels(self) -> list[str]:
        return list(self._handlers)

    def dispatch(self, channel: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run one request; unknown channels and handler errors become failure replies."""

        handler = self._handlers.get(channel)
        if handler is None:
            return {"success": False, "error": f"Unknown channel: {channel}"}
        try:
            return handler(payload or {})
        except (OSError, ValueError, TypeError, KeyError) as exc:
            logger.error("Host request %s failed: %s", channel, exc)
            return {"success": False, "error": str(exc)}

    # -- settings ----------------------------------------------------------------

    def _load_settings(self) -> dict[str, Any]:
        try:
            if self.settings_path.exists():
                data = json.loads(self.settings_path.read_text(encoding="utf-8"))
                return data if isinstance(data, dict) else {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to load settings: %s", exc)
        return {}

    def _save_settings(self, settings: dict[str, Any]) -> None:
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        self.settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")

    def stored_directory(self) -> Path | None:
        value = self._load_settings().get("outlinesDirectory")
        return Path(value) if isinstance(value, str) and value else None

    def _directory(self, payload: dict[str, Any]) -> Path:
        value = payload.get("dirPath")
        directory = Path(value) if isinstance(value, str) and value else self.stored_directory()
        if directory is None:
            raise ValueError("No outlines directory configured")
        return directory

    def _file(self, payload: dict[str, Any], key: str = "fileName") -> Path:
        return resolve_inside(self._directory(payload), str(payload.get(key) or ""))

    # -- directory selection -------------------------------------------------------

    def select_directory(self, payload: dict[str, Any]) -> dict[str, Any]:
        chosen = payload.get("dirPath")
        if not chosen and self.picker is not None:
            chosen = self.picker()
        if not chosen:
            return {"success": True, "dirPath": None}

        directory = Path(chosen).expanduser().resolve()
        directory.mkdir(parents=True, exist_ok=True)
        settings = self._load_settings()
        settings["outlinesDirectory"] = str(directory)
        self._save_settings(settings)
        logger.info("Outline directory set to %s", directory)
        return {"success": True, "dirPath": str(directory)}

    def get_stored_directory_path(self, payload: dict[str, Any]) -> dict[str, Any]:
        directory = self.stored_directory()
        return {"success": True, "dirPath": str(directory) if directory else None}

    # -- reads -------------------------------------------------------------------

    def _outline_files(self, directory: Path) -> list[Path]:
        return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == self.extension)

    def _metadata_from_head(self, path: Path, size: int, mtime_ms: float) -> dict[str, Any]:
        with path.open("rb") as fh:
            head = fh.read(self.head_bytes).decode("utf-8", errors="ignore")

        fallback = path.stem
        id_match = _ID_RE.search(head)
        name_match = _NAME_RE.search(head)
        root_match = _ROOT_RE.search(head)
        guide_match = _GUIDE_RE.search(head)
        modified_match = _MODIFIED_RE.search(head)
        estimated = round(size / self.bytes_per_node)

        logger.info(
            "[Lazy] Deferred loading of %s (%.1fMB, ~%d nodes)", path.name, size / 1024 / 1024, estimated
        )
        return {
            "id": id_match.group(1) if id_match else fallback,
            "name": name_match.group(1) if name_match else fallback,
            "rootNodeId": root_match.group(1) if root_match else "root",
            "nodes": {},
            "isGuide": guide_match.group(1) == "true" if guide_match else False,
            "lastModified": int(modified_match.group(1)) if modified_match else int(mtime_ms),
            "_fileSize": size,
            "_fileName": path.name,
            "_isLazyLoaded": True,
            "_estimatedNodeCount": estimated,
        }

    def read_outline_metadata(self, payload: dict[str, Any]) -> dict[str, Any]:
        """List outlines, deferring full parsing of files above the lazy threshold."""

        directory = self._directory(payload)
        entries: list[dict[str, Any]] = []
        for path in self._outline_files(directory):
            try:
                stats = path.stat()
                if stats.st_size < self.lazy_threshold:
                    outline = json.loads(path.read_text(encoding="utf-8"))
                    entries.append(
                        {**outline, "_fileSize": stats.st_size, "_fileName": path.name, "_isLazyLoaded": False}
                    )
                else:
                    entries.append(self._metadata_from_head(path, stats.st_size, stats.st_mtime * 1000))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, TypeError) as exc:
                logger.error("Failed to load metadata for %s: %s", path.name, exc)
        return {"success": True, "outlines": entries}

    def load_single_outline(self, payload: dict[str, Any]) -> dict[str, Any]:
        path = self._file(payload)
        logger.info("[Lazy] Loading full outline: %s", path.name)
        outline = json.loads(path.read_text(encoding="utf-8"))
        size = path.stat().st_size
        logger.info("[Lazy] Loaded %s: %d nodes", path.name, len(outline.get("nodes") or {}))
        return {
            "success": True,
            "outline": {**outline, "_fileSize": size, "_fileName": path.name, "_isLazyLoaded": False},
        }

    def get_outline_mtime(self, payload: dict[str, Any]) -> dict[str, Any]:
        path = self._file(payload)
        if not path.exists():
            return {"success": False, "error": "File not found"}
        return {"success": True, "mtimeMs": path.stat().st_mtime * 1000}

    def read_outlines(self, payload: dict[str, Any]) -> dict[str, Any]:
        directory = self._directory(payload)
        outlines: list[Any] = []
        for path in self._outline_files(directory):
            try:
                outlines.append(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                logger.error("Failed to load %s: %s", path.name, exc)
        return {"success": True, "outlines": outlines}

    def check_outline_exists(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {"success": True, "exists": self._file(payload).is_file()}

    def load_outline(self, payload: dict[str, Any]) -> dict[str, Any]:
        path = self._file(payload)
        if not path.exists():
            return {"success": False, "error": "File not found"}
        return {"success": True, "outline": json.loads(path.read_text(encoding="utf-8"))}

    # -- writes ------------------------------------------------------------------

    def _write(self, directory: Path, outline: dict[str, Any]) -> str:
        if not is_valid_outline(outline):
            raise ValueError("Refusing to write an invalid outline")
        file_name = outline_file_name(outline["name"], self.extension)
        resolve_inside(directory, file_name).write_text(
            json.dumps(outline, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        return file_name

    def save_outline(self, payload: dict[str, Any]) -> dict[str, Any]:
        file_name = self._write(self._directory(payload), payload["outline"])
        logger.info("Saved outline: %s", file_name)
        return {"success": True, "fileName": file_name}

    def delete_outline(self, payload: dict[str, Any]) -> dict[str, Any]:
        path = self._file(payload)
        if path.exists():
            path.unlink()
            logger.info("Deleted outline: %s", path.name)
        return {"success": True}

    def rename_outline(self, payload: dict[str, Any]) -> dict[str, Any]:
        directory = self._directory(payload)
        outline = payload["outline"]
        old_path = self._file(payload, "oldFileName")
        new_file = outline_file_name(str(outline.get("name", "")), self.extension)
        if old_path.name != new_file and old_path.exists():
            old_path.unlink()
        self._write(directory, outline)
        if old_path.name != new_file:
            logger.info("Renamed: %s -> %s", old_path.name, new_file)
        return {"success": True, "fileName": new_file}

    # -- pending-operation recovery ---------------------------------------------

    def _pending_dir(self) -> Path | None:
        directory = self.stored_directory()
        return directory / PENDING_DIR if directory is not None else None

    def record_pending_result(self, name: str, result: dict[str, Any]) -> str:
        """Persist the result of an operation that outlived its caller."""

        pending = self._pending_dir()
        if pending is None:
            raise ValueError("No outlines directory configured")
        pending.mkdir(parents=True, exist_ok=True)
        file_name = f"{name or int(time.time() * 1000)}.json"
        resolve_inside(pending, file_name).write_text(json.dumps(result, ensure_ascii=False), encoding="utf-8")
        return file_name

    def check_pending_operations(self, payload: dict[str, Any]) -> dict[str, Any]:
        pending = self._pending_dir()
        if pending is None or not pending.is_dir():
            return {"success": True, "pendingOperations": []}

        found: list[dict[str, Any]] = []
        for path in sorted(pending.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.error("Failed to load pending operation %s: %s", path.name, exc)
                continue
            if isinstance(data, dict):
                found.append({**data, "fileName": path.name})
        logger.info("[Pending] Found %d pending operation(s)", len(found))
        return {"success": True, "pendingOperations": found}

    def delete_pending_operation(self, payload: dict[str, Any]) -> dict[str, Any]:
        pending = self._pending_dir()
        if pending is None:
            return {"success": False, "error": "No outlines directory configured"}
        path = resolve_inside(pending, str(payload.get("fileName") or ""))
        if path.exists():
            path.unlink()
            logger.info("[Pending] Deleted pending operation: %s", path.name)
        return {"success": True}
