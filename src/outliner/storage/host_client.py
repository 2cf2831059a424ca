"""Client side of the host request surface."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import httpx

from outliner.errors import BackendUnavailableError, HostRequestError
from outliner.logging import get_logger
from outliner.models.outline import Outline, outline_from_dict, outline_to_dict
from outliner.storage.host import OutlineHost
from outliner.storage.protocol import PendingOperation, StorageBackend
from outliner.storage.utils import outline_file_name

logger = get_logger(__name__)

_NOT_FOUND = "File not found"


class HostTransport(ABC):
    """Carries one request to the host and returns its reply object."""

    @abstractmethod
    async def request(self, channel: str, payload: dict[str, Any] | None = None) -> dict[str, Any]: ...

    async def aclose(self) -> None:
        return None


class InProcessTransport(HostTransport):
    """Call an embedded :class:`OutlineHost` directly, off the event loop."""

    def __init__(self, host: OutlineHost) -> None:
        self.host = host

    async def request(self, channel: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        return await asyncio.to_thread(self.host.dispatch, channel, payload or {})


class HttpTransport(HostTransport):
    """POST requests to a host service at ``{base_url}/ipc/{channel}``."""

    def __init__(self, base_url: str, *, timeout_s: float = 30.0, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
        self._owns_client = client is None

    async def request(self, channel: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._client.post(f"{self.base_url}/ipc/{channel}", json=payload or {})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise BackendUnavailableError(f"Host unreachable for {channel}: {exc}") from exc
        data = response.json()
        if not isinstance(data, dict):
            raise HostRequestError(channel, "malformed reply")
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HostBackend(StorageBackend):
    """Backend talking to a native host process.

    Listing is lazy by default: large files come back as stubs with empty ``nodes``
    and ``is_lazy_loaded`` set, to be completed by :meth:`load_single_outline`.
    """

    name = "host"

    def __init__(self, transport: HostTransport, *, extension: str = ".idm", lazy: bool = True) -> None:
        self.transport = transport
        self.extension = extension
        self.lazy = lazy

    async def _call(self, channel: str, **payload: Any) -> dict[str, Any]:
        reply = await self.transport.request(channel, payload)
        if not reply.get("success"):
            raise HostRequestError(channel, reply.get("error"))
        return reply

    async def _directory(self) -> str:
        directory = await self.stored_directory()
        if directory is None:
            raise BackendUnavailableError("No directory configured")
        return directory

    async def stored_directory(self) -> str | None:
        reply = await self._call("get-stored-directory-path")
        return reply.get("dirPath")

    async def select_directory(self, dir_path: str | None = None) -> str | None:
        """Ask the host to pick (or set) the outline directory; ``None`` if cancelled."""

        payload = {"dirPath": dir_path} if dir_path else {}
        reply = await self._call("select-directory", **payload)
        return reply.get("dirPath")

    async def probe(self) -> bool:
        return await self.stored_directory() is not None

    def _parse_entry(self, entry: Any) -> Outline | None:
        if isinstance(entry, dict) and entry.get("_isLazyLoaded"):
            if all(isinstance(entry.get(k), str) for k in ("id", "name", "rootNodeId")):
                return Outline.model_validate(entry)
            return None
        outline = outline_from_dict(entry)
        if outline is not None and isinstance(entry, dict):
            extras = {
                "file_name": entry.get("_fileName"),
                "file_size": entry.get("_fileSize"),
            }
            outline = outline.model_copy(update={k: v for k, v in extras.items() if v is not None})
        return outline

    async def list_outlines(self) -> list[Outline]:
        dir_path = await self._directory()
        channel = "read-outline-metadata-from-directory" if self.lazy else "read-outlines-from-directory"
        reply = await self._call(channel, dirPath=dir_path)

        outlines: list[Outline] = []
        for entry in reply.get("outlines") or []:
            outline = self._parse_entry(entry)
            if outline is None:
                logger.warning("Skipping invalid outline from host: %s", _entry_label(entry))
                continue
            outlines.append(outline)
        logger.info("Loaded %d outlines from host storage", len(outlines))
        return outlines

    async def read_outline(self, file_name: str) -> Outline | None:
        dir_path = await self._directory()
        reply = await self.transport.request("load-outline-from-file", {"dirPath": dir_path, "fileName": file_name})
        if not reply.get("success"):
            if reply.get("error") == _NOT_FOUND:
                return None
            raise HostRequestError("load-outline-from-file", reply.get("error"))
        return outline_from_dict(reply.get("outline"))

    async def load_single_outline(self, file_name: str) -> Outline | None:
        dir_path = await self._directory()
        reply = await self._call("load-single-outline", dirPath=dir_path, fileName=file_name)
        return self._parse_entry(reply.get("outline"))

    async def get_outline_mtime(self, file_name: str) -> float:
        """Modification time in milliseconds, for external-change detection."""

        dir_path = await self._directory()
        reply = await self._call("get-outline-mtime", dirPath=dir_path, fileName=file_name)
        return float(reply["mtimeMs"])

    async def write_outline(self, outline: Outline) -> None:
        dir_path = await self._directory()
        await self._call("save-outline-to-file", dirPath=dir_path, outline=outline_to_dict(outline))

    async def delete_outline(self, outline: Outline) -> None:
        dir_path = await self._directory()
        await self._call("delete-outline-file", dirPath=dir_path, fileName=self.file_name_for(outline))

    async def rename_outline(self, old_name: str, outline: Outline) -> None:
        dir_path = await self._directory()
        await self._call(
            "rename-outline-file",
            dirPath=dir_path,
            oldFileName=outline_file_name(old_name, self.extension),
            outline=outline_to_dict(outline),
        )

    async def outline_exists(self, outline: Outline) -> bool:
        directory = await self.stored_directory()
        if directory is None:
            return False
        reply = await self._call("check-outline-exists", dirPath=directory, fileName=self.file_name_for(outline))
        return bool(reply.get("exists"))

    async def check_pending_operations(self) -> list[PendingOperation]:
        reply = await self._call("check-pending-operations")
        pending: list[PendingOperation] = []
        for entry in reply.get("pendingOperations") or []:
            data = dict(entry)
            file_name = data.pop("fileName", "")
            pending.append(PendingOperation(file_name=file_name, data=data))
        return pending

    async def delete_pending_operation(self, file_name: str) -> None:
        await self._call("delete-pending-operation", fileName=file_name)


def _entry_label(entry: Any) -> str:
    if isinstance(entry, dict):
        return str(entry.get("_fileName") or entry.get("name") or entry.get("id") or "?")
    return type(entry).__name__
