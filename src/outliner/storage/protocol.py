"""Protocol definitions for pluggable storage backends."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from outliner.models.outline import Outline
from outliner.storage.utils import outline_file_name


@dataclass
class WriteFailure:
    """One outline that a bulk write could not persist."""

    outline_id: str
    error: str


@dataclass
class PendingOperation:
    """Result of a long-running host operation awaiting acknowledgement."""

    file_name: str
    data: dict[str, Any] = field(default_factory=dict)


class StorageBackend(ABC):
    """Async interface every storage backend implements.

    The manager is generic over this interface: it probes backends in priority
    order and only moves on to the next one when a call raises.
    """

    name: str = "backend"
    extension: str = ".json"

    @abstractmethod
    async def probe(self) -> bool:
        """Whether the backend can currently serve reads and writes."""

    @abstractmethod
    async def list_outlines(self) -> list[Outline]:
        """Load every valid outline; invalid or unreadable entries are skipped."""

    @abstractmethod
    async def read_outline(self, file_name: str) -> Outline | None:
        """Load one outline by file name; ``None`` when it does not exist."""

    @abstractmethod
    async def write_outline(self, outline: Outline) -> None:
        """Create or replace the stored copy of ``outline``."""

    @abstractmethod
    async def delete_outline(self, outline: Outline) -> None:
        """Delete the stored copy of ``outline``; missing entries are not an error."""

    @abstractmethod
    async def rename_outline(self, old_name: str, outline: Outline) -> None:
        """Persist ``outline`` under its new name and drop the entry stored as ``old_name``."""

    @abstractmethod
    async def outline_exists(self, outline: Outline) -> bool:
        """Whether an entry for ``outline`` already exists."""

    def file_name_for(self, outline: Outline) -> str:
        return outline_file_name(outline.name, self.extension)

    async def load_existing(self, outline: Outline) -> Outline | None:
        """Load the stored counterpart of ``outline`` (used for migration conflicts)."""

        return await self.read_outline(self.file_name_for(outline))

    async def load_single_outline(self, file_name: str) -> Outline | None:
        """Fully load an outline previously listed in lazy form."""

        return await self.read_outline(file_name)

    async def write_many(self, outlines: Sequence[Outline]) -> list[WriteFailure]:
        """Write outlines concurrently; a failing write does not stop the others."""

        results = await asyncio.gather(*(self.write_outline(o) for o in outlines), return_exceptions=True)
        return [
            WriteFailure(outline_id=outline.id, error=str(result))
            for outline, result in zip(outlines, results)
            if isinstance(result, BaseException)
        ]

    async def recall_current_outline(self) -> str | None:
        """Id of the outline that was open last, when the backend records it."""

        return None

    async def remember_current_outline(self, outline_id: str) -> None:
        return None


class SyncStorageBackend(ABC):
    """Blocking half of a backend, wrapped by :class:`AsyncBackendMixin`."""

    @abstractmethod
    def probe_sync(self) -> bool: ...

    @abstractmethod
    def list_outlines_sync(self) -> list[Outline]: ...

    @abstractmethod
    def read_outline_sync(self, file_name: str) -> Outline | None: ...

    @abstractmethod
    def write_outline_sync(self, outline: Outline) -> None: ...

    @abstractmethod
    def delete_outline_sync(self, outline: Outline) -> None: ...

    @abstractmethod
    def rename_outline_sync(self, old_name: str, outline: Outline) -> None: ...

    @abstractmethod
    def outline_exists_sync(self, outline: Outline) -> bool: ...


class AsyncBackendMixin:
    """Provide the async :class:`StorageBackend` methods on top of blocking ones."""

    async def probe(self) -> bool:
        return await asyncio.to_thread(self.probe_sync)  # type: ignore[attr-defined]

    async def list_outlines(self) -> list[Outline]:
        return await asyncio.to_thread(self.list_outlines_sync)  # type: ignore[attr-defined]

    async def read_outline(self, file_name: str) -> Outline | None:
        return await asyncio.to_thread(self.read_outline_sync, file_name)  # type: ignore[attr-defined]

    async def write_outline(self, outline: Outline) -> None:
        await asyncio.to_thread(self.write_outline_sync, outline)  # type: ignore[attr-defined]

    async def delete_outline(self, outline: Outline) -> None:
        await asyncio.to_thread(self.delete_outline_sync, outline)  # type: ignore[attr-defined]

    async def rename_outline(self, old_name: str, outline: Outline) -> None:
        await asyncio.to_thread(self.rename_outline_sync, old_name, outline)  # type: ignore[attr-defined]

    async def outline_exists(self, outline: Outline) -> bool:
        return await asyncio.to_thread(self.outline_exists_sync, outline)  # type: ignore[attr-defined]
