"""Storage manager: one persistence API over prioritized backends.

Backends are probed in order and the first capable one serves each call. A call
only moves on to the next backend when the current one raises; a backend that is
merely not applicable is skipped at probe time. The local backend is always last.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from outliner.config import Settings
from outliner.errors import BackendUnavailableError, OutlineNotFoundError
from outliner.logging import get_logger, log_exception, outline_context
from outliner.models.outline import Outline, new_blank_outline
from outliner.repair import fix_duplicate_children, fix_duplicate_outline_ids
from outliner.storage.directory import DirectoryBackend, DirectoryHandle, DirectoryHandleStore
from outliner.storage.host import OutlineHost
from outliner.storage.host_client import HostBackend, HttpTransport, InProcessTransport
from outliner.storage.local import JsonFileKeyValueStore, KeyValueStore, LocalStorageBackend, RedisKeyValueStore
from outliner.storage.protocol import StorageBackend
from outliner.tree.engine import rename_outline as rename_outline_tree
from outliner.utils.ids import new_id

logger = get_logger(__name__)

ConflictResolution = Literal["overwrite", "keep_existing", "keep_both"]
MIGRATED_SUFFIX = " (migrated)"


@dataclass
class MigrationConflict:
    """An outline that already exists at the migration target."""

    local_outline: Outline
    existing_outline: Outline | None
    file_name: str


ConflictResolver = Callable[[MigrationConflict], Awaitable[ConflictResolution]]


@dataclass
class MigrationResult:
    target: str
    migrated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class StorageData:
    """Outcome of a load cycle."""

    outlines: list[Outline]
    current_outline_id: str
    backend_name: str
    repair_report: list[str] = field(default_factory=list)


class StorageManager:
    """Route persistence calls through backends in priority order.

    Args:
        backends: Higher-priority backends, tried first.
        local: The always-available fallback.
    """

    def __init__(self, backends: Sequence[StorageBackend] = (), local: LocalStorageBackend | None = None) -> None:
        self.local = local or LocalStorageBackend()
        self.backends: list[StorageBackend] = [*backends, self.local]

    async def _capable(self, backend: StorageBackend) -> bool:
        try:
            return await backend.probe()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Probe of %s backend failed: %s", backend.name, exc)
            return False

    async def _capable_backends(self) -> list[StorageBackend]:
        return [backend for backend in self.backends if await self._capable(backend)]

    async def is_file_system_storage_available(self) -> bool:
        """Whether a host or directory backend is configured and permitted."""

        for backend in self.backends:
            if backend is not self.local and await self._capable(backend):
                return True
        return False

    async def active_backend(self) -> StorageBackend:
        for backend in self.backends:
            if await self._capable(backend):
                return backend
        return self.local

    async def _run(
        self,
        action: str,
        call: Callable[[StorageBackend], Awaitable[None]],
        *,
        outline_id: str | None = None,
    ) -> str:
        """Run ``call`` against the first capable backend that does not raise."""

        for backend in await self._capable_backends():
            with outline_context(outline_id=outline_id, backend=backend.name):
                try:
                    await call(backend)
                except Exception:  # noqa: BLE001
                    log_exception(
                        logger, f"Failed to {action} via {backend.name}, falling back", outline_id=outline_id
                    )
                    continue
                logger.info("%s via %s", action.capitalize(), backend.name)
                return backend.name
        raise BackendUnavailableError(f"Could not {action}: every storage backend failed")

    # -- load ---------------------------------------------------------------------

    async def _read_collection(self) -> tuple[StorageBackend, list[Outline], str | None]:
        for backend in await self._capable_backends():
            with outline_context(backend=backend.name):
                try:
                    outlines = await backend.list_outlines()
                    current = await backend.recall_current_outline()
                except Exception as exc:  # noqa: BLE001
                    logger.error("Failed to load from %s storage: %s", backend.name, exc)
                    continue
                logger.info("Using %s storage", backend.name)
                return backend, outlines, current
        return self.local, [], None

    async def _persist_id_repair(
        self, backend: StorageBackend, outlines: list[Outline], changed: list[Outline]
    ) -> None:
        if backend is self.local:
            # Entries are keyed by id here, so the old duplicate must go too.
            await self.local.replace_collection([o for o in outlines if not o.is_guide and not o.is_lazy_loaded])
            return
        for outline in changed:
            if outline.is_lazy_loaded:
                # Written once the body is loaded; see load_single_outline_on_demand.
                logger.info("Deferring save of re-identified %s until it is opened", outline.name)
                continue
            await self.save_outline(outline)

    async def load_storage_data(self) -> StorageData:
        """Load the collection, repair it and guarantee a landing outline."""

        backend, outlines, current_id = await self._read_collection()
        report: list[str] = []

        id_repair = fix_duplicate_outline_ids(outlines)
        outlines = id_repair.outlines
        report.extend(id_repair.report)
        if id_repair.needs_save:
            await self._persist_id_repair(backend, id_repair.outlines, id_repair.needs_save)

        repaired: list[Outline] = []
        for outline in outlines:
            child_repair = fix_duplicate_children(outline)
            if child_repair.fixed:
                report.extend(child_repair.report)
                await self.save_outline(child_repair.outline)
            repaired.append(child_repair.outline)
        outlines = repaired

        user_outlines = [o for o in outlines if not o.is_guide]
        if not user_outlines:
            blank = new_blank_outline()
            outlines.append(blank)
            user_outlines.append(blank)
            await self.save_outline(blank)
            report.append(f'Created blank outline "{blank.name}"')

        known = {o.id for o in user_outlines}
        if current_id not in known:
            current_id = user_outlines[0].id

        return StorageData(
            outlines=outlines,
            current_outline_id=current_id,
            backend_name=backend.name,
            repair_report=report,
        )

    async def load_single_outline_on_demand(self, outline: Outline) -> Outline:
        """Complete a lazily listed outline; fully loaded outlines come back unchanged.

        Raises:
            OutlineNotFoundError: The backing file disappeared or no longer parses.
        """

        if not outline.is_lazy_loaded:
            return outline
        backend = await self.active_backend()
        file_name = outline.file_name or backend.file_name_for(outline)
        with outline_context(outline_id=outline.id, backend=backend.name):
            loaded = await backend.load_single_outline(file_name)
            if loaded is None:
                raise OutlineNotFoundError(f"Outline file {file_name} is missing or invalid")
            reassigned = loaded.id != outline.id
            if reassigned:
                # The stub was given a fresh id at load time; the file still has the old one.
                loaded = loaded.model_copy(update={"id": outline.id})
            child_repair = fix_duplicate_children(loaded)
            if child_repair.fixed or reassigned:
                await self.save_outline(child_repair.outline)
            return child_repair.outline

    # -- write ----------------------------------------------------------------------

    async def save_outline(self, outline: Outline) -> str | None:
        """Persist one outline; guides are never written. Returns the backend used."""

        if outline.is_guide:
            return None
        if outline.is_lazy_loaded:
            logger.warning("Refusing to save %s before it is fully loaded", outline.name)
            return None

        async def _write(backend: StorageBackend) -> None:
            await backend.write_outline(outline)

        return await self._run("save outline", _write, outline_id=outline.id)

    async def save_all_outlines(self, outlines: Sequence[Outline], current_outline_id: str) -> str:
        """Write every user outline concurrently.

        Individual failures do not stop the other writes; if any write failed the
        whole batch is retried on the next backend.
        """

        user_outlines = [o for o in outlines if not o.is_guide and not o.is_lazy_loaded]

        async def _write_all(backend: StorageBackend) -> None:
            failures = await backend.write_many(user_outlines)
            if failures:
                raise BackendUnavailableError(f"{len(failures)} outline write(s) failed")
            await backend.remember_current_outline(current_outline_id)

        return await self._run("save all outlines", _write_all)

    async def delete_outline(self, outline: Outline, outlines: Sequence[Outline] = ()) -> list[Outline]:
        """Delete an outline and return the remaining collection.

        When no user outline would remain, a new blank outline is created and saved.
        """

        async def _delete(backend: StorageBackend) -> None:
            await backend.delete_outline(outline)

        await self._run("delete outline", _delete, outline_id=outline.id)

        remaining = [o for o in outlines if o.id != outline.id]
        if not any(not o.is_guide for o in remaining):
            blank = new_blank_outline()
            await self.save_outline(blank)
            remaining.append(blank)
        return remaining

    async def rename_outline(self, outline: Outline, new_name: str) -> Outline:
        """Rename an outline (and its root node) and move its stored entry."""

        old_name = outline.name
        renamed = rename_outline_tree(outline, new_name)
        if renamed.is_guide:
            return renamed

        async def _rename(backend: StorageBackend) -> None:
            await backend.rename_outline(old_name, renamed)

        await self._run("rename outline", _rename, outline_id=outline.id)
        return renamed

    # -- migration ----------------------------------------------------------------

    async def migrate_to_file_system(self, on_conflict: ConflictResolver | None = None) -> MigrationResult:
        """Copy every outline of the local store into the file-system backend.

        Without a resolver, outlines that already exist at the target are skipped.

        Raises:
            BackendUnavailableError: No host or directory backend is available.
        """

        target: StorageBackend | None = None
        for backend in self.backends:
            if backend is not self.local and await self._capable(backend):
                target = backend
                break
        if target is None:
            raise BackendUnavailableError("No file-system storage available for migration")

        local_outlines = [o for o in await self.local.list_outlines() if not o.is_guide]
        result = MigrationResult(target=target.name)
        if not local_outlines:
            logger.info("No outlines to migrate")
            return result

        for outline in local_outlines:
            with outline_context(outline_id=outline.id, backend=target.name):
                file_name = target.file_name_for(outline)
                to_write = outline
                if await target.outline_exists(outline):
                    if on_conflict is None:
                        logger.info("Skipping %s: already exists", file_name)
                        result.skipped.append(file_name)
                        continue
                    existing = await target.load_existing(outline)
                    resolution = await on_conflict(
                        MigrationConflict(local_outline=outline, existing_outline=existing, file_name=file_name)
                    )
                    if resolution == "keep_existing":
                        result.skipped.append(file_name)
                        continue
                    if resolution == "keep_both":
                        to_write = rename_outline_tree(outline, outline.name + MIGRATED_SUFFIX)
                        to_write = to_write.model_copy(update={"id": new_id()})

                await target.write_outline(to_write)
                migrated_name = target.file_name_for(to_write)
                result.migrated.append(migrated_name)
                logger.info("Migrated %s", migrated_name)

        logger.info("Migration complete (%s)", target.name)
        return result


def default_manager(settings: Settings) -> StorageManager:
    """Assemble host, directory and local backends from settings."""

    backends: list[StorageBackend] = []
    data_dir = Path(settings.data_dir)

    if settings.host_url:
        transport = HttpTransport(settings.host_url, timeout_s=settings.host_timeout_s)
        backends.append(HostBackend(transport, extension=settings.outline_extension))
    elif settings.host_enabled:
        host = OutlineHost(
            data_dir / "host-settings.json",
            extension=settings.outline_extension,
            lazy_threshold=settings.lazy_load_threshold_bytes,
            head_bytes=settings.lazy_head_bytes,
            bytes_per_node=settings.lazy_bytes_per_node,
        )
        backends.append(HostBackend(InProcessTransport(host), extension=settings.outline_extension))

    handle_store = DirectoryHandleStore(data_dir / "directory-handle.json")
    if settings.directory_path is not None:
        # A directory given in configuration counts as granted.
        handle = DirectoryHandle(settings.directory_path, granted=("readwrite",))
        backends.append(DirectoryBackend(handle=handle, store=handle_store))
    else:
        backends.append(DirectoryBackend(store=handle_store))

    store: KeyValueStore
    if settings.redis_enabled:
        store = RedisKeyValueStore.from_url(settings.redis_url, settings.redis_key_prefix)
    else:
        store = JsonFileKeyValueStore(data_dir / "local-storage.json")
    return StorageManager(backends, LocalStorageBackend(store, settings.local_storage_key))
