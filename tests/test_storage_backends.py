"""Tests for the individual storage backends."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from outliner.errors import HostRequestError, PermissionDeniedError
from outliner.models.outline import new_blank_outline, outline_to_dict
from outliner.storage import (
    DirectoryBackend,
    DirectoryHandle,
    DirectoryHandleStore,
    HostBackend,
    InProcessTransport,
    JsonFileKeyValueStore,
    LocalStorageBackend,
    OutlineHost,
    RedisKeyValueStore,
    sanitize_file_name,
)
from outliner.tree import add_node, with_nodes


class FakeRedis:
    """Just enough of the redis client API for the key-value store."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


def sample(name: str = "Plan"):
    outline = new_blank_outline(name)
    nodes, _ = add_node(outline.nodes, outline.root_node_id, name="Step")
    return with_nodes(outline, nodes)


def make_host(tmp_path: Path, **kwargs) -> tuple[OutlineHost, Path]:
    outlines_dir = tmp_path / "outlines"
    host = OutlineHost(tmp_path / "settings.json", **kwargs)
    host.dispatch("select-directory", {"dirPath": str(outlines_dir)})
    return host, outlines_dir


def test_sanitize_file_name() -> None:
    assert sanitize_file_name('a<b>:c"d/e\\f|g?h*i\x01') == "a_b__c_d_e_f_g_h_i_"


def test_local_backend_round_trip_and_current_id(tmp_path: Path) -> None:
    backend = LocalStorageBackend(JsonFileKeyValueStore(tmp_path / "store.json"))
    first, second = sample("One"), sample("Two")

    async def scenario() -> None:
        assert await backend.probe()
        await backend.write_outline(first)
        await backend.write_outline(second)
        await backend.write_outline(first.model_copy(update={"name": "One!"}))
        await backend.remember_current_outline(second.id)

        outlines = await backend.list_outlines()
        assert [o.name for o in outlines] == ["One!", "Two"]
        assert await backend.recall_current_outline() == second.id
        assert await backend.outline_exists(first)

        await backend.delete_outline(first)
        assert [o.id for o in await backend.list_outlines()] == [second.id]
        assert await backend.read_outline(second.id) == second

    asyncio.run(scenario())

    raw = json.loads(json.loads((tmp_path / "store.json").read_text(encoding="utf-8"))["outline-pro-data"])
    assert raw["currentOutlineId"] == second.id


def test_local_backend_drops_invalid_entries() -> None:
    client = FakeRedis()
    store = RedisKeyValueStore(client, "test")
    good = outline_to_dict(sample())
    store.set("outline-pro-data", json.dumps({"outlines": [good, {"id": 1}, "junk"], "currentOutlineId": ""}))

    backend = LocalStorageBackend(store)
    outlines = asyncio.run(backend.list_outlines())

    assert [o.id for o in outlines] == [good["id"]]
    assert "test:outline-pro-data" in client.data


def test_local_backend_write_many_is_one_document() -> None:
    backend = LocalStorageBackend()
    outlines = [sample(f"N{i}") for i in range(5)]

    failures = asyncio.run(backend.write_many(outlines))

    assert failures == []
    assert len(asyncio.run(backend.list_outlines())) == 5


def test_directory_backend_files(tmp_path: Path) -> None:
    handle = DirectoryHandle(tmp_path, granted=("readwrite",))
    backend = DirectoryBackend(handle)
    outline = sample("My: Plan")

    async def scenario() -> None:
        assert await backend.probe()
        await backend.write_outline(outline)
        assert (tmp_path / "My_ Plan.json").exists()
        assert await backend.outline_exists(outline)

        renamed = outline.model_copy(update={"name": "Renamed"})
        await backend.rename_outline(outline.name, renamed)
        assert not (tmp_path / "My_ Plan.json").exists()
        assert (await backend.read_outline("Renamed.json")).name == "Renamed"

        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
        assert [o.name for o in await backend.list_outlines()] == ["Renamed"]

        await backend.delete_outline(renamed)
        assert await backend.list_outlines() == []

    asyncio.run(scenario())


def test_directory_permission_is_verified_every_time(tmp_path: Path) -> None:
    answers: list[bool] = [True]
    asked: list[str] = []

    def prompt(path: Path, mode: str) -> bool:
        asked.append(mode)
        return answers[-1]

    handle = DirectoryHandle(tmp_path, prompt=prompt)
    backend = DirectoryBackend(handle)
    outline = sample()

    asyncio.run(backend.write_outline(outline))
    assert asked == ["readwrite"]

    handle.revoke()
    answers.append(False)
    with pytest.raises(PermissionDeniedError):
        asyncio.run(backend.write_outline(outline))
    with pytest.raises(PermissionDeniedError):
        asyncio.run(backend.list_outlines())
    assert not asyncio.run(backend.probe())


def test_directory_handle_store_remembers_choice(tmp_path: Path) -> None:
    store = DirectoryHandleStore(tmp_path / "handle.json")
    assert store.get() is None

    chosen = tmp_path / "docs"
    chosen.mkdir()
    DirectoryBackend(store=store).use_directory(DirectoryHandle(chosen, granted=("readwrite",)))

    restored = store.get()
    assert restored is not None
    assert restored.path == chosen
    assert restored.query_permission("read") == "prompt"


def test_host_lazy_metadata_for_large_files(tmp_path: Path) -> None:
    host, outlines_dir = make_host(tmp_path, lazy_threshold=1500, bytes_per_node=100)
    small = new_blank_outline("Small")
    big = sample("Big")
    big.nodes[big.root_node_id] = big.root.model_copy(update={"content": "x" * 2500})
    host.dispatch("save-outline-to-file", {"outline": outline_to_dict(small)})
    host.dispatch("save-outline-to-file", {"outline": outline_to_dict(big)})

    reply = host.dispatch("read-outline-metadata-from-directory", {})
    assert reply["success"]
    entries = {e["name"]: e for e in reply["outlines"]}

    assert entries["Small"]["_isLazyLoaded"] is False
    lazy = entries["Big"]
    assert lazy["_isLazyLoaded"] is True
    assert lazy["id"] == big.id
    assert lazy["rootNodeId"] == big.root_node_id
    assert lazy["nodes"] == {}
    assert lazy["isGuide"] is False
    assert lazy["lastModified"] == big.last_modified
    size = (outlines_dir / "Big.idm").stat().st_size
    assert lazy["_fileSize"] == size
    assert lazy["_estimatedNodeCount"] == round(size / 100)


def test_host_head_scan_sees_flags_of_files_larger_than_the_head(tmp_path: Path) -> None:
    host, _ = make_host(tmp_path, lazy_threshold=1500, head_bytes=512)
    big = new_blank_outline("Huge", is_guide=True).model_copy(update={"last_modified": 1234567890})
    big.nodes[big.root_node_id] = big.root.model_copy(update={"content": "y" * 8000})
    host.dispatch("save-outline-to-file", {"outline": outline_to_dict(big)})

    entry = host.dispatch("read-outline-metadata-from-directory", {})["outlines"][0]
    assert entry["_isLazyLoaded"] is True
    assert entry["isGuide"] is True
    assert entry["lastModified"] == 1234567890


def test_host_metadata_falls_back_to_file_name(tmp_path: Path) -> None:
    host, outlines_dir = make_host(tmp_path, lazy_threshold=10)
    (outlines_dir / "Mystery.idm").write_text("[" + " " * 50 + "]", encoding="utf-8")

    entry = host.dispatch("read-outline-metadata-from-directory", {})["outlines"][0]
    assert entry["id"] == "Mystery"
    assert entry["name"] == "Mystery"
    assert entry["rootNodeId"] == "root"


def test_host_rejects_path_traversal(tmp_path: Path) -> None:
    host, _ = make_host(tmp_path)
    reply = host.dispatch("load-outline-from-file", {"fileName": "../settings.json"})
    assert reply["success"] is False
    assert host.dispatch("no-such-channel", {})["success"] is False


def test_host_backend_over_in_process_transport(tmp_path: Path) -> None:
    host, outlines_dir = make_host(tmp_path, lazy_threshold=1500)
    backend = HostBackend(InProcessTransport(host))
    big = sample("Big")
    big.nodes[big.root_node_id] = big.root.model_copy(update={"content": "y" * 2500})

    async def scenario() -> None:
        assert await backend.probe()
        await backend.write_outline(big)
        await backend.write_outline(sample("Small"))

        listed = {o.name: o for o in await backend.list_outlines()}
        stub = listed["Big"]
        assert stub.is_lazy_loaded
        assert stub.nodes == {}
        assert stub.file_name == "Big.idm"
        assert not listed["Small"].is_lazy_loaded

        full = await backend.load_single_outline("Big.idm")
        assert full is not None
        assert not full.is_lazy_loaded
        assert full.file_size == (outlines_dir / "Big.idm").stat().st_size
        assert len(full.nodes) == 2

        assert await backend.get_outline_mtime("Big.idm") > 0
        assert await backend.read_outline("Missing.idm") is None
        with pytest.raises(HostRequestError):
            await backend.get_outline_mtime("Missing.idm")

        renamed = full.model_copy(update={"name": "Bigger"})
        await backend.rename_outline("Big", renamed)
        assert sorted(p.name for p in outlines_dir.glob("*.idm")) == ["Bigger.idm", "Small.idm"]
        assert await backend.outline_exists(renamed)

        await backend.delete_outline(renamed)
        assert not await backend.outline_exists(renamed)

    asyncio.run(scenario())


def test_host_backend_without_directory_is_not_capable(tmp_path: Path) -> None:
    backend = HostBackend(InProcessTransport(OutlineHost(tmp_path / "settings.json")))
    assert asyncio.run(backend.probe()) is False


def test_pending_operations_recovery(tmp_path: Path) -> None:
    host, outlines_dir = make_host(tmp_path)
    backend = HostBackend(InProcessTransport(host))
    host.record_pending_result("import-1", {"status": "done", "outlineName": "Imported"})

    async def scenario() -> None:
        pending = await backend.check_pending_operations()
        assert [(p.file_name, p.data["status"]) for p in pending] == [("import-1.json", "done")]

        await backend.delete_pending_operation("import-1.json")
        assert await backend.check_pending_operations() == []

    asyncio.run(scenario())
    assert not (outlines_dir / ".pending" / "import-1.json").exists()
