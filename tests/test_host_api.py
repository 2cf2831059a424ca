"""Tests for the HTTP host service and the HTTP transport."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from outliner.api.app import create_app
from outliner.errors import BackendUnavailableError
from outliner.models.outline import new_blank_outline
from outliner.storage import HostBackend, HttpTransport, OutlineHost


def make_app(tmp_path: Path):
    host = OutlineHost(tmp_path / "settings.json", picker=lambda: str(tmp_path / "picked"))
    return create_app(host), host


def test_health_and_channels(tmp_path: Path) -> None:
    app, host = make_app(tmp_path)
    client = TestClient(app)

    assert client.get("/health").json() == {"status": "ok"}
    channels = client.get("/channels").json()
    assert "read-outline-metadata-from-directory" in channels
    assert set(channels) == set(host.channels)
    assert client.post("/ipc/open-window", json={}).status_code == 404


def test_select_directory_uses_picker_and_persists(tmp_path: Path) -> None:
    app, host = make_app(tmp_path)
    client = TestClient(app)

    reply = client.post("/ipc/select-directory", json={}).json()
    assert reply["success"] is True
    assert Path(reply["dirPath"]).name == "picked"
    assert client.post("/ipc/get-stored-directory-path").json()["dirPath"] == reply["dirPath"]
    assert host.stored_directory() == Path(reply["dirPath"])


def test_host_backend_over_http(tmp_path: Path) -> None:
    app, _ = make_app(tmp_path)
    outline = new_blank_outline("Over HTTP")

    async def scenario() -> None:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://host") as client:
            backend = HostBackend(HttpTransport("http://host", client=client))
            assert not await backend.probe()
            assert await backend.select_directory() is not None
            assert await backend.probe()

            await backend.write_outline(outline)
            listed = await backend.list_outlines()
            assert [o.id for o in listed] == [outline.id]
            assert await backend.outline_exists(outline)

    asyncio.run(scenario())
    assert (tmp_path / "picked" / "Over HTTP.idm").exists()


def test_http_transport_unreachable_host_is_unavailable() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async def scenario() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            await HttpTransport("http://nowhere", client=client).request("get-stored-directory-path")

    with pytest.raises(BackendUnavailableError, match="get-stored-directory-path"):
        asyncio.run(scenario())
