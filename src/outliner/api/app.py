"""FastAPI app exposing the host request surface over HTTP."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, HTTPException

from outliner import __version__
from outliner.config import load_settings
from outliner.logging import configure_logging, get_logger
from outliner.storage.host import OutlineHost


def create_app(host: OutlineHost | None = None) -> FastAPI:
    """Create FastAPI app.

    Args:
        host: Host to serve; built from settings when omitted.
    """

    settings = load_settings()
    configure_logging(settings)
    logger = get_logger(__name__)

    if host is None:
        host = OutlineHost(
            Path(settings.data_dir) / "host-settings.json",
            extension=settings.outline_extension,
            lazy_threshold=settings.lazy_load_threshold_bytes,
            head_bytes=settings.lazy_head_bytes,
            bytes_per_node=settings.lazy_bytes_per_node,
        )

    app = FastAPI(title="Outliner host", version=__version__)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/channels")
    def channels() -> list[str]:
        return host.channels

    @app.post("/ipc/{channel}")
    def ipc(channel: str, payload: dict[str, Any] | None = Body(default=None)) -> dict[str, Any]:
        if channel not in host.channels:
            raise HTTPException(status_code=404, detail=f"unknown channel: {channel}")
        logger.debug("Host request %s", channel)
        return host.dispatch(channel, payload or {})

    return app
