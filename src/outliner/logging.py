"""Logging utilities."""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Any

from rich.logging import RichHandler

from outliner.config import Settings

_outline_var: contextvars.ContextVar[str] = contextvars.ContextVar("outliner_outline_id", default="-")
_backend_var: contextvars.ContextVar[str] = contextvars.ContextVar("outliner_backend", default="-")

# Library loggers held at WARNING in production.
_QUIET_IN_PROD = ("httpx", "httpcore", "uvicorn.access")


class _ContextFilter(logging.Filter):
    """Inject environment and outline/backend context into log records."""

    def __init__(self, app_env: str = "dev") -> None:
        super().__init__()
        self.app_env = app_env

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.app_env = self.app_env  # type: ignore[attr-defined]
        record.outline_id = _outline_var.get()  # type: ignore[attr-defined]
        record.backend = _backend_var.get()  # type: ignore[attr-defined]
        return True


@contextlib.contextmanager
def outline_context(*, outline_id: str | None = None, backend: str | None = None) -> Any:
    """Temporarily bind outline/backend context for structured logging.

    Args:
        outline_id: Outline being loaded, saved or repaired.
        backend: Name of the storage backend handling the call.
    """

    token_outline = _outline_var.set(outline_id or _outline_var.get())
    token_backend = _backend_var.set(backend or _backend_var.get())
    try:
        yield
    finally:
        _outline_var.reset(token_outline)
        _backend_var.reset(token_backend)


def configure_logging(settings: Settings | None = None, *, level: str | None = None) -> None:
    """Configure application logging from settings.

    Args:
        settings: Source of ``log_level`` and ``app_env``; defaults apply when omitted.
        level: Overrides ``settings.log_level``.
    """

    settings = settings or Settings()
    prod = settings.app_env == "prod"
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(app_env)s] outline=%(outline_id)s backend=%(backend)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    handlers = [h for h in root.handlers if isinstance(h, RichHandler)]
    if not handlers:
        handler = RichHandler(rich_tracebacks=not prod, show_time=True, show_level=True, show_path=not prod)
        root.addHandler(handler)
        handlers = [handler]
    for handler in handlers:
        # Reconfiguring replaces the context filter instead of stacking another one.
        for old in [f for f in handler.filters if isinstance(f, _ContextFilter)]:
            handler.removeFilter(old)
        handler.addFilter(_ContextFilter(settings.app_env))
        handler.setFormatter(formatter)

    for name in _QUIET_IN_PROD:
        logging.getLogger(name).setLevel(logging.WARNING if prod else logging.NOTSET)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log an exception with optional structured context."""

    if context:
        logger.exception("%s | context=%s", msg, context)
    else:
        logger.exception("%s", msg)
