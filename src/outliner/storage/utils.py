"""Shared helpers for storage backends."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from outliner.logging import get_logger
from outliner.models.outline import Outline, outline_from_dict

logger = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_file_name(name: str) -> str:
    r"""Replace control characters and ``<>:"/\|?*`` with underscores."""
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


def outline_file_name(name: str, extension: str) -> str:
    return f"{sanitize_file_name(name)}{extension}"


def resolve_inside(directory: Path, file_name: str) -> Path:
    """Resolve ``file_name`` inside ``directory``, refusing anything that escapes it."""

    if not file_name or file_name in {".", ".."} or Path(file_name).name != file_name:
        raise ValueError(f"Invalid outline file name: {file_name!r}")
    base = directory.resolve()
    full = (base / file_name).resolve()
    try:
        full.relative_to(base)
    except ValueError:
        raise ValueError(f"Path {full} outside directory {base}") from None
    return full


def validated_outlines(items: Iterable[Any], *, source: str) -> list[Outline]:
    """Keep the items that satisfy the outline validity contract, logging the rest."""

    outlines: list[Outline] = []
    for index, item in enumerate(items):
        outline = outline_from_dict(item)
        if outline is None:
            logger.warning("Skipping invalid outline #%d from %s", index, source)
            continue
        outlines.append(outline)
    return outlines


def read_outline_file(path: Path) -> Outline | None:
    """Parse one outline file; ``None`` (logged) when it is corrupt or invalid."""

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Failed to load %s: %s", path.name, exc)
        return None
    outline = outline_from_dict(data)
    if outline is None:
        logger.warning("Skipping %s: not a valid outline", path.name)
    return outline
