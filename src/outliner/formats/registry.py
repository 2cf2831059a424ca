"""Importer registry."""

from __future__ import annotations

from pathlib import Path

from outliner.errors import NoImporterError
from outliner.formats.base import BaseImporter, FileDescriptor, ImportOptions, ImportResult
from outliner.formats.markdown import MarkdownImporter
from outliner.formats.opml import OpmlImporter
from outliner.formats.plain_text import PlainTextImporter

_IMPORTERS: list[BaseImporter] = [
    MarkdownImporter(),
    PlainTextImporter(),
    OpmlImporter(),
]


def get_importers() -> list[BaseImporter]:
    """Get all registered importers."""
    return list(_IMPORTERS)


def get_importer(format_id: str) -> BaseImporter | None:
    return next((i for i in _IMPORTERS if i.format_id == format_id), None)


def find_importer_for_file(file: FileDescriptor) -> BaseImporter | None:
    """Find the first importer that can handle the given file."""
    return next((i for i in _IMPORTERS if i.can_handle(file)), None)


def supported_import_extensions() -> list[str]:
    extensions: list[str] = []
    for importer in _IMPORTERS:
        extensions.extend(ext for ext in importer.supported_extensions if ext not in extensions)
    return extensions


def import_content(
    format_id: str,
    content: str,
    filename: str,
    options: ImportOptions | None = None,
) -> ImportResult:
    """Import content with a specific format.

    Raises:
        NoImporterError: If no importer is registered for ``format_id``.
    """
    importer = get_importer(format_id)
    if importer is None:
        raise NoImporterError(f"No importer available for format: {format_id}")
    return importer.parse(content, filename, options)


def import_file(path: Path, options: ImportOptions | None = None, media_type: str | None = None) -> ImportResult:
    """Read a file from disk and import it with the matching importer."""

    descriptor = FileDescriptor(name=path.name, media_type=media_type)
    importer = find_importer_for_file(descriptor)
    if importer is None:
        raise NoImporterError(f"No importer available for file type: {path.name}")
    return importer.parse(path.read_text(encoding="utf-8"), path.name, options)
