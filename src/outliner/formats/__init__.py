"""Format adapters: import from and export to external outline representations."""

from __future__ import annotations

from outliner.formats.base import (
    BaseImporter,
    FileDescriptor,
    ImportOptions,
    ImportResult,
    ImportStats,
    ParsedNode,
)
from outliner.formats.markdown import MarkdownImporter, serialize_markdown
from outliner.formats.opml import OpmlImporter, serialize_opml
from outliner.formats.plain_text import PlainTextImporter, serialize_plain_text
from outliner.formats.registry import (
    find_importer_for_file,
    get_importer,
    get_importers,
    import_content,
    import_file,
    supported_import_extensions,
)

EXPORTERS = {
    "markdown": serialize_markdown,
    "opml": serialize_opml,
    "plain-text": serialize_plain_text,
}

__all__ = [
    "EXPORTERS",
    "BaseImporter",
    "FileDescriptor",
    "ImportOptions",
    "ImportResult",
    "ImportStats",
    "MarkdownImporter",
    "OpmlImporter",
    "ParsedNode",
    "PlainTextImporter",
    "find_importer_for_file",
    "get_importer",
    "get_importers",
    "import_content",
    "import_file",
    "serialize_markdown",
    "serialize_opml",
    "serialize_plain_text",
    "supported_import_extensions",
]
