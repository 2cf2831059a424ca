"""Shared importer machinery.

Importers parse their input into a lightweight :class:`ParsedNode` tree first; the
single :meth:`BaseImporter.build_outline_from_tree` then assigns ids, links and
prefixes so every format produces the same node-map shape.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Literal

from outliner.models.outline import CHAPTER, DOCUMENT, ROOT, NodeMap, Outline, OutlineNode
from outliner.utils.ids import new_id


@dataclass
class ParsedNode:
    """Format-neutral intermediate node."""

    name: str
    content: str = ""
    kind: str | None = None
    children: list[ParsedNode] = field(default_factory=list)


@dataclass
class FileDescriptor:
    """What an importer gets to see about a file before reading it."""

    name: str
    media_type: str | None = None

    @property
    def extension(self) -> str:
        return PurePath(self.name).suffix.lower()


@dataclass
class ImportOptions:
    """Import options."""

    outline_name: str | None = None
    merge_strategy: Literal["replace", "append", "merge"] = "replace"


@dataclass
class ImportStats:
    nodes_imported: int = 0
    max_depth: int = 0


@dataclass
class ImportResult:
    """Result of parsing one file."""

    outline: Outline
    stats: ImportStats
    warnings: list[str] = field(default_factory=list)


class BaseImporter(ABC):
    """Base class for all importers."""

    format_id: str = ""
    supported_extensions: tuple[str, ...] = ()
    supported_media_types: tuple[str, ...] = ()

    def can_handle(self, file: FileDescriptor) -> bool:
        """Check by extension first, then by declared media type."""
        if file.extension in self.supported_extensions:
            return True
        return file.media_type is not None and file.media_type in self.supported_media_types

    @abstractmethod
    def parse(self, content: str, suggested_name: str, options: ImportOptions | None = None) -> ImportResult:
        """Parse file content into an outline."""

    def build_outline_from_tree(self, root: ParsedNode, outline_name: str) -> tuple[Outline, ImportStats]:
        """Turn a parsed tree into an outline with ids, links, kinds and prefixes."""

        return build_outline(root, outline_name)

    def normalize_text(self, text: str) -> str:
        """Normalize line endings and trim."""
        return text.replace("\r\n", "\n").replace("\r", "\n").strip()

    def outline_name_from_filename(self, filename: str) -> str:
        stem = re.sub(r"\.[^/.]+$", "", PurePath(filename).name)
        return re.sub(r"\s+", " ", re.sub(r"[_-]", " ", stem)).strip()

    def resolve_root_name(self, filename: str, options: ImportOptions | None) -> str:
        if options is not None and options.outline_name:
            return options.outline_name
        return self.outline_name_from_filename(filename) or "Imported Outline"


def build_outline(root: ParsedNode, outline_name: str) -> tuple[Outline, ImportStats]:
    """Assign ids, links, kinds and prefixes to a parsed tree, breadth first."""

    nodes: NodeMap = {}
    stats = ImportStats()
    root_id = new_id()

    # (parsed, node_id, parent_id, depth, prefix)
    queue: deque[tuple[ParsedNode, str, str | None, int, str]] = deque([(root, root_id, None, 0, "")])
    while queue:
        parsed, node_id, parent_id, depth, prefix = queue.popleft()
        stats.nodes_imported += 1
        stats.max_depth = max(stats.max_depth, depth)

        child_ids = [new_id() for _ in parsed.children]
        if parent_id is None:
            kind = ROOT
        elif child_ids:
            kind = CHAPTER
        else:
            kind = parsed.kind or DOCUMENT

        nodes[node_id] = OutlineNode(
            id=node_id,
            name=parsed.name,
            content=parsed.content or "",
            kind=kind,
            parent_id=parent_id,
            children_ids=child_ids,
            prefix=prefix,
        )
        for index, (child, child_id) in enumerate(zip(parsed.children, child_ids)):
            child_prefix = f"{prefix}.{index + 1}" if prefix else str(index + 1)
            queue.append((child, child_id, node_id, depth + 1, child_prefix))

    outline = Outline(
        id=new_id(),
        name=outline_name,
        root_node_id=root_id,
        nodes=nodes,
        last_modified=int(time.time() * 1000),
    )
    return outline, stats


def lift_single_top_level(root: ParsedNode) -> ParsedNode:
    """Use a lone top-level entry as the document root.

    A file whose only top-level item holds everything else (a title line, a single
    H1) describes its own root, so no synthetic file-named root is added.
    """

    if len(root.children) == 1 and not root.content:
        return root.children[0]
    return root


def iter_depth_first(outline: Outline) -> Iterator[tuple[int, str]]:
    """Depth-first ``(depth, node_id)`` pairs in document order, root first."""

    stack: list[tuple[int, str]] = [(0, outline.root_node_id)]
    while stack:
        depth, node_id = stack.pop()
        node = outline.nodes.get(node_id)
        if node is None:
            continue
        yield depth, node_id
        stack.extend((depth + 1, child_id) for child_id in reversed(node.children_ids))
