"""Heading-based markup: ``#`` levels define the hierarchy."""

from __future__ import annotations

import re

from outliner.formats.base import (
    BaseImporter,
    ImportOptions,
    ImportResult,
    ParsedNode,
    iter_depth_first,
    lift_single_top_level,
)
from outliner.models.outline import Outline

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
# Content lines that would read back as headings carry one extra leading backslash.
_HEADING_LIKE_RE = re.compile(r"^(\\*#{1,6}[ \t])", re.MULTILINE)
_ESCAPED_HEADING_RE = re.compile(r"^\\(\\*#{1,6}[ \t])")


class MarkdownImporter(BaseImporter):
    """Import Markdown files; headings (``#`` .. ``######``) become nodes."""

    format_id = "markdown"
    supported_extensions = (".md", ".markdown")
    supported_media_types = ("text/markdown", "text/x-markdown")

    def parse(self, content: str, suggested_name: str, options: ImportOptions | None = None) -> ImportResult:
        text = self.normalize_text(content)
        warnings: list[str] = []

        root = ParsedNode(name=self.resolve_root_name(suggested_name, options))
        # (node, heading level); the synthetic root sits at level 0
        stack: list[tuple[ParsedNode, int]] = [(root, 0)]
        current = root
        buffer: list[str] = []

        for line in text.split("\n"):
            match = _HEADING_RE.match(line)
            if match is None:
                buffer.append(_ESCAPED_HEADING_RE.sub(r"\1", line))
                continue

            current.content = "\n".join(buffer).strip()
            buffer = []

            level = len(match.group(1))
            node = ParsedNode(name=match.group(2).strip())
            while len(stack) > 1 and stack[-1][1] >= level:
                stack.pop()
            stack[-1][0].children.append(node)
            stack.append((node, level))
            current = node

        current.content = "\n".join(buffer).strip()

        if not root.children:
            warnings.append("No headings found. Content imported as single node.")
            root.content = text
        else:
            root = lift_single_top_level(root)

        name = options.outline_name if options is not None and options.outline_name else root.name
        root.name = name
        outline, stats = self.build_outline_from_tree(root, name)
        return ImportResult(outline=outline, stats=stats, warnings=warnings)


def serialize_markdown(outline: Outline, include_content: bool = True) -> str:
    """Render an outline as Markdown, one heading per node (levels capped at 6)."""

    parts: list[str] = []
    for depth, node_id in iter_depth_first(outline):
        node = outline.nodes[node_id]
        parts.append(f"{'#' * min(depth + 1, 6)} {node.name}")
        if include_content and node.content.strip():
            parts.append("")
            parts.append(_HEADING_LIKE_RE.sub(r"\\\1", node.content.strip()))
        parts.append("")
    return "\n".join(parts).strip() + "\n"
