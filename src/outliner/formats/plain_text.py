"""Indentation-based plain text."""

from __future__ import annotations

import re
from dataclasses import dataclass

from outliner.formats.base import (
    BaseImporter,
    ImportOptions,
    ImportResult,
    ParsedNode,
    iter_depth_first,
    lift_single_top_level,
)
from outliner.models.outline import Outline

_LEADING_WS_RE = re.compile(r"^(\s+)")
_BULLET_RE = re.compile(r"^[-*•]\s+")
_NUMBER_RE = re.compile(r"^\d+[.)]\s+")
_CHECKBOX_RE = re.compile(r"^\[[xX\s]\]\s+")


@dataclass(frozen=True)
class IndentInfo:
    use_tabs: bool
    spaces_per_level: int


class PlainTextImporter(BaseImporter):
    """Import plain text where each line's indentation sets its depth."""

    format_id = "plain-text"
    supported_extensions = (".txt",)
    supported_media_types = ("text/plain",)

    def parse(self, content: str, suggested_name: str, options: ImportOptions | None = None) -> ImportResult:
        text = self.normalize_text(content)
        lines = [line for line in text.split("\n") if line.strip()]
        warnings: list[str] = []

        root = ParsedNode(name=self.resolve_root_name(suggested_name, options))
        if not lines:
            warnings.append("Empty file imported.")
            outline, stats = self.build_outline_from_tree(root, root.name)
            return ImportResult(outline=outline, stats=stats, warnings=warnings)

        info = detect_indentation(lines)
        stack: list[tuple[ParsedNode, int]] = [(root, -1)]
        for line in lines:
            stripped = line.lstrip()
            level = indent_level(len(line) - len(stripped), info)
            node = ParsedNode(name=clean_node_name(stripped))
            while len(stack) > 1 and stack[-1][1] >= level:
                stack.pop()
            stack[-1][0].children.append(node)
            stack.append((node, level))

        root = lift_single_top_level(root)
        name = options.outline_name if options is not None and options.outline_name else root.name
        root.name = name
        outline, stats = self.build_outline_from_tree(root, name)
        return ImportResult(outline=outline, stats=stats, warnings=warnings)


def detect_indentation(lines: list[str]) -> IndentInfo:
    """Tabs win if any line is tab-indented; otherwise the smallest run, rounded to 2 or 4."""

    min_spaces: int | None = None
    for line in lines:
        match = _LEADING_WS_RE.match(line)
        if match is None:
            continue
        indent = match.group(1)
        if "\t" in indent:
            return IndentInfo(use_tabs=True, spaces_per_level=1)
        min_spaces = len(indent) if min_spaces is None else min(min_spaces, len(indent))

    if min_spaces is None or min_spaces <= 2:
        return IndentInfo(use_tabs=False, spaces_per_level=2)
    return IndentInfo(use_tabs=False, spaces_per_level=4)


def indent_level(indent_length: int, info: IndentInfo) -> int:
    if info.use_tabs:
        return indent_length
    return indent_length // info.spaces_per_level


def clean_node_name(text: str) -> str:
    """Strip bullet, number and checkbox prefixes."""

    text = _BULLET_RE.sub("", text)
    text = _NUMBER_RE.sub("", text)
    text = _CHECKBOX_RE.sub("", text)
    return text.strip()


def serialize_plain_text(outline: Outline, indent: str = "  ") -> str:
    """Render node names only, indented by depth."""

    lines = [f"{indent * depth}{outline.nodes[node_id].name}" for depth, node_id in iter_depth_first(outline)]
    return "\n".join(lines) + "\n"
