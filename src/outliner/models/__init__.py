"""Outline data model."""

from __future__ import annotations

from outliner.models.outline import (
    CHAPTER,
    DOCUMENT,
    ROOT,
    NodeColor,
    NodeKind,
    NodeMap,
    NodeMetadata,
    Outline,
    OutlineNode,
    is_valid_outline,
    new_blank_outline,
    outline_from_dict,
    outline_from_json,
    outline_to_dict,
    outline_to_json,
)

__all__ = [
    "CHAPTER",
    "DOCUMENT",
    "ROOT",
    "NodeColor",
    "NodeKind",
    "NodeMap",
    "NodeMetadata",
    "Outline",
    "OutlineNode",
    "is_valid_outline",
    "new_blank_outline",
    "outline_from_dict",
    "outline_from_json",
    "outline_to_dict",
    "outline_to_json",
]
