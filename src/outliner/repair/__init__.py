"""Corruption repair for loaded outline collections."""

from __future__ import annotations

from outliner.repair.duplicates import (
    NO_DUPLICATES_REPORT,
    ChildRepairResult,
    DuplicateChildIssue,
    IdRepairResult,
    check_outline_integrity,
    find_duplicate_children,
    fix_duplicate_children,
    fix_duplicate_outline_ids,
)

__all__ = [
    "NO_DUPLICATES_REPORT",
    "ChildRepairResult",
    "DuplicateChildIssue",
    "IdRepairResult",
    "check_outline_integrity",
    "find_duplicate_children",
    "fix_duplicate_children",
    "fix_duplicate_outline_ids",
]
