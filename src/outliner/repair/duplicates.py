"""Detection and repair of duplicate references.

Two corruption classes are handled:

* a parent listing the same child id more than once, or a child id listed under
  two different parents (``find_duplicate_children`` / ``fix_duplicate_children``);
* two outlines in one collection sharing an id (``fix_duplicate_outline_ids``).

Repairs never raise; they return the repaired value plus a human-readable report.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from outliner.logging import get_logger
from outliner.models.outline import CHAPTER, DOCUMENT, NodeMap, Outline
from outliner.tree.engine import recalculate_prefixes
from outliner.utils.ids import new_id

logger = get_logger(__name__)

NO_DUPLICATES_REPORT = "No duplicate children found."


@dataclass
class DuplicateChildIssue:
    """One parent whose ``children_ids`` needs cleaning.

    ``duplicates`` are ids listed more than once under ``node_id``;
    ``foreign`` are ids listed here although the child belongs to another parent.
    """

    node_id: str
    duplicates: list[str] = field(default_factory=list)
    foreign: list[str] = field(default_factory=list)


@dataclass
class ChildRepairResult:
    fixed: bool
    outline: Outline
    report: list[str]


@dataclass
class IdRepairResult:
    """Outcome of a collection-wide id scan.

    ``needs_save`` holds the outlines that received a new id and must be persisted.
    """

    outlines: list[Outline]
    needs_save: list[Outline]
    fixed_duplicate_count: int
    report: list[str] = field(default_factory=list)


def _owning_parents(nodes: NodeMap) -> dict[str, str]:
    """Map each multiply-listed child to the parent that keeps it."""

    listed_under: dict[str, list[str]] = {}
    for parent_id, parent in nodes.items():
        for child_id in dict.fromkeys(parent.children_ids):
            listed_under.setdefault(child_id, []).append(parent_id)

    owners: dict[str, str] = {}
    for child_id, parents in listed_under.items():
        if len(parents) < 2:
            continue
        child = nodes.get(child_id)
        declared = child.parent_id if child is not None else None
        owners[child_id] = declared if declared in parents else parents[0]
    return owners


def find_duplicate_children(nodes: NodeMap) -> list[DuplicateChildIssue]:
    """Find every parent with repeated or foreign child references."""

    owners = _owning_parents(nodes)
    issues: list[DuplicateChildIssue] = []
    for node_id, node in nodes.items():
        if not node.children_ids:
            continue
        seen: set[str] = set()
        duplicates: list[str] = []
        for child_id in node.children_ids:
            if child_id in seen:
                if child_id not in duplicates:
                    duplicates.append(child_id)
            else:
                seen.add(child_id)
        foreign = [cid for cid in dict.fromkeys(node.children_ids) if owners.get(cid, node_id) != node_id]
        if duplicates or foreign:
            issues.append(DuplicateChildIssue(node_id=node_id, duplicates=duplicates, foreign=foreign))
    return issues


def fix_duplicate_children(outline: Outline) -> ChildRepairResult:
    """Remove duplicate child references, keeping the first occurrence.

    For a child listed under several parents the parent its ``parent_id`` points
    to keeps it; when none does, the first listing parent keeps it and the child's
    ``parent_id`` is corrected. Kinds and prefixes of touched parents are re-derived.
    """

    issues = find_duplicate_children(outline.nodes)
    if not issues:
        return ChildRepairResult(fixed=False, outline=outline, report=[NO_DUPLICATES_REPORT])

    owners = _owning_parents(outline.nodes)
    nodes: NodeMap = dict(outline.nodes)
    report: list[str] = []

    for issue in issues:
        node = nodes[issue.node_id]
        foreign = set(issue.foreign)
        seen: set[str] = set()
        kept: list[str] = []
        for child_id in node.children_ids:
            if child_id in seen or child_id in foreign:
                continue
            seen.add(child_id)
            kept.append(child_id)

        update: dict[str, object] = {"children_ids": kept}
        if not kept and node.kind == CHAPTER:
            update["kind"] = DOCUMENT
        nodes[issue.node_id] = node.model_copy(update=update)

        removed = len(node.children_ids) - len(kept)
        ids = ", ".join(issue.duplicates + [cid for cid in issue.foreign if cid not in issue.duplicates])
        report.append(f'Fixed node "{node.name}" ({issue.node_id}): removed {removed} duplicate(s) - {ids}')

    for child_id, owner_id in owners.items():
        child = nodes.get(child_id)
        if child is not None and child.parent_id != owner_id:
            nodes[child_id] = child.model_copy(update={"parent_id": owner_id})

    touched = dict.fromkeys([*(issue.node_id for issue in issues), *owners.values()])
    for parent_id in touched:
        parent = nodes.get(parent_id)
        if parent is None:
            continue
        if parent.kind == DOCUMENT and parent.children_ids:
            nodes[parent_id] = parent.model_copy(update={"kind": CHAPTER})
        recalculate_prefixes(nodes, parent_id)

    for line in report:
        logger.info("%s", line)
    return ChildRepairResult(fixed=True, outline=outline.model_copy(update={"nodes": nodes}), report=report)


def fix_duplicate_outline_ids(outlines: Sequence[Outline]) -> IdRepairResult:
    """Give every outline whose id was already seen a fresh id.

    The first outline carrying an id keeps it. Running this on its own output is a
    no-op.
    """

    seen: set[str] = set()
    repaired: list[Outline] = []
    needs_save: list[Outline] = []
    report: list[str] = []

    for outline in outlines:
        if outline.id not in seen:
            seen.add(outline.id)
            repaired.append(outline)
            continue
        fresh_id = new_id()
        while fresh_id in seen:
            fresh_id = new_id()
        seen.add(fresh_id)
        fixed = outline.model_copy(update={"id": fresh_id})
        repaired.append(fixed)
        needs_save.append(fixed)
        message = f'Reassigned duplicate outline id {outline.id} of "{outline.name}" to {fresh_id}'
        report.append(message)
        logger.warning("%s", message)

    return IdRepairResult(
        outlines=repaired,
        needs_save=needs_save,
        fixed_duplicate_count=len(needs_save),
        report=report,
    )


def check_outline_integrity(outline: Outline) -> list[DuplicateChildIssue]:
    """Log duplicate-children findings for an outline without changing it."""

    issues = find_duplicate_children(outline.nodes)
    if not issues:
        logger.info('Outline "%s" has no duplicate children', outline.name)
        return issues

    logger.warning('Outline "%s" has duplicate children', outline.name)
    for issue in issues:
        node = outline.nodes[issue.node_id]
        logger.warning(
            '  node "%s" (%s): duplicates=%s foreign=%s',
            node.name,
            issue.node_id,
            ", ".join(issue.duplicates) or "-",
            ", ".join(issue.foreign) or "-",
        )
    return issues
