"""Tree engine: pure, copy-on-write transforms over a ``NodeMap``.

Every operation takes a node map and returns a new dict; nodes whose fields do not
change are shared with the input, changed nodes are replaced by copies. Invalid
input (unknown ids, cycle-forming moves) is a silent no-op so callers can issue
edits speculatively: the original map is returned unchanged, or ``None`` for a
rejected move.

Subtree walks use an explicit queue so documents with very deep or very wide trees
never hit the interpreter's recursion limit.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from typing import Any, Literal

from outliner.models.outline import CHAPTER, DOCUMENT, ROOT, NodeMap, Outline, OutlineNode
from outliner.utils.ids import new_id

MovePosition = Literal["before", "after", "inside"]

COPY_SUFFIX = " (copy)"


# -- prefixes ---------------------------------------------------------------


def calculate_prefix(nodes: Mapping[str, OutlineNode], node_id: str) -> str:
    """Compute the dotted position of a node by walking up to the root.

    Returns an empty string for the root and for unknown ids.
    """

    node = nodes.get(node_id)
    if node is None or node.is_root:
        return ""

    path: list[int] = []
    seen: set[str] = set()
    current = node
    while current.parent_id is not None and current.id not in seen:
        seen.add(current.id)
        parent = nodes.get(current.parent_id)
        if parent is None:
            break
        path.append(parent.children_ids.index(current.id) + 1 if current.id in parent.children_ids else 0)
        if parent.is_root:
            break
        current = parent

    return ".".join(str(i) for i in reversed(path))


def _child_prefix(parent_prefix: str, index: int) -> str:
    return f"{parent_prefix}.{index + 1}" if parent_prefix else str(index + 1)


def recalculate_prefixes(nodes: NodeMap, start_id: str) -> None:
    """Recompute prefixes for ``start_id`` and all of its descendants, in place.

    ``nodes`` must be a map owned by the caller (a fresh copy): changed nodes are
    replaced by copies so any shared node instances stay untouched.
    """

    start = nodes.get(start_id)
    if start is None:
        return

    start_prefix = calculate_prefix(nodes, start_id)
    if start.prefix != start_prefix:
        nodes[start_id] = start.model_copy(update={"prefix": start_prefix})

    queue: deque[tuple[str, str]] = deque([(start_id, start_prefix)])
    seen: set[str] = {start_id}
    while queue:
        current_id, current_prefix = queue.popleft()
        current = nodes.get(current_id)
        if current is None:
            continue
        for index, child_id in enumerate(current.children_ids):
            child = nodes.get(child_id)
            if child is None or child_id in seen:
                continue
            seen.add(child_id)
            prefix = _child_prefix(current_prefix, index)
            if child.prefix != prefix:
                nodes[child_id] = child.model_copy(update={"prefix": prefix})
            queue.append((child_id, prefix))


def recalculate_all_prefixes(nodes: Mapping[str, OutlineNode], root_id: str) -> NodeMap:
    """Return a copy of ``nodes`` with every prefix recomputed from the root."""

    result = dict(nodes)
    recalculate_prefixes(result, root_id)
    return result


# -- reads ------------------------------------------------------------------


def collect_subtree_ids(nodes: Mapping[str, OutlineNode], root_id: str) -> list[str]:
    """Breadth-first ids of ``root_id`` and all of its descendants."""

    if root_id not in nodes:
        return []

    ids: list[str] = []
    seen: set[str] = set()
    queue: deque[str] = deque([root_id])
    while queue:
        current_id = queue.popleft()
        if current_id in seen:
            continue
        seen.add(current_id)
        ids.append(current_id)
        current = nodes.get(current_id)
        if current is not None:
            queue.extend(child_id for child_id in current.children_ids if child_id in nodes)
    return ids


def collect_subtree(nodes: Mapping[str, OutlineNode], root_id: str) -> NodeMap:
    """Return the node and all of its descendants as a standalone map.

    Used for duplication and for the cross-outline clipboard. Nodes are shared,
    not copied; they are never mutated in place.
    """

    return {node_id: nodes[node_id] for node_id in collect_subtree_ids(nodes, root_id)}


def is_descendant(nodes: Mapping[str, OutlineNode], candidate_id: str, ancestor_id: str) -> bool:
    """True if ``ancestor_id`` appears on the parent chain of ``candidate_id``."""

    if candidate_id not in nodes or ancestor_id not in nodes:
        return False

    seen: set[str] = set()
    current_id = nodes[candidate_id].parent_id
    while current_id is not None and current_id not in seen:
        if current_id == ancestor_id:
            return True
        seen.add(current_id)
        parent = nodes.get(current_id)
        current_id = parent.parent_id if parent is not None else None
    return False


def next_selection_after_remove(
    nodes_before: Mapping[str, OutlineNode],
    nodes_after: Mapping[str, OutlineNode],
    removed_id: str,
) -> str | None:
    """Nearest ancestor of ``removed_id`` that survived the removal."""

    node = nodes_before.get(removed_id)
    current_id = node.parent_id if node is not None else None
    while current_id is not None:
        if current_id in nodes_after:
            return current_id
        parent = nodes_before.get(current_id)
        current_id = parent.parent_id if parent is not None else None
    return None


# -- kind derivation ----------------------------------------------------------


def _promoted(node: OutlineNode, children_ids: list[str], **extra: Any) -> OutlineNode:
    update: dict[str, Any] = {"children_ids": children_ids, **extra}
    if node.kind != ROOT and children_ids:
        update["kind"] = CHAPTER
    return node.model_copy(update=update)


def _demoted(node: OutlineNode, children_ids: list[str]) -> OutlineNode:
    update: dict[str, Any] = {"children_ids": children_ids}
    if not children_ids and node.kind == CHAPTER:
        update["kind"] = DOCUMENT
    return node.model_copy(update=update)


# -- structural edits --------------------------------------------------------


def add_node(
    nodes: NodeMap,
    parent_id: str,
    kind: str = DOCUMENT,
    name: str = "New Node",
    content: str = "",
) -> tuple[NodeMap, str]:
    """Append a new leaf as the last child of ``parent_id``.

    Returns:
        ``(new_nodes, new_node_id)``; ``(nodes, "")`` if the parent does not exist.
    """

    parent = nodes.get(parent_id)
    if parent is None:
        return nodes, ""

    node_id = new_id()
    result = dict(nodes)
    result[parent_id] = _promoted(parent, [*parent.children_ids, node_id], is_collapsed=False)
    result[node_id] = OutlineNode(id=node_id, name=name, content=content, kind=kind, parent_id=parent_id)
    recalculate_prefixes(result, parent_id)
    return result, node_id


def add_node_after(
    nodes: NodeMap,
    sibling_id: str,
    kind: str = DOCUMENT,
    name: str = "New Node",
    content: str = "",
) -> tuple[NodeMap, str]:
    """Insert a new node right after ``sibling_id`` under the same parent.

    When ``sibling_id`` is the root the new node becomes a child of the root.
    """

    sibling = nodes.get(sibling_id)
    if sibling is None or sibling.parent_id is None:
        return add_node(nodes, sibling_id, kind, name, content)

    parent = nodes.get(sibling.parent_id)
    if parent is None:
        return nodes, ""

    node_id = new_id()
    children = list(parent.children_ids)
    children.insert(children.index(sibling_id) + 1 if sibling_id in children else len(children), node_id)

    result = dict(nodes)
    result[parent.id] = _promoted(parent, children)
    result[node_id] = OutlineNode(id=node_id, name=name, content=content, kind=kind, parent_id=parent.id)
    recalculate_prefixes(result, parent.id)
    return result, node_id


def remove_node(nodes: NodeMap, node_id: str) -> NodeMap:
    """Delete ``node_id`` and its whole subtree. The root is never removable."""

    node = nodes.get(node_id)
    if node is None or node.parent_id is None:
        return nodes

    doomed = collect_subtree_ids(nodes, node_id)
    result = dict(nodes)

    parent = result.get(node.parent_id)
    if parent is not None:
        result[parent.id] = _demoted(parent, [cid for cid in parent.children_ids if cid != node_id])

    for doomed_id in doomed:
        result.pop(doomed_id, None)

    if parent is not None:
        recalculate_prefixes(result, parent.id)
    return result


def update_node(nodes: NodeMap, node_id: str, updates: Mapping[str, Any]) -> NodeMap:
    """Shallow-merge non-structural fields into a node.

    Prefixes are not recomputed; use :func:`recalculate_prefixes` if the edit
    changed child order.
    """

    node = nodes.get(node_id)
    if node is None:
        return nodes

    result = dict(nodes)
    result[node_id] = node.model_copy(update=dict(updates))
    return result


def move_node(
    nodes: NodeMap,
    dragged_id: str,
    target_id: str,
    position: MovePosition,
) -> NodeMap | None:
    """Reparent ``dragged_id`` relative to ``target_id``.

    Returns ``None`` (and leaves ``nodes`` untouched) when the move is invalid:
    dragging a node onto itself, into its own descendant, beside the root, or
    referencing unknown ids.
    """

    if dragged_id == target_id or is_descendant(nodes, target_id, dragged_id):
        return None

    dragged = nodes.get(dragged_id)
    target = nodes.get(target_id)
    if dragged is None or target is None:
        return None
    if position != "inside" and target.parent_id is None:
        return None

    result = dict(nodes)
    old_parent_id = dragged.parent_id
    if old_parent_id is not None and old_parent_id in result:
        old_parent = result[old_parent_id]
        result[old_parent_id] = _demoted(old_parent, [cid for cid in old_parent.children_ids if cid != dragged_id])

    if position == "inside":
        new_parent = result[target_id]
        result[target_id] = _promoted(new_parent, [*new_parent.children_ids, dragged_id], is_collapsed=False)
        new_parent_id = target_id
    else:
        new_parent_id = target.parent_id
        assert new_parent_id is not None
        new_parent = result[new_parent_id]
        children = list(new_parent.children_ids)
        offset = children.index(target_id) + (1 if position == "after" else 0)
        children.insert(offset, dragged_id)
        result[new_parent_id] = _promoted(new_parent, children)

    result[dragged_id] = dragged.model_copy(update={"parent_id": new_parent_id})

    if old_parent_id is not None and old_parent_id != new_parent_id:
        recalculate_prefixes(result, old_parent_id)
    recalculate_prefixes(result, new_parent_id)
    return result


def _remap_subtree(
    subtree: Mapping[str, OutlineNode],
    root_id: str,
    new_parent_id: str,
    name_suffix: str = "",
) -> tuple[NodeMap, str]:
    """Copy a subtree with fresh ids; the copied root is attached to ``new_parent_id``."""

    id_map = {old_id: new_id() for old_id in collect_subtree_ids(subtree, root_id)}
    copied: NodeMap = {}
    for old_id, fresh_id in id_map.items():
        node = subtree[old_id]
        update: dict[str, Any] = {
            "id": fresh_id,
            "parent_id": new_parent_id if old_id == root_id else id_map.get(node.parent_id or ""),
            "children_ids": [id_map[cid] for cid in node.children_ids if cid in id_map],
        }
        if old_id == root_id and name_suffix:
            update["name"] = node.name + name_suffix
        copied[fresh_id] = node.model_copy(update=update, deep=True)
    return copied, id_map[root_id]


def duplicate_subtree(nodes: NodeMap, node_id: str) -> tuple[NodeMap, str]:
    """Deep-copy a subtree with fresh ids and insert it as the next sibling.

    Returns:
        ``(new_nodes, copy_root_id)``; ``(nodes, "")`` for unknown ids or the root.
    """

    node = nodes.get(node_id)
    if node is None or node.parent_id is None or node.parent_id not in nodes:
        return nodes, ""

    copied, copy_root_id = _remap_subtree(collect_subtree(nodes, node_id), node_id, node.parent_id, COPY_SUFFIX)

    parent = nodes[node.parent_id]
    children = list(parent.children_ids)
    children.insert(children.index(node_id) + 1, copy_root_id)

    result = dict(nodes)
    result.update(copied)
    result[parent.id] = _promoted(parent, children)
    recalculate_prefixes(result, parent.id)
    return result, copy_root_id


def paste_subtree(
    nodes: NodeMap,
    clipboard: Mapping[str, OutlineNode],
    clip_root_id: str,
    target_id: str,
    position: Literal["after", "inside"] = "after",
) -> tuple[NodeMap, str]:
    """Insert a subtree collected from any outline, re-identified, at ``target_id``.

    ``after`` on the root falls back to ``inside``, mirroring :func:`add_node_after`.
    """

    target = nodes.get(target_id)
    if target is None or clip_root_id not in clipboard:
        return nodes, ""

    if position == "after" and target.parent_id is not None and target.parent_id in nodes:
        parent = nodes[target.parent_id]
        children = list(parent.children_ids)
        insert_at = children.index(target_id) + 1
    else:
        parent = target
        children = list(parent.children_ids)
        insert_at = len(children)

    copied, pasted_root_id = _remap_subtree(clipboard, clip_root_id, parent.id)
    children.insert(insert_at, pasted_root_id)

    result = dict(nodes)
    result.update(copied)
    result[parent.id] = _promoted(parent, children, is_collapsed=False)
    recalculate_prefixes(result, parent.id)
    return result, pasted_root_id


# -- outline-level helpers --------------------------------------------------


def rename_outline(outline: Outline, name: str) -> Outline:
    """Rename an outline, keeping the root node's name in sync. Guides are read-only."""

    if outline.is_guide:
        return outline
    nodes = update_node(outline.nodes, outline.root_node_id, {"name": name})
    return outline.model_copy(update={"name": name, "nodes": nodes})


def with_nodes(outline: Outline, nodes: NodeMap) -> Outline:
    """Replace an outline's node map wholesale, keeping ``name`` in sync with the root."""

    update: dict[str, Any] = {"nodes": nodes}
    root = nodes.get(outline.root_node_id)
    if root is not None and root.name and root.name != outline.name and not outline.is_guide:
        update["name"] = root.name
    return outline.model_copy(update=update)


def check_tree_integrity(nodes: Mapping[str, OutlineNode], root_id: str) -> list[str]:
    """Describe every violation of the tree invariants; empty when the map is sound."""

    problems: list[str] = []
    root = nodes.get(root_id)
    if root is None:
        return [f"root node {root_id} is missing"]
    if root.parent_id is not None:
        problems.append(f"root node {root_id} has parent {root.parent_id}")

    reached: dict[str, int] = {}
    queue: deque[str] = deque([root_id])
    while queue:
        current_id = queue.popleft()
        reached[current_id] = reached.get(current_id, 0) + 1
        if reached[current_id] > 1:
            problems.append(f"node {current_id} is reachable by more than one path")
            continue
        current = nodes.get(current_id)
        if current is None:
            problems.append(f"node {current_id} is referenced but missing")
            continue
        for child_id in current.children_ids:
            child = nodes.get(child_id)
            if child is not None and child.parent_id != current_id:
                problems.append(f"node {child_id} is listed under {current_id} but points to {child.parent_id}")
            queue.append(child_id)

    for node_id in (nid for nid in nodes if nid not in reached):
        problems.append(f"node {node_id} is not reachable from the root")
    return problems
