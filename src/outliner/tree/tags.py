"""Tag operations over a ``NodeMap``.

Tags live in ``metadata.tags`` and never affect structure. Like the tree engine,
every transform returns a new dict and copies only the nodes it changes; unknown
node ids return the input map itself.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping

from outliner.models.outline import NodeMap, NodeMetadata, OutlineNode


def _tags(node: OutlineNode) -> list[str]:
    return list(node.metadata.tags or []) if node.metadata is not None else []


def _with_tags(node: OutlineNode, tags: list[str]) -> OutlineNode:
    metadata = node.metadata or NodeMetadata()
    # An emptied tag list is stored as absent.
    return node.model_copy(update={"metadata": metadata.model_copy(update={"tags": tags or None})})


def add_tag_to_node(nodes: NodeMap, node_id: str, tag: str) -> NodeMap:
    node = nodes.get(node_id)
    if node is None or tag in _tags(node):
        return nodes
    return {**nodes, node_id: _with_tags(node, [*_tags(node), tag])}


def remove_tag_from_node(nodes: NodeMap, node_id: str, tag: str) -> NodeMap:
    node = nodes.get(node_id)
    if node is None:
        return nodes
    return {**nodes, node_id: _with_tags(node, [t for t in _tags(node) if t != tag])}


def get_all_tags(nodes: Mapping[str, OutlineNode]) -> list[str]:
    """Every distinct tag in the map, sorted."""

    return sorted({tag for node in nodes.values() for tag in _tags(node)})


def filter_nodes_by_tags(nodes: Mapping[str, OutlineNode], tags: Iterable[str]) -> list[str]:
    """Ids of nodes carrying *all* of ``tags``; an empty filter matches nothing."""

    wanted = set(tags)
    if not wanted:
        return []
    return [node_id for node_id, node in nodes.items() if wanted <= set(_tags(node))]


def rename_tag(nodes: NodeMap, old_tag: str, new_tag: str) -> NodeMap:
    """Rename a tag on every node; a node that already has ``new_tag`` keeps one copy."""

    if old_tag == new_tag:
        return nodes
    updated = dict(nodes)
    for node_id, node in nodes.items():
        tags = _tags(node)
        if old_tag not in tags:
            continue
        renamed: list[str] = []
        for tag in (new_tag if t == old_tag else t for t in tags):
            if tag not in renamed:
                renamed.append(tag)
        updated[node_id] = _with_tags(node, renamed)
    return updated


def delete_tag(nodes: NodeMap, tag: str) -> NodeMap:
    updated = dict(nodes)
    for node_id, node in nodes.items():
        tags = _tags(node)
        if tag in tags:
            updated[node_id] = _with_tags(node, [t for t in tags if t != tag])
    return updated


def get_tag_usage_counts(nodes: Mapping[str, OutlineNode]) -> dict[str, int]:
    """Number of nodes using each tag."""

    return dict(Counter(tag for node in nodes.values() for tag in _tags(node)))
