"""Tests for tag operations on node maps."""

from __future__ import annotations

from outliner.models.outline import ROOT, NodeMap, NodeMetadata, OutlineNode
from outliner.tree import (
    add_tag_to_node,
    delete_tag,
    filter_nodes_by_tags,
    get_all_tags,
    get_tag_usage_counts,
    remove_tag_from_node,
    rename_tag,
)


def tagged_tree() -> NodeMap:
    """root -> [a (work, urgent), b (work, review), c (personal)]"""

    def leaf(node_id: str, *tags: str) -> OutlineNode:
        return OutlineNode(id=node_id, name=node_id.upper(), parent_id="root", metadata=NodeMetadata(tags=list(tags)))

    return {
        "root": OutlineNode(id="root", name="Root", kind=ROOT, children_ids=["a", "b", "c"]),
        "a": leaf("a", "work", "urgent"),
        "b": leaf("b", "work", "review"),
        "c": leaf("c", "personal"),
    }


def tags_of(nodes: NodeMap, node_id: str) -> list[str] | None:
    metadata = nodes[node_id].metadata
    return metadata.tags if metadata is not None else None


def test_add_tag_creates_metadata_and_copies_only_that_node() -> None:
    nodes = tagged_tree()

    result = add_tag_to_node(nodes, "root", "top")

    assert tags_of(result, "root") == ["top"]
    assert nodes["root"].metadata is None
    assert result["a"] is nodes["a"]


def test_add_tag_appends_without_duplicating() -> None:
    nodes = tagged_tree()

    assert tags_of(add_tag_to_node(nodes, "a", "extra"), "a") == ["work", "urgent", "extra"]
    assert add_tag_to_node(nodes, "a", "work") is nodes
    assert add_tag_to_node(nodes, "missing", "x") is nodes


def test_remove_last_tag_leaves_tags_absent() -> None:
    nodes = tagged_tree()

    assert tags_of(remove_tag_from_node(nodes, "a", "urgent"), "a") == ["work"]
    assert tags_of(remove_tag_from_node(nodes, "c", "personal"), "c") is None
    assert remove_tag_from_node(nodes, "missing", "x") is nodes


def test_all_tags_sorted_and_unique() -> None:
    assert get_all_tags(tagged_tree()) == ["personal", "review", "urgent", "work"]
    assert get_all_tags({"root": OutlineNode(id="root", name="R", kind=ROOT)}) == []


def test_filter_requires_every_tag() -> None:
    nodes = tagged_tree()

    assert filter_nodes_by_tags(nodes, ["work"]) == ["a", "b"]
    assert filter_nodes_by_tags(nodes, ["work", "urgent"]) == ["a"]
    assert filter_nodes_by_tags(nodes, ["nonexistent"]) == []
    assert filter_nodes_by_tags(nodes, []) == []


def test_rename_tag_everywhere() -> None:
    nodes = tagged_tree()

    result = rename_tag(nodes, "work", "job")

    assert get_all_tags(result) == ["job", "personal", "review", "urgent"]
    assert tags_of(result, "a") == ["job", "urgent"]
    assert result["c"] is nodes["c"]


def test_rename_onto_existing_tag_keeps_one() -> None:
    result = rename_tag(tagged_tree(), "urgent", "work")

    assert tags_of(result, "a") == ["work"]


def test_delete_tag_keeps_other_tags() -> None:
    result = delete_tag(tagged_tree(), "work")

    assert get_all_tags(result) == ["personal", "review", "urgent"]
    assert tags_of(result, "b") == ["review"]


def test_usage_counts() -> None:
    assert get_tag_usage_counts(tagged_tree()) == {"work": 2, "urgent": 1, "review": 1, "personal": 1}
