"""Tests for duplicate detection and repair."""

from __future__ import annotations

from outliner.models.outline import CHAPTER, ROOT, Outline, OutlineNode, new_blank_outline
from outliner.repair import (
    NO_DUPLICATES_REPORT,
    check_outline_integrity,
    find_duplicate_children,
    fix_duplicate_children,
    fix_duplicate_outline_ids,
)
from outliner.tree import check_tree_integrity


def outline_with(nodes: dict[str, OutlineNode], name: str = "Doc") -> Outline:
    return Outline(id="o1", name=name, root_node_id="root", nodes=nodes)


def test_duplicate_child_under_one_parent_keeps_first() -> None:
    outline = outline_with(
        {
            "root": OutlineNode(id="root", name="Doc", kind=ROOT, children_ids=["a", "b", "a"]),
            "a": OutlineNode(id="a", name="A", parent_id="root", prefix="1"),
            "b": OutlineNode(id="b", name="B", parent_id="root", prefix="2"),
        }
    )

    issues = find_duplicate_children(outline.nodes)
    assert [(i.node_id, i.duplicates) for i in issues] == [("root", ["a"])]

    result = fix_duplicate_children(outline)
    assert result.fixed
    assert result.outline.root.children_ids == ["a", "b"]
    assert result.report == ['Fixed node "Doc" (root): removed 1 duplicate(s) - a']
    assert check_tree_integrity(result.outline.nodes, "root") == []
    # input untouched
    assert outline.root.children_ids == ["a", "b", "a"]


def test_child_listed_under_two_parents_stays_with_declared_parent() -> None:
    outline = outline_with(
        {
            "root": OutlineNode(id="root", name="Doc", kind=ROOT, children_ids=["p", "q"]),
            "p": OutlineNode(id="p", name="P", kind=CHAPTER, parent_id="root", children_ids=["x"], prefix="1"),
            "q": OutlineNode(id="q", name="Q", kind=CHAPTER, parent_id="root", children_ids=["x"], prefix="2"),
            "x": OutlineNode(id="x", name="X", parent_id="q", prefix="1.1"),
        }
    )

    issues = find_duplicate_children(outline.nodes)
    assert [(i.node_id, i.foreign) for i in issues] == [("p", ["x"])]

    result = fix_duplicate_children(outline)
    nodes = result.outline.nodes
    assert nodes["p"].children_ids == []
    assert nodes["p"].kind == "document"
    assert nodes["q"].children_ids == ["x"]
    assert nodes["x"].prefix == "2.1"
    assert check_tree_integrity(nodes, "root") == []


def test_clean_outline_reports_nothing() -> None:
    outline = new_blank_outline("Clean")
    result = fix_duplicate_children(outline)
    assert not result.fixed
    assert result.outline is outline
    assert result.report == [NO_DUPLICATES_REPORT]
    assert check_outline_integrity(outline) == []


def test_duplicate_outline_ids_second_gets_new_id() -> None:
    first = new_blank_outline("One").model_copy(update={"id": "X"})
    second = new_blank_outline("Two").model_copy(update={"id": "X"})

    result = fix_duplicate_outline_ids([first, second])

    assert result.fixed_duplicate_count == 1
    assert result.outlines[0] is first
    assert result.outlines[1].id != "X"
    assert result.outlines[1].name == "Two"
    assert result.needs_save == [result.outlines[1]]


def test_duplicate_outline_id_repair_is_idempotent() -> None:
    outlines = [new_blank_outline(f"N{i}").model_copy(update={"id": "same"}) for i in range(3)]

    once = fix_duplicate_outline_ids(outlines)
    assert once.fixed_duplicate_count == 2
    assert len({o.id for o in once.outlines}) == 3

    twice = fix_duplicate_outline_ids(once.outlines)
    assert twice.needs_save == []
    assert twice.fixed_duplicate_count == 0
