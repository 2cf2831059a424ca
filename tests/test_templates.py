"""Tests for starter templates."""

from __future__ import annotations

import pytest

from outliner.errors import TemplateNotFoundError
from outliner.models.outline import CHAPTER, DOCUMENT, ROOT, is_valid_outline, outline_to_dict
from outliner.templates import create_from_template, get_template, get_templates
from outliner.tree import check_tree_integrity, recalculate_all_prefixes


def test_template_catalogue() -> None:
    templates = get_templates()

    ids = [t.id for t in templates]
    assert len(ids) == 6
    assert len(set(ids)) == len(ids)
    assert all(t.name and t.description and t.icon and t.sections for t in templates)


@pytest.mark.parametrize("template_id", [t.id for t in get_templates()])
def test_every_template_builds_a_sound_outline(template_id: str) -> None:
    outline = create_from_template(template_id)
    root = outline.root

    assert root.kind == ROOT
    assert root.parent_id is None
    assert root.children_ids
    assert outline.name == root.name
    assert check_tree_integrity(outline.nodes, outline.root_node_id) == []
    assert is_valid_outline(outline_to_dict(outline))
    fresh = recalculate_all_prefixes(outline.nodes, outline.root_node_id)
    assert {k: n.prefix for k, n in fresh.items()} == {k: n.prefix for k, n in outline.nodes.items()}


def test_book_outline_nests_sections() -> None:
    outline = create_from_template("book-outline")
    intro = outline.nodes[outline.root.children_ids[0]]

    assert outline.name == "Book Title"
    assert outline.root.content == "<p>Your book synopsis here...</p>"
    assert intro.kind == CHAPTER
    names = [outline.nodes[c].name for c in intro.children_ids]
    assert names == ["Opening Hook", "Thesis Statement", "Chapter Overview"]
    assert outline.nodes[intro.children_ids[2]].prefix == "1.3"
    assert outline.nodes[intro.children_ids[0]].kind == DOCUMENT


def test_each_creation_uses_fresh_ids() -> None:
    template = get_template("meeting-notes")
    assert template is not None

    first, second = template.create(), template.create()

    assert first.id != second.id
    assert not set(first.nodes) & set(second.nodes)


def test_custom_name_and_blank() -> None:
    named = create_from_template("weekly-review", name="Week 42")
    blank = create_from_template(None, name="Scratch")

    assert named.name == named.root.name == "Week 42"
    assert list(blank.nodes) == [blank.root_node_id]
    assert blank.name == "Scratch"
    assert create_from_template("blank").name == "Untitled Outline"


def test_unknown_template_raises() -> None:
    assert get_template("nope") is None
    with pytest.raises(TemplateNotFoundError):
        create_from_template("nope")
