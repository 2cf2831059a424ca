"""Tests for import/export format adapters."""

from __future__ import annotations

from pathlib import Path

import pytest

from outliner.errors import ImportFormatError, NoImporterError
from outliner.formats import (
    FileDescriptor,
    ImportOptions,
    MarkdownImporter,
    OpmlImporter,
    PlainTextImporter,
    find_importer_for_file,
    import_content,
    import_file,
    serialize_markdown,
    serialize_opml,
    serialize_plain_text,
    supported_import_extensions,
)
from outliner.formats.base import iter_depth_first
from outliner.formats.plain_text import clean_node_name, detect_indentation
from outliner.models.outline import CHAPTER, DOCUMENT, ROOT, Outline, new_blank_outline
from outliner.tree import add_node, check_tree_integrity, update_node, with_nodes


def shape(outline: Outline) -> list[tuple[int, str, str]]:
    """(depth, name, content) in document order."""

    return [
        (depth, outline.nodes[node_id].name, outline.nodes[node_id].content)
        for depth, node_id in iter_depth_first(outline)
    ]


def by_name(outline: Outline, name: str):
    return next(n for n in outline.nodes.values() if n.name == name)


def test_plain_text_indentation_scenario() -> None:
    result = PlainTextImporter().parse("A\n  B\n  C\n    D", "notes.txt")
    outline = result.outline

    assert len(outline.nodes) == 4
    root = outline.root
    assert root.name == "A"
    assert root.kind == ROOT
    assert [outline.nodes[c].name for c in root.children_ids] == ["B", "C"]
    c = by_name(outline, "C")
    assert [outline.nodes[x].name for x in c.children_ids] == ["D"]
    assert c.kind == CHAPTER
    assert {n.name: n.prefix for n in outline.nodes.values()} == {"A": "", "B": "1", "C": "2", "D": "2.1"}
    assert check_tree_integrity(outline.nodes, outline.root_node_id) == []


def test_plain_text_multiple_top_level_lines_get_file_root() -> None:
    result = PlainTextImporter().parse("- one\n- two\n\t1. nested", "my_notes.txt")
    outline = result.outline

    assert outline.name == "my notes"
    assert [outline.nodes[c].name for c in outline.root.children_ids] == ["one", "two"]
    assert by_name(outline, "nested").prefix == "2.1"


def test_plain_text_empty_file_warns() -> None:
    result = PlainTextImporter().parse("   \n", "empty.txt")
    assert result.warnings == ["Empty file imported."]
    assert len(result.outline.nodes) == 1


def test_indentation_helpers() -> None:
    assert detect_indentation(["a", "    b", "        c"]).spaces_per_level == 4
    assert detect_indentation(["a", "\tb"]).use_tabs
    assert clean_node_name("[x] done") == "done"
    assert clean_node_name("3) third") == "third"


def test_markdown_import_hierarchy_and_content() -> None:
    text = "# Book\n\nIntro text\n\n## Part 1\n\nBody\n\n### Section\n\n## Part 2\n"
    result = MarkdownImporter().parse(text, "book.md")
    outline = result.outline

    assert outline.name == "Book"
    assert shape(outline) == [
        (0, "Book", "Intro text"),
        (1, "Part 1", "Body"),
        (2, "Section", ""),
        (1, "Part 2", ""),
    ]
    assert by_name(outline, "Section").prefix == "1.1"
    assert by_name(outline, "Part 2").kind == DOCUMENT


def test_markdown_without_headings_warns() -> None:
    result = MarkdownImporter().parse("just text", "loose.md", ImportOptions(outline_name="Loose"))
    assert result.warnings == ["No headings found. Content imported as single node."]
    assert result.outline.name == "Loose"
    assert result.outline.root.content == "just text"


def test_markdown_round_trip_preserves_names_content_hierarchy() -> None:
    text = "# Root\n\nabout\n\n## A\n\nalpha\n\n### A.1\n\n## B\n\nbeta\n"
    original = MarkdownImporter().parse(text, "r.md").outline

    again = MarkdownImporter().parse(serialize_markdown(original), "r.md").outline

    assert shape(again) == shape(original)
    assert {n.name: n.prefix for n in again.nodes.values()} == {n.name: n.prefix for n in original.nodes.values()}


def test_markdown_round_trip_keeps_heading_like_content() -> None:
    outline = new_blank_outline("Notes")
    nodes, child_id = add_node(outline.nodes, outline.root_node_id, name="Snippet")
    content = "# not a heading\nplain\n\\## escaped already\n#hashtag"
    nodes = update_node(nodes, child_id, {"content": content})
    outline = with_nodes(outline, nodes)

    text = serialize_markdown(outline)
    again = MarkdownImporter().parse(text, "notes.md").outline

    assert shape(again) == [(0, "Notes", ""), (1, "Snippet", content)]


def test_opml_import_and_export() -> None:
    opml = """<?xml version="1.0" encoding="UTF-8"?>
<opml version="2.0">
  <head><title>Plans</title></head>
  <body>
    <outline text="Goals" _note="big ones">
      <outline text="Ship" _type="task"/>
    </outline>
    <outline text="Ideas"/>
    <outline/>
  </body>
</opml>"""
    result = OpmlImporter().parse(opml, "plans.opml")
    outline = result.outline

    assert outline.name == "Plans"
    assert shape(outline) == [(0, "Plans", ""), (1, "Goals", "big ones"), (2, "Ship", ""), (1, "Ideas", "")]
    assert by_name(outline, "Ship").kind == "task"
    assert by_name(outline, "Goals").kind == CHAPTER

    again = OpmlImporter().parse(serialize_opml(outline), "plans.opml").outline
    assert shape(again) == shape(outline)
    assert by_name(again, "Ship").kind == "task"


def test_opml_title_wins_over_requested_name() -> None:
    titled = "<opml><head><title>From File</title></head><body><outline text='a'/></body></opml>"
    untitled = "<opml><head/><body><outline text='a'/></body></opml>"
    options = ImportOptions(outline_name="Requested")

    assert OpmlImporter().parse(titled, "named.opml", options).outline.name == "From File"
    assert OpmlImporter().parse(untitled, "named.opml", options).outline.name == "Requested"
    assert OpmlImporter().parse(untitled, "named_file.opml").outline.name == "named file"


def test_opml_malformed_raises() -> None:
    with pytest.raises(ImportFormatError):
        OpmlImporter().parse("<opml><body><outline text='x'></body>", "bad.opml")
    with pytest.raises(ImportFormatError):
        OpmlImporter().parse("<opml><head/></opml>", "nobody.opml")


def test_opml_without_outlines_warns() -> None:
    result = OpmlImporter().parse("<opml><body/></opml>", "blank.opml")
    assert result.warnings == ["No outline elements found in OPML file."]


def test_plain_text_export_indents_by_depth() -> None:
    outline = PlainTextImporter().parse("A\n  B\n    C", "x.txt").outline
    assert serialize_plain_text(outline) == "A\n  B\n    C\n"


def test_registry_lookup() -> None:
    assert isinstance(find_importer_for_file(FileDescriptor("notes.MD")), MarkdownImporter)
    assert isinstance(find_importer_for_file(FileDescriptor("feed", media_type="text/x-opml")), OpmlImporter)
    assert find_importer_for_file(FileDescriptor("photo.png")) is None
    assert {".md", ".txt", ".opml"} <= set(supported_import_extensions())

    with pytest.raises(NoImporterError):
        import_content("docx", "", "file.docx")


def test_import_file_reads_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "todo.txt"
    path.write_text("Todo\n  milk\n  eggs\n", encoding="utf-8")

    result = import_file(path)
    assert result.outline.name == "Todo"
    assert result.stats.nodes_imported == 3
    assert result.stats.max_depth == 1

    with pytest.raises(NoImporterError):
        import_file(tmp_path / "image.png")
