"""Outline-interchange XML (OPML)."""

from __future__ import annotations

from datetime import UTC, datetime

from lxml import etree

from outliner.errors import ImportFormatError
from outliner.formats.base import BaseImporter, ImportOptions, ImportResult, ParsedNode
from outliner.models.outline import CHAPTER, DOCUMENT, ROOT, Outline

_STRUCTURAL_KINDS = {ROOT, CHAPTER, DOCUMENT}


def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)


class OpmlImporter(BaseImporter):
    """Import OPML files: each ``<outline text=...>`` element becomes a node."""

    format_id = "opml"
    supported_extensions = (".opml", ".xml")
    supported_media_types = ("text/x-opml", "application/xml", "text/xml")

    def parse(self, content: str, suggested_name: str, options: ImportOptions | None = None) -> ImportResult:
        text = self.normalize_text(content)
        warnings: list[str] = []

        try:
            doc = etree.fromstring(text.encode("utf-8"), _parser())
        except etree.XMLSyntaxError as exc:
            raise ImportFormatError(f"Invalid OPML file: {exc}") from exc

        title_el = doc.find("head/title")
        title = (title_el.text or "").strip() if title_el is not None else ""
        # The document's own title wins over the requested name and the file name.
        title = title or self.resolve_root_name(suggested_name, options)

        body = doc.find("body")
        if body is None:
            raise ImportFormatError("Invalid OPML: no body element found")

        root = ParsedNode(name=title)
        # Explicit stack of (element, parsed parent) keeps arbitrarily deep files safe.
        stack: list[tuple[etree._Element, ParsedNode]] = [
            (el, root) for el in reversed(body.findall("outline"))
        ]
        while stack:
            element, parent = stack.pop()
            name = element.get("text")
            if not name:
                continue
            node = ParsedNode(name=name, content=element.get("_note") or element.get("note") or "")
            kind = element.get("_type")
            if kind and kind not in _STRUCTURAL_KINDS:
                node.kind = kind
            parent.children.append(node)
            stack.extend((child, node) for child in reversed(element.findall("outline")))

        if not root.children:
            warnings.append("No outline elements found in OPML file.")

        outline, stats = self.build_outline_from_tree(root, title)
        return ImportResult(outline=outline, stats=stats, warnings=warnings)


def serialize_opml(outline: Outline, include_content: bool = True) -> str:
    """Render an outline as OPML 2.0; the root becomes the document title."""

    opml = etree.Element("opml", version="2.0")
    head = etree.SubElement(opml, "head")
    etree.SubElement(head, "title").text = outline.name
    etree.SubElement(head, "dateCreated").text = datetime.now(UTC).isoformat()
    body = etree.SubElement(opml, "body")

    root = outline.nodes.get(outline.root_node_id)
    if root is not None:
        stack: list[tuple[str, etree._Element]] = [(cid, body) for cid in reversed(root.children_ids)]
        while stack:
            node_id, parent_el = stack.pop()
            node = outline.nodes.get(node_id)
            if node is None:
                continue
            element = etree.SubElement(parent_el, "outline", text=node.name)
            if include_content and node.content.strip():
                element.set("_note", node.content.strip())
            if node.kind not in _STRUCTURAL_KINDS:
                element.set("_type", node.kind)
            stack.extend((cid, element) for cid in reversed(node.children_ids))

    return etree.tostring(opml, pretty_print=True, xml_declaration=True, encoding="UTF-8").decode("utf-8")
