"""Outline models.

An outline is a flat map of nodes keyed by id; the tree is expressed only through
``parent_id`` / ``children_ids``. Field aliases follow the at-rest JSON shape
(``parentId``, ``childrenIds``, ``rootNodeId`` ...) so files written by any
client of the format round-trip unchanged.
"""

from __future__ import annotations

import json
import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from outliner.utils.ids import new_id

ROOT = "root"
CHAPTER = "chapter"
DOCUMENT = "document"

NodeKind = Literal[
    "root",
    "chapter",
    "document",
    "note",
    "task",
    "link",
    "code",
    "quote",
    "date",
    "image",
    "video",
    "audio",
    "pdf",
    "youtube",
    "spreadsheet",
    "database",
    "app",
    "map",
    "canvas",
]

NodeColor = Literal["default", "red", "orange", "yellow", "green", "blue", "purple", "pink"]


class NodeMetadata(BaseModel):
    """Orthogonal annotations; never touched by structural edits."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tags: list[str] | None = None
    color: NodeColor | None = None
    is_pinned: bool | None = Field(default=None, alias="isPinned")
    is_completed: bool | None = Field(default=None, alias="isCompleted")
    code_language: str | None = Field(default=None, alias="codeLanguage")
    url: str | None = None
    due_date: int | None = Field(default=None, alias="dueDate")
    created_at: int | None = Field(default=None, alias="createdAt")
    updated_at: int | None = Field(default=None, alias="updatedAt")


class OutlineNode(BaseModel):
    """A single tree node.

    ``kind`` for non-root nodes is derived: ``chapter`` when the node has children,
    ``document`` (or a specialized leaf kind) otherwise. Specialized kinds are kept
    as plain strings so files carrying kinds unknown to this version still load.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    content: str = ""
    kind: str = Field(default=DOCUMENT, alias="type")
    parent_id: str | None = Field(default=None, alias="parentId")
    children_ids: list[str] = Field(default_factory=list, alias="childrenIds")
    is_collapsed: bool = Field(default=False, alias="isCollapsed")
    prefix: str = ""
    metadata: NodeMetadata | None = None

    @property
    def is_root(self) -> bool:
        return self.kind == ROOT or self.parent_id is None


NodeMap = dict[str, OutlineNode]


class Outline(BaseModel):
    """A single user document: a node map plus identity and bookkeeping."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    root_node_id: str = Field(alias="rootNodeId")
    # Scalars precede ``nodes`` so a partial read of a large file still sees them.
    last_modified: int | None = Field(default=None, alias="lastModified")
    is_guide: bool = Field(default=False, alias="isGuide")
    nodes: NodeMap = Field(default_factory=dict)

    # Lazy-load bookkeeping reported by the host backend; never written to disk.
    file_name: str | None = Field(default=None, alias="_fileName", exclude=True)
    file_size: int | None = Field(default=None, alias="_fileSize", exclude=True)
    is_lazy_loaded: bool = Field(default=False, alias="_isLazyLoaded", exclude=True)
    estimated_node_count: int | None = Field(default=None, alias="_estimatedNodeCount", exclude=True)

    @property
    def root(self) -> OutlineNode:
        return self.nodes[self.root_node_id]

    def touched(self) -> Outline:
        """Return a copy with ``last_modified`` set to now (milliseconds)."""

        return self.model_copy(update={"last_modified": int(time.time() * 1000)})


def new_blank_outline(name: str = "Untitled Outline", *, is_guide: bool = False) -> Outline:
    """Create an outline holding only a root node."""

    root_id = new_id()
    root = OutlineNode(id=root_id, name=name, kind=ROOT, parent_id=None)
    return Outline(
        id=new_id(),
        name=name,
        root_node_id=root_id,
        nodes={root_id: root},
        last_modified=int(time.time() * 1000),
        is_guide=is_guide,
    )


def is_valid_outline(data: Any) -> bool:
    """Check the structural contract every loaded or imported outline must meet.

    Objects failing this check are dropped at load time rather than raised, so
    one corrupt file never blocks the rest of a collection.
    """

    if not isinstance(data, dict):
        return False
    if not all(isinstance(data.get(key), str) for key in ("id", "name", "rootNodeId")):
        return False
    nodes = data.get("nodes")
    if not isinstance(nodes, dict) or not nodes:
        return False
    if data["rootNodeId"] not in nodes:
        return False
    return all(isinstance(node, dict) and isinstance(node.get("prefix"), str) for node in nodes.values())


def outline_to_dict(outline: Outline) -> dict[str, Any]:
    """Dump an outline in its at-rest shape (camelCase keys, no bookkeeping)."""

    data = outline.model_dump(mode="json", by_alias=True)
    if data.get("lastModified") is None:
        data.pop("lastModified", None)
    for node in data["nodes"].values():
        if node.get("metadata") is None:
            node.pop("metadata", None)
        else:
            node["metadata"] = {k: v for k, v in node["metadata"].items() if v is not None}
    return data


def outline_to_json(outline: Outline) -> str:
    """Serialize an outline as UTF-8 pretty-printed JSON."""

    return json.dumps(outline_to_dict(outline), indent=2, ensure_ascii=False)


def outline_from_json(text: str) -> Outline | None:
    """Parse an at-rest JSON document; ``None`` if it fails the validity contract."""

    data = json.loads(text)
    return outline_from_dict(data)


def outline_from_dict(data: Any) -> Outline | None:
    """Validate a decoded outline object; ``None`` if it fails the validity contract."""

    if not is_valid_outline(data):
        return None
    return Outline.model_validate(data)
