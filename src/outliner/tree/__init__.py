"""Pure copy-on-write operations over outline node maps."""

from __future__ import annotations

from outliner.tree.engine import (
    COPY_SUFFIX,
    MovePosition,
    add_node,
    add_node_after,
    calculate_prefix,
    check_tree_integrity,
    collect_subtree,
    collect_subtree_ids,
    duplicate_subtree,
    is_descendant,
    move_node,
    next_selection_after_remove,
    paste_subtree,
    recalculate_all_prefixes,
    recalculate_prefixes,
    remove_node,
    rename_outline,
    update_node,
    with_nodes,
)
from outliner.tree.tags import (
    add_tag_to_node,
    delete_tag,
    filter_nodes_by_tags,
    get_all_tags,
    get_tag_usage_counts,
    remove_tag_from_node,
    rename_tag,
)

__all__ = [
    "COPY_SUFFIX",
    "MovePosition",
    "add_node",
    "add_node_after",
    "add_tag_to_node",
    "calculate_prefix",
    "check_tree_integrity",
    "collect_subtree",
    "collect_subtree_ids",
    "delete_tag",
    "duplicate_subtree",
    "filter_nodes_by_tags",
    "get_all_tags",
    "get_tag_usage_counts",
    "is_descendant",
    "move_node",
    "next_selection_after_remove",
    "paste_subtree",
    "recalculate_all_prefixes",
    "recalculate_prefixes",
    "remove_node",
    "remove_tag_from_node",
    "rename_outline",
    "rename_tag",
    "update_node",
    "with_nodes",
]
