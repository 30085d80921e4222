"""
Flat node arena shared by the saved and unsaved query trees.

A forest stores nodes by id plus an ordered children list per parent.
Parent/child edges are id references only; the root itself is a
synthetic id that never appears in `nodes`.

Every mutating method returns a callable that reverts it, so callers can
apply a change optimistically and compensate if the backend rejects it.
"""
from typing import Any, Callable, Dict, Iterator, List, Optional

from loguru import logger

from .models import NodeKind, TreeNode
from .ordering import insert_index, is_locally_sorted, replace_sort_key_label, resort

Undo = Callable[[], None]


def _noop() -> None:
    return None


class Forest:
    """
    Arena of tree nodes keyed by id.

    Attributes:
        root_id: Synthetic root id (valid parent, never stored in `nodes`)
        nodes: node_id -> TreeNode
        children_by_parent_id: parent id -> ordered child ids. A parent with
            no entry has not had its children loaded yet.
    """

    def __init__(self, root_id: str):
        self.root_id = root_id
        self.nodes: Dict[str, TreeNode] = {}
        self.children_by_parent_id: Dict[str, List[str]] = {root_id: []}

    # --- Lookups ---

    def get(self, node_id: Optional[str]) -> Optional[TreeNode]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def has(self, node_id: str) -> bool:
        return node_id in self.nodes

    def is_root(self, node_id: Optional[str]) -> bool:
        return node_id == self.root_id

    def children_of(self, parent_id: str) -> Optional[List[str]]:
        """Ordered child ids, or None when the parent's children were never loaded."""
        return self.children_by_parent_id.get(parent_id)

    def level_of(self, node_id: str) -> int:
        """Depth of a node; the root is level 0."""
        if self.is_root(node_id):
            return 0
        node = self.nodes.get(node_id)
        return node.level if node else 0

    def find_by_mount_id(self, mount_id: str) -> Optional[TreeNode]:
        for node in self.nodes.values():
            if node.mount_id == mount_id:
                return node
        return None

    def iter_subtree(self, node_id: str) -> Iterator[TreeNode]:
        """Yield a node and all loaded descendants, depth first."""
        stack = [node_id]
        while stack:
            current = stack.pop()
            node = self.nodes.get(current)
            if node is not None:
                yield node
            stack.extend(reversed(self.children_by_parent_id.get(current, [])))

    def subtree_height(self, node_id: str) -> int:
        """Height of the loaded subtree rooted at `node_id` (a leaf is 1)."""
        children = self.children_by_parent_id.get(node_id) or []
        if not children:
            return 1
        return 1 + max(self.subtree_height(child) for child in children)

    # --- Mutations ---

    def insert_sorted(self, parent_id: str, node: TreeNode) -> Undo:
        """
        Store `node` and insert it into its parent's children at its sorted
        position. The parent's children list is created if absent.
        """
        if node.node_id in self.nodes:
            logger.warning(f"Forest[{self.root_id}]: node {node.node_id} already present, insert ignored")
            return _noop

        node.parent_node_id = parent_id
        node.level = self.level_of(parent_id) + 1
        created_list = parent_id not in self.children_by_parent_id
        children = self.children_by_parent_id.setdefault(parent_id, [])
        children.insert(insert_index(children, node, self.get), node.node_id)
        self.nodes[node.node_id] = node

        def undo() -> None:
            self.nodes.pop(node.node_id, None)
            siblings = self.children_by_parent_id.get(parent_id, [])
            if node.node_id in siblings:
                siblings.remove(node.node_id)
            if created_list and not siblings:
                self.children_by_parent_id.pop(parent_id, None)

        return undo

    def remove(self, node_id: str) -> Undo:
        """Remove a node and its loaded descendants."""
        node = self.nodes.get(node_id)
        if node is None:
            return _noop

        parent_id = node.parent_node_id
        siblings = self.children_by_parent_id.get(parent_id, [])
        index = siblings.index(node_id) if node_id in siblings else None
        if index is not None:
            siblings.pop(index)

        removed_nodes = {}
        removed_children = {}
        for descendant in list(self.iter_subtree(node_id)):
            removed_nodes[descendant.node_id] = self.nodes.pop(descendant.node_id)
            if descendant.node_id in self.children_by_parent_id:
                removed_children[descendant.node_id] = self.children_by_parent_id.pop(descendant.node_id)

        def undo() -> None:
            self.nodes.update(removed_nodes)
            self.children_by_parent_id.update(removed_children)
            if index is not None:
                restored = self.children_by_parent_id.setdefault(parent_id, [])
                restored.insert(min(index, len(restored)), node_id)

        return undo

    def set_label(self, node_id: str, label: str) -> Optional[str]:
        """
        Change a node's label (and the label segment of its sort key), then
        restore sibling order if the change broke it.

        Returns:
            The previous label, or None if the node is unknown
        """
        node = self.nodes.get(node_id)
        if node is None:
            return None
        previous = node.label
        if previous == label:
            return previous

        node.label = label
        if node.sort_key is not None:
            node.sort_key = replace_sort_key_label(node.sort_key, node.kind, label, node.node_id)
        self.reposition(node_id)
        return previous

    def reposition(self, node_id: str) -> bool:
        """
        Resort the parent's children if `node_id` is out of order against a
        neighbour.

        Returns:
            True if a resort happened
        """
        node = self.nodes.get(node_id)
        if node is None:
            return False
        siblings = self.children_by_parent_id.get(node.parent_node_id)
        if not siblings or node_id not in siblings:
            return False
        if is_locally_sorted(siblings, siblings.index(node_id), self.get):
            return False
        self.children_by_parent_id[node.parent_node_id] = resort(siblings, self.get)
        return True

    def relocate(self, node_id: str, new_parent_id: str) -> Undo:
        """
        Move a node under a new parent at its sorted position, updating the
        levels of the moved subtree. No rule checking happens here.
        """
        node = self.nodes[node_id]
        old_parent_id = node.parent_node_id
        old_siblings = self.children_by_parent_id.get(old_parent_id, [])
        old_index = old_siblings.index(node_id) if node_id in old_siblings else None
        if old_index is not None:
            old_siblings.pop(old_index)

        created_list = new_parent_id not in self.children_by_parent_id
        new_siblings = self.children_by_parent_id.setdefault(new_parent_id, [])
        node.parent_node_id = new_parent_id
        new_siblings.insert(insert_index(new_siblings, node, self.get), node_id)
        delta = self.level_of(new_parent_id) + 1 - node.level
        self._shift_levels(node_id, delta)

        def undo() -> None:
            siblings = self.children_by_parent_id.get(new_parent_id, [])
            if node_id in siblings:
                siblings.remove(node_id)
            if created_list and not siblings:
                self.children_by_parent_id.pop(new_parent_id, None)
            node.parent_node_id = old_parent_id
            restored = self.children_by_parent_id.setdefault(old_parent_id, [])
            index = len(restored) if old_index is None else min(old_index, len(restored))
            restored.insert(index, node_id)
            self._shift_levels(node_id, -delta)

        return undo

    def set_children(self, parent_id: str, rows: List[TreeNode]) -> None:
        """
        Replace the loaded children of `parent_id` with backend rows.

        Previously loaded children that are absent from `rows` are dropped
        together with their descendants.
        """
        incoming = {row.node_id for row in rows}
        for stale in list(self.children_by_parent_id.get(parent_id, [])):
            if stale in incoming:
                continue
            node = self.nodes.get(stale)
            if node is not None and node.parent_node_id == parent_id:
                self.remove(stale)

        level = self.level_of(parent_id) + 1
        for row in rows:
            existing = self.nodes.get(row.node_id)
            if existing is not None and existing.parent_node_id != parent_id:
                # a row may arrive before the refresh of the parent it left
                old_siblings = self.children_by_parent_id.get(existing.parent_node_id, [])
                if row.node_id in old_siblings:
                    old_siblings.remove(row.node_id)
            row.parent_node_id = parent_id
            row.level = level
            self.nodes[row.node_id] = row
            if existing is not None and existing.level != level:
                for child_id in self.children_by_parent_id.get(row.node_id, []):
                    self._shift_levels(child_id, level - existing.level)
        self.children_by_parent_id[parent_id] = resort([row.node_id for row in rows], self.get)

    def upsert(self, node: TreeNode) -> None:
        """Insert or replace a node, keeping its parent's children sorted."""
        parent_id = node.parent_node_id or self.root_id
        existing = self.nodes.get(node.node_id)
        if existing is not None and existing.parent_node_id != parent_id:
            self.relocate(node.node_id, parent_id)
            existing = self.nodes[node.node_id]
        if existing is None:
            self.insert_sorted(parent_id, node)
            return
        node.parent_node_id = parent_id
        node.level = self.level_of(parent_id) + 1
        self.nodes[node.node_id] = node
        self.reposition(node.node_id)

    def clear(self) -> None:
        self.nodes = {}
        self.children_by_parent_id = {self.root_id: []}

    def _shift_levels(self, node_id: str, delta: int) -> None:
        if not delta:
            return
        for node in self.iter_subtree(node_id):
            node.level += delta

    def snapshot(self) -> Dict[str, Any]:
        return {
            "root_id": self.root_id,
            "nodes": {node_id: node.model_dump(mode="json") for node_id, node in self.nodes.items()},
            "children_by_parent_id": {pid: list(ids) for pid, ids in self.children_by_parent_id.items()},
        }

    def __len__(self) -> int:
        return len(self.nodes)


def is_container(node: Optional[TreeNode]) -> bool:
    return node is not None and node.kind in (NodeKind.FOLDER, NodeKind.GROUP)
