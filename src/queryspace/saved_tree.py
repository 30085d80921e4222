"""
Tree of saved queries and folders.

Extends the forest with:
- a query id -> node ids index
- rule-checked moves (see constraints.validate_move)
- pending invalidations recorded by renames, for views to refresh
"""
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Set

from loguru import logger

from .constraints import MoveCheck, MoveViolation, validate_move
from .forest import Forest
from .models import NodeKind, SavedTreeData, TreeNode
from .ordering import build_sort_key, resort


class MoveOutcome(NamedTuple):
    check: MoveCheck
    undo: Optional[Callable[[], None]] = None

    @property
    def code(self) -> MoveViolation:
        return self.check.code


class SavedTree(Forest):

    def __init__(self, root_id: str, max_depth: int):
        super().__init__(root_id)
        self.max_depth = max_depth
        self.node_ids_by_query_id: Dict[str, List[str]] = {}
        self.pending_items: Set[str] = set()
        self.pending_parents: Set[str] = set()

    # --- Construction ---

    def make_file_node(self, node_id: str, query_id: str, label: str, ext: Optional[str],
                       parent_id: Optional[str] = None) -> TreeNode:
        return TreeNode(
            node_id=node_id,
            parent_node_id=parent_id or self.root_id,
            kind=NodeKind.FILE,
            label=label,
            sort_key=build_sort_key(NodeKind.FILE, label, node_id),
            mount_id=query_id,
            ext=ext,
        )

    def hydrate(self, data: SavedTreeData) -> None:
        """Replace the whole tree with a backend snapshot."""
        self.clear()
        self.nodes = {nid: node.model_copy() for nid, node in data.nodes.items()}
        self.children_by_parent_id = {pid: list(ids) for pid, ids in data.children_by_parent_id.items()}
        self.children_by_parent_id.setdefault(self.root_id, [])
        for node in self.nodes.values():
            if node.sort_key is None:
                node.sort_key = build_sort_key(node.kind, node.label, node.node_id)
        for parent_id, ids in self.children_by_parent_id.items():
            self.children_by_parent_id[parent_id] = resort(ids, self.get)
            for child_id in ids:
                child = self.nodes.get(child_id)
                if child is not None:
                    child.parent_node_id = parent_id
        for child_id in self.children_by_parent_id[self.root_id]:
            for node in self.iter_subtree(child_id):
                node.level = self.level_of(node.parent_node_id) + 1
        self.node_ids_by_query_id = {qid: list(ids) for qid, ids in data.node_ids_by_query_id.items()}
        for node in self.nodes.values():
            if node.mount_id and node.node_id not in self.node_ids_by_query_id.get(node.mount_id, []):
                self.node_ids_by_query_id.setdefault(node.mount_id, []).append(node.node_id)
        self.pending_items.clear()
        self.pending_parents.clear()

    def set_children(self, parent_id: str, rows: List[TreeNode]) -> None:
        for row in rows:
            if row.sort_key is None:
                row.sort_key = build_sort_key(row.kind, row.label, row.node_id)
        super().set_children(parent_id, rows)
        for row in rows:
            self._index(row)

    def remove(self, node_id: str) -> Callable[[], None]:
        removed = list(self.iter_subtree(node_id))
        undo_remove = super().remove(node_id)
        for node in removed:
            self._unindex(node)

        def undo() -> None:
            undo_remove()
            for node in removed:
                self._index(node)

        return undo

    def upsert(self, node: TreeNode) -> None:
        if node.sort_key is None:
            node.sort_key = build_sort_key(node.kind, node.label, node.node_id)
        previous = self.nodes.get(node.node_id)
        if previous is not None:
            self._unindex(previous)
        super().upsert(node)
        self._index(node)

    # --- Query index ---

    def link(self, query_id: str, node_id: str) -> Callable[[], None]:
        ids = self.node_ids_by_query_id.setdefault(query_id, [])
        if node_id in ids:
            return lambda: None
        ids.append(node_id)

        def undo() -> None:
            linked = self.node_ids_by_query_id.get(query_id, [])
            if node_id in linked:
                linked.remove(node_id)
            if not linked:
                self.node_ids_by_query_id.pop(query_id, None)

        return undo

    def node_for_query(self, query_id: str) -> Optional[TreeNode]:
        for node_id in self.node_ids_by_query_id.get(query_id, []):
            node = self.nodes.get(node_id)
            if node is not None:
                return node
        return None

    def insert_query_node(self, parent_id: str, node: TreeNode) -> Callable[[], None]:
        """Insert a file node at its sorted position and index it by query id."""
        undo_insert = self.insert_sorted(parent_id, node)
        undo_link = self.link(node.mount_id, node.node_id) if node.mount_id else (lambda: None)

        def undo() -> None:
            undo_link()
            undo_insert()

        return undo

    def _index(self, node: TreeNode) -> None:
        if node.mount_id:
            ids = self.node_ids_by_query_id.setdefault(node.mount_id, [])
            if node.node_id not in ids:
                ids.append(node.node_id)

    def _unindex(self, node: TreeNode) -> None:
        if node.mount_id and node.mount_id in self.node_ids_by_query_id:
            ids = self.node_ids_by_query_id[node.mount_id]
            if node.node_id in ids:
                ids.remove(node.node_id)
            if not ids:
                del self.node_ids_by_query_id[node.mount_id]

    # --- Renames ---

    def rename_query(self, query_id: str, label: str) -> Optional[str]:
        """
        Relabel every node of a query, restoring sibling order if needed,
        and record the node and its parent as pending invalidations.

        Returns:
            The previous label, or None if the query has no saved node
        """
        previous = None
        for node_id in list(self.node_ids_by_query_id.get(query_id, [])):
            node = self.nodes.get(node_id)
            if node is None:
                continue
            old = self.set_label(node_id, label)
            if previous is None:
                previous = old
            self.pending_items.add(node_id)
            if node.parent_node_id:
                self.pending_parents.add(node.parent_node_id)
        if previous is None:
            logger.debug(f"SavedTree: no node for query {query_id}, rename skipped")
        return previous

    def clear_invalidations(self, items: Optional[List[str]] = None,
                            parents: Optional[List[str]] = None) -> None:
        """Drop only the given entries from the pending invalidations."""
        self.pending_items.difference_update(items or [])
        self.pending_parents.difference_update(parents or [])

    # --- Moves ---

    def move(self, node_id: str, target_id: str, check_duplicates: bool = True) -> MoveOutcome:
        """
        Move a file node under another folder when the tree rules allow it.

        Returns:
            MoveOutcome with the check result, and an undo callable when the
            move was applied
        """
        check = validate_move(self, node_id, target_id, self.max_depth, check_duplicates)
        if not check.ok:
            logger.info(f"SavedTree: move {node_id} -> {target_id} rejected ({check.code.name})")
            return MoveOutcome(check)
        return MoveOutcome(check, self.relocate(node_id, target_id))

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data["node_ids_by_query_id"] = {qid: list(ids) for qid, ids in self.node_ids_by_query_id.items()}
        data["pending_invalidations"] = {
            "items": sorted(self.pending_items),
            "parents": sorted(self.pending_parents),
        }
        return data
