"""
Tree of never-saved queries.

File nodes are keyed by the id of the tab that owns the query and grouped
under one synthetic group node per tab group.
"""
import re
from typing import Callable, Optional, Set

from loguru import logger

from .forest import Forest
from .models import NodeKind, TreeNode


def untitled_number(label: str, base: str) -> Optional[int]:
    """
    Number encoded in an untitled name: 1 for `base` itself, N for
    `base N` (one space, ASCII digits, N >= 2), otherwise None.
    """
    if label == base:
        return 1
    match = re.fullmatch(rf"{re.escape(base)} ([0-9]+)", label)
    if match is None:
        return None
    n = int(match.group(1))
    return n if n > 1 else None


class UnsavedTree(Forest):

    def add_from_fetch(self, node: TreeNode) -> Callable[[], None]:
        """
        Insert a file node returned by the backend, synthesizing its group
        node under the root when it is not present yet.
        """
        undos = []
        group_id = node.parent_node_id
        if not group_id or self.is_root(group_id):
            group_id = self.group_node_id(node.group_id or 0)

        if group_id not in self.nodes:
            group = TreeNode(
                node_id=group_id,
                kind=NodeKind.GROUP,
                label=f"Group {node.group_id or 0}",
                group_id=node.group_id or 0,
            )
            undos.append(self.insert_sorted(self.root_id, group))

        node = node.model_copy()
        node.kind = NodeKind.FILE
        undos.append(self.insert_sorted(group_id, node))
        logger.debug(f"UnsavedTree: added {node.node_id} under {group_id}")

        def undo() -> None:
            for step in reversed(undos):
                step()

        return undo

    def group_node_id(self, group_id: int) -> str:
        return f"{self.root_id}:group-{group_id}"

    def remove_by_tab_id(self, tab_id: str) -> Callable[[], None]:
        node = self.nodes.get(tab_id)
        if node is None or node.kind != NodeKind.FILE:
            return lambda: None
        return self.remove(tab_id)

    def remove_by_mount_id(self, mount_id: str) -> Callable[[], None]:
        node = self.find_by_mount_id(mount_id)
        if node is None:
            return lambda: None
        return self.remove(node.node_id)

    def has_tab(self, tab_id: Optional[str]) -> bool:
        node = self.get(tab_id)
        return node is not None and node.kind == NodeKind.FILE

    def next_untitled_name(self, base: str = "Untitled") -> str:
        """Smallest unused name of the form `base`, `base 2`, `base 3`, ..."""
        taken: Set[int] = set()
        for node in self.nodes.values():
            if node.kind != NodeKind.FILE:
                continue
            n = untitled_number(node.label, base)
            if n is not None:
                taken.add(n)

        n = 1
        while n in taken:
            n += 1
        return base if n == 1 else f"{base} {n}"
