"""
Structural rules for the saved query tree.

Provides:
- MoveViolation: result codes for a proposed move
- validate_move: check a file move against the tree rules
- is_duplicate_name_in_parent: tri-state duplicate check
- can_create_folder: folder depth rule
"""
from enum import IntEnum
from typing import NamedTuple, Optional

from .forest import Forest
from .models import NodeKind

DEFAULT_EXT = "sql"


class MoveViolation(IntEnum):
    """Outcome of a proposed move. Only OK permits the move."""
    OK = 0
    MISSING_NODE = 1
    MISSING_TARGET = 2
    DRAG_NOT_FILE = 3
    TARGET_NOT_FOLDER = 4
    SAME_PARENT = 5
    DUPLICATE_NAME = 6
    MAX_DEPTH = 10


class MoveCheck(NamedTuple):
    code: MoveViolation
    # False when the duplicate check could not run because the target's
    # children were never loaded; callers may re-validate after loading them.
    duplicate_known: bool = True

    @property
    def ok(self) -> bool:
        return self.code == MoveViolation.OK


def normalize_label(label: str) -> str:
    return label.strip().lower()


def normalize_ext(ext: Optional[str]) -> str:
    return (ext or DEFAULT_EXT).strip().lower()


def file_key(label: str, ext: Optional[str]) -> str:
    return f"{normalize_label(label)}.{normalize_ext(ext)}"


def is_duplicate_name_in_parent(tree: Forest, parent_id: str, label: str,
                                ext: Optional[str] = None, kind: NodeKind = NodeKind.FILE,
                                exclude_node_id: Optional[str] = None) -> Optional[bool]:
    """
    Whether `parent_id` already has a child of `kind` with the same
    normalized name.

    Files compare on label plus extension, folders on label alone.

    Returns:
        True/False, or None when the parent's children are not loaded
    """
    children = tree.children_of(parent_id)
    if children is None:
        return None

    wanted = file_key(label, ext) if kind == NodeKind.FILE else normalize_label(label)
    for child_id in children:
        if child_id == exclude_node_id:
            continue
        child = tree.get(child_id)
        if child is None or child.kind != kind:
            continue
        key = file_key(child.label, child.ext) if kind == NodeKind.FILE else normalize_label(child.label)
        if key == wanted:
            return True
    return False


def validate_move(tree: Forest, node_id: str, target_id: str, max_depth: int,
                  check_duplicates: bool = True) -> MoveCheck:
    """
    Check whether moving `node_id` under `target_id` is allowed.

    Checks run in order and the first failure wins: node exists, target
    exists (the root always does), node is a file, target is a folder,
    target differs from the current parent, the move respects the depth
    limit, and finally no sibling shares the normalized name.
    """
    node = tree.get(node_id)
    if node is None:
        return MoveCheck(MoveViolation.MISSING_NODE)

    target = tree.get(target_id)
    target_is_root = tree.is_root(target_id)
    if target is None and not target_is_root:
        return MoveCheck(MoveViolation.MISSING_TARGET)

    if node.kind != NodeKind.FILE:
        return MoveCheck(MoveViolation.DRAG_NOT_FILE)

    if not target_is_root and target.kind != NodeKind.FOLDER:
        return MoveCheck(MoveViolation.TARGET_NOT_FOLDER)

    if node.parent_node_id == target_id:
        return MoveCheck(MoveViolation.SAME_PARENT)

    target_level = tree.level_of(target_id)
    if target_level + tree.subtree_height(node_id) > max_depth:
        return MoveCheck(MoveViolation.MAX_DEPTH)

    if not check_duplicates:
        return MoveCheck(MoveViolation.OK, duplicate_known=False)

    duplicate = is_duplicate_name_in_parent(tree, target_id, node.label, node.ext,
                                            exclude_node_id=node_id)
    if duplicate:
        return MoveCheck(MoveViolation.DUPLICATE_NAME)
    return MoveCheck(MoveViolation.OK, duplicate_known=duplicate is not None)


def can_create_folder(tree: Forest, parent_id: str, max_depth: int) -> bool:
    """A folder may be created only while its level stays below `max_depth`."""
    if not tree.is_root(parent_id):
        parent = tree.get(parent_id)
        if parent is None or parent.kind != NodeKind.FOLDER:
            return False
    return tree.level_of(parent_id) + 1 < max_depth
