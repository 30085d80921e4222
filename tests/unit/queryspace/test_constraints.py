import pytest

from src.queryspace.constraints import (
    MoveViolation, can_create_folder, is_duplicate_name_in_parent, validate_move,
)
from src.queryspace.saved_tree import SavedTree


@pytest.fixture
def tree(make_file, make_folder):
    t = SavedTree("queries", max_depth=4)
    t.insert_sorted("queries", make_folder("f1", "Reports"))
    t.insert_sorted("queries", make_folder("f2", "Archive"))
    t.insert_sorted("queries", make_file("q1", "Sales", query_id="Q1"))
    t.insert_sorted("f1", make_file("q2", "Revenue", parent="f1", query_id="Q2"))
    return t


def test_move_ok(tree):
    check = validate_move(tree, "q1", "f1", max_depth=4)
    assert check.code == MoveViolation.OK
    assert check.duplicate_known


def test_root_is_valid_target(tree):
    assert validate_move(tree, "q2", "queries", max_depth=4).code == MoveViolation.OK


@pytest.mark.parametrize("node_id,target_id,expected", [
    ("missing", "f1", MoveViolation.MISSING_NODE),
    ("q1", "missing", MoveViolation.MISSING_TARGET),
    ("f2", "f1", MoveViolation.DRAG_NOT_FILE),
    ("q1", "q2", MoveViolation.TARGET_NOT_FOLDER),
    ("q1", "queries", MoveViolation.SAME_PARENT),
])
def test_move_violations(tree, node_id, target_id, expected):
    assert validate_move(tree, node_id, target_id, max_depth=4).code == expected


def test_duplicate_name_is_normalized(tree, make_file):
    tree.insert_sorted("f2", make_file("q3", "  SALES ", parent="f2"))
    assert validate_move(tree, "q1", "f2", max_depth=4).code == MoveViolation.DUPLICATE_NAME


def test_duplicate_requires_same_extension(tree, make_file):
    tree.insert_sorted("f2", make_file("q3", "Sales", parent="f2", ext="txt"))
    assert validate_move(tree, "q1", "f2", max_depth=4).code == MoveViolation.OK


def test_duplicate_unknown_when_children_not_loaded(tree, make_folder):
    tree.nodes["f9"] = make_folder("f9", "Unloaded")
    tree.nodes["f9"].level = 1
    assert is_duplicate_name_in_parent(tree, "f9", "Sales") is None
    check = validate_move(tree, "q1", "f9", max_depth=4)
    assert check.code == MoveViolation.OK
    assert not check.duplicate_known


def test_duplicate_check_excludes_dragged_node(tree):
    assert is_duplicate_name_in_parent(tree, "queries", "Sales", exclude_node_id="q1") is False
    assert is_duplicate_name_in_parent(tree, "queries", "sales") is True


def test_max_depth(make_file, make_folder):
    t = SavedTree("queries", max_depth=2)
    t.insert_sorted("queries", make_folder("a", "A"))
    t.insert_sorted("a", make_folder("b", "B", parent="a"))
    t.insert_sorted("queries", make_file("q", "Q"))
    assert t.get("b").level == 2
    assert validate_move(t, "q", "b", max_depth=2).code == MoveViolation.MAX_DEPTH
    assert validate_move(t, "q", "a", max_depth=2).code == MoveViolation.OK


def test_can_create_folder(tree):
    assert can_create_folder(tree, "queries", max_depth=4)
    assert can_create_folder(tree, "f1", max_depth=4)
    assert not can_create_folder(tree, "f1", max_depth=2)
    assert not can_create_folder(tree, "q1", max_depth=4)
    assert not can_create_folder(tree, "missing", max_depth=4)
