import pytest

from src.queryspace.models import NodeKind, TreeNode
from src.queryspace.ordering import (
    build_sort_key, collate_label, compare, insert_index, is_sorted, replace_sort_key_label, resort,
)


def _nodes(*nodes):
    by_id = {n.node_id: n for n in nodes}
    return by_id, by_id.get


def test_collate_label_is_case_independent_and_numeric():
    assert collate_label("Report") == collate_label("report")
    assert collate_label("q2") < collate_label("q10")
    assert collate_label("q007") == collate_label("q7")


def test_collate_label_orders_long_digit_runs():
    assert collate_label("a9999999999") < collate_label("a10000000000")
    assert collate_label("a0") < collate_label("a1")
    labels = ["r123456789012345", "r99", "r1000000000000", "r2"]
    assert sorted(labels, key=collate_label) == ["r2", "r99", "r1000000000000", "r123456789012345"]


def test_sort_key_layout():
    key = build_sort_key(NodeKind.FILE, "Sales Q2", "n-1")
    rank, label, node_id = key.split("|")
    assert rank == "1"
    assert node_id == "n-1"
    assert label.startswith("sales q")


def test_replace_sort_key_label_keeps_rank_and_id():
    key = build_sort_key(NodeKind.FOLDER, "Alpha", "f-1")
    replaced = replace_sort_key_label(key, NodeKind.FOLDER, "Beta", "f-1")
    assert replaced == build_sort_key(NodeKind.FOLDER, "Beta", "f-1")


def test_folders_sort_before_files(make_file, make_folder):
    folder = make_folder("f", "zzz")
    file = make_file("a", "aaa")
    assert compare(folder, file) < 0
    assert compare(file, folder) > 0


def test_compare_falls_back_to_label_then_id():
    a = TreeNode(node_id="1", kind=NodeKind.FILE, label="item 2")
    b = TreeNode(node_id="2", kind=NodeKind.FILE, label="Item 10")
    assert compare(a, b) < 0

    c = TreeNode(node_id="x", kind=NodeKind.FILE, label="same")
    d = TreeNode(node_id="y", kind=NodeKind.FILE, label="same")
    assert compare(c, d) < 0


def test_insert_index_lowest_position(make_file):
    by_id, resolve = _nodes(make_file("a", "alpha"), make_file("c", "charlie"), make_file("e", "echo"))
    children = ["a", "c", "e"]
    assert insert_index(children, make_file("b", "bravo"), resolve) == 1
    assert insert_index(children, make_file("0", "aardvark"), resolve) == 0
    assert insert_index(children, make_file("z", "zulu"), resolve) == 3
    assert insert_index([], make_file("z", "zulu"), resolve) == 0


def test_resort_orders_by_compare(make_file, make_folder):
    by_id, resolve = _nodes(
        make_file("q10", "Query 10"),
        make_file("q2", "Query 2"),
        make_folder("f", "Reports"),
    )
    ordered = resort(["q10", "q2", "f"], resolve)
    assert ordered == ["f", "q2", "q10"]
    assert is_sorted(ordered, resolve)
    assert not is_sorted(["q10", "q2", "f"], resolve)


@pytest.mark.parametrize("labels", [
    ["b", "a", "c"],
    ["Query 3", "query 1", "QUERY 2"],
    ["x10", "x9", "x100", "x1"],
])
def test_sequential_inserts_stay_sorted(make_file, labels):
    by_id = {}
    children = []
    for i, label in enumerate(labels):
        node = make_file(f"n{i}", label)
        children.insert(insert_index(children, node, by_id.get), node.node_id)
        by_id[node.node_id] = node
    assert is_sorted(children, by_id.get)
