"""
Sibling ordering for query trees.

Provides:
- collate_label: locale/case independent collation string for a label
- build_sort_key: `<kindRank>|<collatedLabel>|<nodeId>` sort key
- compare: total order over sibling nodes (folders first)
- insert_index: binary-search insertion point for a new child
- resort: full stable resort of a children list

Usage:
    node.sort_key = build_sort_key(node.kind, node.label, node.node_id)
    children.insert(insert_index(children, node, tree.nodes.get), node.node_id)
"""
import re
import unicodedata
from functools import cmp_to_key
from typing import Callable, List, Optional, Tuple

from .models import NodeKind, TreeNode

# Digit runs are prefixed with their length so that "q2" collates before "q10".
DIGIT_LENGTH_WIDTH = 3
SORT_KEY_SEPARATOR = "|"

KIND_RANK = {
    NodeKind.FOLDER: 0,
    NodeKind.GROUP: 0,
    NodeKind.FILE: 1,
}

_DIGIT_RUN = re.compile(r"\d+")
_CHUNKS = re.compile(r"(\d+)")

NodeResolver = Callable[[str], Optional[TreeNode]]


def _fold(text: str) -> str:
    return unicodedata.normalize("NFKC", text).casefold()


def _collate_digits(match: "re.Match[str]") -> str:
    digits = match.group(0).lstrip("0") or "0"
    return f"{len(digits):0{DIGIT_LENGTH_WIDTH}d}{digits}"


def collate_label(label: str) -> str:
    """Collation string for a label: case folded, digit runs length prefixed."""
    folded = _fold(label).replace(SORT_KEY_SEPARATOR, " ")
    return _DIGIT_RUN.sub(_collate_digits, folded)


def build_sort_key(kind: NodeKind, label: str, node_id: str) -> str:
    return SORT_KEY_SEPARATOR.join((str(KIND_RANK[kind]), collate_label(label), node_id))


def replace_sort_key_label(sort_key: Optional[str], kind: NodeKind, label: str, node_id: str) -> str:
    """Swap the collated label segment of an existing sort key."""
    if not sort_key:
        return build_sort_key(kind, label, node_id)
    parts = sort_key.split(SORT_KEY_SEPARATOR)
    if len(parts) < 3:
        return build_sort_key(kind, label, node_id)
    # node ids may not contain the separator, labels are collated without it
    return SORT_KEY_SEPARATOR.join([parts[0], collate_label(label), *parts[2:]])


def natural_key(label: str) -> Tuple[Tuple[int, int, str], ...]:
    """Numeric aware, case independent key used when sort keys are absent."""
    chunks = []
    for chunk in _CHUNKS.split(_fold(label)):
        if not chunk:
            continue
        if chunk.isdigit():
            chunks.append((0, int(chunk), chunk))
        else:
            chunks.append((1, 0, chunk))
    return tuple(chunks)


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare(a: TreeNode, b: TreeNode) -> int:
    """
    Total order over siblings.

    Folders (and groups) come before files. Within a kind the precomputed
    sort keys are compared when both nodes carry one, otherwise labels are
    compared numerically and case independently. Ties fall back to node id.
    """
    rank = _cmp(KIND_RANK[a.kind], KIND_RANK[b.kind])
    if rank:
        return rank

    if a.sort_key and b.sort_key:
        result = _cmp(a.sort_key, b.sort_key)
    else:
        result = _cmp(natural_key(a.label), natural_key(b.label))
    if result:
        return result
    return _cmp(a.node_id, b.node_id)


def insert_index(children: List[str], node: TreeNode, resolve: NodeResolver) -> int:
    """
    Lowest index `i` such that `compare(node, children[i]) <= 0`.

    Children that cannot be resolved are treated as sorting after `node`.
    """
    lo, hi = 0, len(children)
    while lo < hi:
        mid = (lo + hi) // 2
        sibling = resolve(children[mid])
        if sibling is None or compare(node, sibling) <= 0:
            hi = mid
        else:
            lo = mid + 1
    return lo


def resort(children: List[str], resolve: NodeResolver) -> List[str]:
    """Return `children` sorted by `compare`; unresolved ids keep their relative order at the end."""
    known = [cid for cid in children if resolve(cid) is not None]
    unknown = [cid for cid in children if resolve(cid) is None]
    known.sort(key=cmp_to_key(lambda x, y: compare(resolve(x), resolve(y))))
    return known + unknown


def is_sorted(children: List[str], resolve: NodeResolver) -> bool:
    for left, right in zip(children, children[1:]):
        a, b = resolve(left), resolve(right)
        if a is not None and b is not None and compare(a, b) > 0:
            return False
    return True


def is_locally_sorted(children: List[str], index: int, resolve: NodeResolver) -> bool:
    """True when the child at `index` is ordered against both neighbours."""
    node = resolve(children[index])
    if node is None:
        return True
    if index > 0:
        prev = resolve(children[index - 1])
        if prev is not None and compare(prev, node) > 0:
            return False
    if index + 1 < len(children):
        nxt = resolve(children[index + 1])
        if nxt is not None and compare(node, nxt) > 0:
            return False
    return True
