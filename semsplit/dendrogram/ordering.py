"""
Leaf ordering for the dendrogram screen.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from ..domain import MergeEvent
from .clusters import merge_endpoints


def leaf_order(merges: Sequence[MergeEvent], num_leaves: int) -> List[int]:
    """
    Return a permutation of range(num_leaves) in which every cluster of
    the tree occupies a contiguous run.

    Each merge appends the right side's members after the left side's,
    in encounter order, independently of any threshold. When the tree
    is a forest, the top-level clusters are emitted in order of their
    lowest leaf index.
    """

    parent = list(range(num_leaves))
    members: Dict[int, List[int]] = {i: [i] for i in range(num_leaves)}

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for a, b in merge_endpoints(merges, num_leaves):
        root_a = find(a)
        root_b = find(b)
        if root_a == root_b:
            continue
        parent[root_a] = root_b
        members[root_b] = members[root_a] + members.pop(root_b)
        del members[root_a]

    order: List[int] = []
    emitted = set()
    for leaf in range(num_leaves):
        root = find(leaf)
        if root in emitted:
            continue
        emitted.add(root)
        order.extend(members[root])
    return order
