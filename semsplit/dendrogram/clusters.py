"""
Cluster counting over a merge tree.

A merge may reference a leaf directly or a cluster formed by an
earlier merge (numbered num_leaves + merge_index). Both consumers in
this package reduce references to a representative leaf first, then
run their own union-find over leaves only.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from ..domain import MergeEvent


def merge_endpoints(merges: Sequence[MergeEvent], num_leaves: int) -> List[Tuple[int, int]]:
    """
    Return, for every merge, a representative leaf of each side.
    """

    endpoints: List[Tuple[int, int]] = []

    def leaf_of(ref: int) -> int:
        if 0 <= ref < num_leaves:
            return ref
        formed = ref - num_leaves
        if 0 <= formed < len(endpoints):
            return endpoints[formed][0]
        raise ValueError(f"merge references unknown cluster {ref}")

    for merge in merges:
        endpoints.append((leaf_of(merge.left), leaf_of(merge.right)))
    return endpoints


def _find(parent: List[int], i: int) -> int:
    while parent[i] != i:
        parent[i] = parent[parent[i]]
        i = parent[i]
    return i


def count_clusters(merges: Sequence[MergeEvent], num_leaves: int, threshold: float) -> int:
    """
    Number of distinct clusters once every merge with
    distance <= threshold has been applied.

    Merges above the threshold are skipped rather than ending the scan,
    so the result does not depend on the merges being sorted.
    """

    if num_leaves <= 0:
        return 0

    parent = list(range(num_leaves))
    components = num_leaves
    for merge, (a, b) in zip(merges, merge_endpoints(merges, num_leaves)):
        if merge.distance > threshold:
            continue
        root_a = _find(parent, a)
        root_b = _find(parent, b)
        if root_a != root_b:
            parent[root_a] = root_b
            components -= 1
    return components
