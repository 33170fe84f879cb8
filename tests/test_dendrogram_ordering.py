from semsplit.dendrogram.ordering import leaf_order
from semsplit.domain import MergeEvent


def _tree():
    # ((3, 0), (4, 1)) then leaf 2 last.
    return [
        MergeEvent(left=3, right=0, distance=0.1),
        MergeEvent(left=4, right=1, distance=0.2),
        MergeEvent(left=5, right=6, distance=0.5),
        MergeEvent(left=7, right=2, distance=0.9),
    ]


def test_order_is_a_permutation():
    order = leaf_order(_tree(), 5)
    assert sorted(order) == list(range(5))


def test_order_is_deterministic():
    assert leaf_order(_tree(), 5) == leaf_order(_tree(), 5)


def test_earlier_merges_are_adjacent():
    order = leaf_order(_tree(), 5)
    assert order == [3, 0, 4, 1, 2]


def test_every_cluster_is_contiguous():
    merges = _tree()
    order = leaf_order(merges, 5)
    position = {leaf: i for i, leaf in enumerate(order)}
    for cluster in ({3, 0}, {4, 1}, {3, 0, 4, 1}):
        rows = sorted(position[leaf] for leaf in cluster)
        assert rows == list(range(rows[0], rows[0] + len(rows)))


def test_forest_concatenates_top_level_clusters_by_lowest_leaf():
    merges = [
        MergeEvent(left=4, right=2, distance=0.1),
        MergeEvent(left=3, right=1, distance=0.2),
    ]
    assert leaf_order(merges, 5) == [0, 3, 1, 4, 2]


def test_no_merges_keeps_index_order():
    assert leaf_order([], 4) == [0, 1, 2, 3]
    assert leaf_order([], 0) == []
