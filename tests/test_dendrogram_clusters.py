from semsplit.dendrogram.clusters import count_clusters, merge_endpoints
from semsplit.domain import MergeEvent


def _chain(distances):
    """
    Leaves 0..n-1 merged one after another; merge i joins the cluster
    built so far with leaf i + 1.
    """

    n = len(distances) + 1
    merges = []
    for i, distance in enumerate(distances):
        left = 0 if i == 0 else n + i - 1
        merges.append(MergeEvent(left=left, right=i + 1, distance=distance))
    return merges, n


def _naive_count(merges, n, threshold):
    groups = [{i} for i in range(n)]
    for (a, b), merge in zip(merge_endpoints(merges, n), merges):
        if merge.distance > threshold:
            continue
        ga = next(g for g in groups if a in g)
        gb = next(g for g in groups if b in g)
        if ga is not gb:
            groups.remove(gb)
            ga.update(gb)
    return len(groups)


def test_fully_merged_at_max_distance():
    merges, n = _chain([0.1, 0.3, 0.7, 1.0])
    assert count_clusters(merges, n, 1.0) == 1


def test_all_singletons_at_zero_threshold():
    merges, n = _chain([0.1, 0.3, 0.7, 1.0])
    assert count_clusters(merges, n, 0.0) == n


def test_count_is_non_increasing_in_threshold():
    merges, n = _chain([0.05, 0.2, 0.2, 0.45, 0.8, 0.95])
    counts = [count_clusters(merges, n, t / 20) for t in range(0, 21)]
    assert counts == sorted(counts, reverse=True)
    assert counts[0] == n
    assert counts[-1] == 1


def test_leaf_to_leaf_merges():
    merges = [
        MergeEvent(left=0, right=1, distance=0.1),
        MergeEvent(left=2, right=3, distance=0.2),
        MergeEvent(left=1, right=3, distance=0.9),
    ]
    assert count_clusters(merges, 4, 0.15) == 3
    assert count_clusters(merges, 4, 0.5) == 2
    assert count_clusters(merges, 4, 0.9) == 1


def test_forest_never_reaches_one_cluster():
    merges = [MergeEvent(left=0, right=1, distance=0.1)]
    assert count_clusters(merges, 3, 10.0) == 2


def test_unsorted_merges_still_counted():
    merges = [
        MergeEvent(left=2, right=3, distance=0.8),
        MergeEvent(left=0, right=1, distance=0.1),
    ]
    assert count_clusters(merges, 4, 0.5) == 3


def test_no_leaves():
    assert count_clusters([], 0, 1.0) == 0


def test_three_file_scenario_matches_independent_union():
    # Two chunks per file, six leaves in total.
    merges = [
        MergeEvent(left=0, right=1, distance=0.1),
        MergeEvent(left=2, right=3, distance=0.15),
        MergeEvent(left=4, right=5, distance=0.3),
        MergeEvent(left=6, right=7, distance=0.45),
        MergeEvent(left=9, right=8, distance=1.0),
    ]
    threshold = 0.4
    assert count_clusters(merges, 6, threshold) == _naive_count(merges, 6, threshold)
    assert count_clusters(merges, 6, threshold) == 3


def test_merge_endpoints_resolve_cluster_references():
    merges, n = _chain([0.1, 0.2])
    assert merge_endpoints(merges, n) == [(0, 1), (0, 2)]


def test_merge_endpoints_rejects_forward_reference():
    merges = [MergeEvent(left=0, right=5, distance=0.1)]
    try:
        merge_endpoints(merges, 3)
    except ValueError as exc:
        assert "unknown cluster" in str(exc)
    else:
        raise AssertionError("expected ValueError to be raised")
