"""
Unit tests for flat cluster extraction.

Tests extract_clusters including:
- Heaviest-first, size-gated merging
- Noise handling
- Cluster id assignment
"""

import numpy as np
import pytest

from category_grouper.core.distance import build_distance_matrix, compute_core_distances
from category_grouper.core.extraction import RawCluster, extract_clusters
from category_grouper.core.spanning_tree import Edge, build_mutual_reachability_mst


def chain(weights):
    """Path 0-1-2-...-n with the given edge weights."""
    return [Edge(i, i + 1, float(w)) for i, w in enumerate(weights)]


@pytest.mark.unit
class TestExtractClusters:
    """Test suite for extract_clusters."""

    def test_descending_chain_splits_into_two(self):
        clusters = extract_clusters(chain([5, 4, 3, 2, 1]), 6, 3)

        assert clusters == [
            RawCluster(id=0, indices=(0, 1, 2)),
            RawCluster(id=1, indices=(3, 4, 5)),
        ]

    def test_ascending_chain_leaves_noise(self):
        clusters = extract_clusters(chain([1, 2, 3, 4]), 5, 3)

        assert clusters == [RawCluster(id=0, indices=(2, 3, 4))]

    def test_equal_weights_keep_tree_order(self):
        mst = [Edge(0, 1, 1.0), Edge(2, 3, 1.0), Edge(1, 2, 1.0)]
        clusters = extract_clusters(mst, 4, 2)

        assert [cluster.indices for cluster in clusters] == [(0, 1), (2, 3)]

    def test_component_size_is_bounded(self):
        np.random.seed(5)
        positions = np.random.randn(60, 3)
        distances = build_distance_matrix(positions)
        mst = build_mutual_reachability_mst(distances, compute_core_distances(distances, 4))

        clusters = extract_clusters(mst, 60, 4)

        for cluster in clusters:
            assert 4 <= cluster.size <= 2 * (4 - 1)

    def test_clusters_are_disjoint_and_sorted(self):
        np.random.seed(9)
        positions = np.random.randn(40, 2)
        distances = build_distance_matrix(positions)
        mst = build_mutual_reachability_mst(distances, compute_core_distances(distances, 3))

        clusters = extract_clusters(mst, 40, 3)
        seen = set()
        for expected_id, cluster in enumerate(clusters):
            assert cluster.id == expected_id
            assert list(cluster.indices) == sorted(cluster.indices)
            assert seen.isdisjoint(cluster.indices)
            seen.update(cluster.indices)

    def test_ids_follow_target_side_root(self):
        # (0, 3) keeps root 3, (1, 2) keeps root 2
        clusters = extract_clusters([Edge(0, 3, 2.0), Edge(1, 2, 1.0)], 4, 2)

        assert clusters == [
            RawCluster(id=0, indices=(1, 2)),
            RawCluster(id=1, indices=(0, 3)),
        ]

    def test_ids_ignore_smallest_member_index(self):
        # {0, 4, 5} ends on root 5, {1, 2, 3} ends on root 3
        mst = [
            Edge(0, 5, 5.0),
            Edge(4, 5, 4.0),
            Edge(1, 2, 3.0),
            Edge(2, 3, 2.0),
            Edge(3, 4, 1.0),
        ]
        clusters = extract_clusters(mst, 6, 3)

        assert clusters == [
            RawCluster(id=0, indices=(1, 2, 3)),
            RawCluster(id=1, indices=(0, 4, 5)),
        ]

    def test_min_size_one_keeps_every_singleton(self):
        clusters = extract_clusters(chain([3, 2, 1]), 4, 1)

        assert [cluster.indices for cluster in clusters] == [(0,), (1,), (2,), (3,)]

    def test_min_size_above_item_count(self):
        assert extract_clusters(chain([1, 1]), 3, 4) == []

    def test_no_items(self):
        assert extract_clusters([], 0, 3) == []

    def test_single_item_below_minimum(self):
        assert extract_clusters([], 1, 2) == []
