"""
Unit tests for the clustering engine.

Tests ClusteringEngine.run including:
- Empty and degenerate inputs
- Known partitions, naming and merging
- Parameter errors
- Determinism and permutation invariance
"""

import pytest

from category_grouper.config.settings_loader import Settings
from category_grouper.core.clustering_engine import ClusteringEngine
from category_grouper.utils.error_handling import (
    DimensionMismatchError,
    InvalidParameterError,
)


@pytest.mark.unit
class TestClusteringEngine:
    """Test suite for ClusteringEngine."""

    def test_empty_input(self):
        result = ClusteringEngine(min_cluster_size=3).run([])

        assert result.is_empty
        assert result.clusters == []
        assert result.merged_clusters == []
        assert result.total_items == 0

    def test_known_partition_named_and_merged(self, two_pair_items):
        result = ClusteringEngine().run(two_pair_items, min_cluster_size=2)

        assert len(result.clusters) == 1
        record = result.clusters[0]
        assert record.group_id == 1
        assert record.group_name == "Medical / Healthcare"
        assert record.members_id == ["1", "2"]
        assert record.members_name == ["Hospital Nurse", "Clinic Aide"]
        assert result.outlier_count == 2
        assert result.clustered_items == 2
        assert result.merged_clusters == result.clusters

    def test_singletons_merge_by_name(self, two_pair_items):
        result = ClusteringEngine(min_cluster_size=1).run(two_pair_items)

        assert [(r.group_id, r.group_name) for r in result.clusters] == [
            (1, "Medical / Healthcare"),
            (2, "Medical / Healthcare"),
            (3, "Finance / Payroll"),
            (4, "Finance / Payroll"),
        ]
        assert [(r.group_id, r.group_name, r.members_id) for r in result.merged_clusters] == [
            (1, "Medical / Healthcare", ["1", "2"]),
            (2, "Finance / Payroll", ["3", "4"]),
        ]
        assert result.outlier_count == 0

    def test_min_size_equal_to_item_count(self, item_factory):
        items = item_factory([[0.0], [1.0], [2.0]])
        result = ClusteringEngine().run(items, min_cluster_size=3)

        assert len(result.clusters) == 1
        assert result.clusters[0].members_id == ["1", "2", "3"]

    def test_min_size_above_item_count(self, two_pair_items):
        result = ClusteringEngine().run(two_pair_items, min_cluster_size=5)

        assert result.is_empty
        assert result.merged_clusters == []
        assert result.outlier_count == 4

    @pytest.mark.parametrize("value", [0, -1])
    def test_invalid_min_cluster_size(self, value, two_pair_items):
        with pytest.raises(InvalidParameterError):
            ClusteringEngine().run(two_pair_items, min_cluster_size=value)

    def test_invalid_min_cluster_size_on_empty_input(self):
        with pytest.raises(InvalidParameterError):
            ClusteringEngine().run([], min_cluster_size=0)

    def test_invalid_engine_default(self):
        with pytest.raises(InvalidParameterError):
            ClusteringEngine(min_cluster_size=0)

    def test_invalid_tie_break(self, two_pair_items):
        with pytest.raises(InvalidParameterError):
            ClusteringEngine().run(two_pair_items, min_cluster_size=2, tie_break="shuffle")

    def test_dimension_mismatch(self, item_factory):
        items = item_factory([[0.0, 1.0], [1.0, 2.0], [3.0]])
        with pytest.raises(DimensionMismatchError):
            ClusteringEngine().run(items, min_cluster_size=2)

    def test_two_blobs_respect_size_bounds(self, two_blob_items):
        result = ClusteringEngine().run(two_blob_items, min_cluster_size=3)

        sizes = [len(record.members_id) for record in result.clusters]
        assert all(3 <= size <= 4 for size in sizes)
        assert sum(sizes) + result.outlier_count == 12
        assert sorted(r.group_id for r in result.clusters) == list(range(1, len(sizes) + 1))
        assert sizes == sorted(sizes, reverse=True)

        member_ids = [member for record in result.clusters for member in record.members_id]
        assert len(member_ids) == len(set(member_ids))

    def test_merged_records_are_renumbered(self, two_blob_items):
        result = ClusteringEngine().run(two_blob_items, min_cluster_size=3)

        assert [r.group_id for r in result.merged_clusters] == list(range(1, len(result.merged_clusters) + 1))
        merged_members = sorted(m for r in result.merged_clusters for m in r.members_id)
        clustered_members = sorted(m for r in result.clusters for m in r.members_id)
        assert merged_members == clustered_members

    def test_deterministic(self, two_blob_items):
        engine = ClusteringEngine(min_cluster_size=3)
        first = engine.run(two_blob_items)
        second = engine.run(two_blob_items)

        assert first.clusters == second.clusters
        assert first.merged_clusters == second.merged_clusters

    def test_item_id_tie_break_is_permutation_invariant(self, lattice_items):
        engine = ClusteringEngine(min_cluster_size=3, tie_break="item_id")

        forward = engine.run(lattice_items)
        backward = engine.run(list(reversed(lattice_items)))

        def groups(result):
            return {frozenset(record.members_id) for record in result.clusters}

        assert groups(forward) == groups(backward)
        assert forward.outlier_count == backward.outlier_count

    def test_large_input_warning_does_not_fail(self, two_pair_items):
        engine = ClusteringEngine(min_cluster_size=2, max_items_warning=2)
        assert len(engine.run(two_pair_items).clusters) == 1

    def test_quality_metrics_reported(self, two_blob_items):
        result = ClusteringEngine(min_cluster_size=3).run(two_blob_items)

        assert "noise_ratio" in result.quality_metrics
        assert result.processing_time_ms >= 0.0


@pytest.mark.unit
class TestEngineFromSettings:
    """Test suite for building the engine from Settings."""

    def test_defaults(self):
        engine = ClusteringEngine.from_settings(Settings())

        assert engine.min_cluster_size == 5
        assert engine.tie_break == "input_order"

    def test_custom_category_table(self, two_pair_items):
        settings = Settings(clustering={
            "min_cluster_size": 2,
            "categories": [{"key": "care", "keywords": ["nurse"]}],
        })
        result = ClusteringEngine.from_settings(settings).run(two_pair_items)

        assert result.clusters[0].group_name == "Care"
