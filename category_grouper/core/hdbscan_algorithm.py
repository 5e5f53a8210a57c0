"""
HDBSCAN-style Density Clustering.

Built from primitives instead of the hdbscan library:
- exact pairwise Euclidean distances
- core distance (k-th nearest neighbour) as a density estimate
- minimum spanning tree over mutual reachability distances
- single flat, size-gated extraction (no condensed tree, no stability)

Good for:
- Grouping items without knowing the number of groups
- Leaving isolated items out as noise
Not suited for more than a few tens of thousands of items (O(n^2) memory).
"""

import logging
from typing import Any, Dict, Optional, Sequence

import numpy as np

from category_grouper.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringConfig,
    ClusteringResult,
)
from category_grouper.core.distance import (
    as_embedding_matrix,
    build_distance_matrix,
    compute_core_distances,
)
from category_grouper.core.extraction import extract_clusters
from category_grouper.core.spanning_tree import build_mutual_reachability_mst
from category_grouper.utils.error_handling import InvalidParameterError

logger = logging.getLogger(__name__)

TIE_BREAK_MODES = ("input_order", "item_id")


def validate_min_cluster_size(min_cluster_size: Any) -> int:
    """
    Check the minimum cluster size parameter.

    Raises:
        InvalidParameterError: If not an integer >= 1
    """
    if isinstance(min_cluster_size, bool) or not isinstance(min_cluster_size, (int, np.integer)):
        raise InvalidParameterError(
            f"min_cluster_size must be an integer, got {type(min_cluster_size).__name__}",
            details={"min_cluster_size": repr(min_cluster_size)},
        )
    if min_cluster_size < 1:
        raise InvalidParameterError(
            f"min_cluster_size must be >= 1, got {min_cluster_size}",
            details={"min_cluster_size": int(min_cluster_size)},
        )
    return int(min_cluster_size)


def rank_by_item_id(item_ids: Sequence[str]) -> np.ndarray:
    """
    Rank of each item in id order (ties on id fall back to input position).

    Used to order equal-weight edges independently of the input ordering.
    """
    order = sorted(range(len(item_ids)), key=lambda index: (str(item_ids[index]), index))
    ranks = np.empty(len(item_ids), dtype=np.int64)
    ranks[order] = np.arange(len(item_ids))
    return ranks


class HDBSCANAlgorithm(BaseClusteringAlgorithm):
    """
    Density clustering with mutual reachability MST and flat extraction.

    Parameters (config.params):
        min_cluster_size: neighbour rank for core distances and minimum
            surviving cluster size (default 5)
        tie_break: "input_order" (edge generation order) or "item_id"
    """

    def __init__(self, config: ClusteringConfig):
        """
        Initialize the algorithm.

        Args:
            config: Clustering configuration

        Raises:
            InvalidParameterError: On invalid parameters
        """
        super().__init__(config)

        self.min_cluster_size = validate_min_cluster_size(
            config.params.get("min_cluster_size", 5)
        )
        self.tie_break = config.params.get("tie_break", "input_order")
        if self.tie_break not in TIE_BREAK_MODES:
            raise InvalidParameterError(
                f"Unsupported tie_break '{self.tie_break}'. Supported: {list(TIE_BREAK_MODES)}",
                details={"tie_break": self.tie_break},
            )

        logger.info(
            f"Initialized HDBSCAN: min_cluster_size={self.min_cluster_size}, "
            f"tie_break={self.tie_break}"
        )

    def cluster(
        self,
        vectors: np.ndarray,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ClusteringResult:
        """
        Perform density clustering.

        Args:
            vectors: Embedding vectors (N x D)
            metadata: Optional {"ids": [...]} used by the "item_id" tie break

        Returns:
            ClusteringResult with labels, clusters and metrics

        Raises:
            DimensionMismatchError: If embedding lengths differ
        """
        vectors = as_embedding_matrix(vectors)
        n = vectors.shape[0]
        logger.info(f"Starting HDBSCAN clustering on {n} vectors")

        if n == 0:
            return ClusteringResult(
                cluster_labels=np.zeros(0, dtype=np.int32),
                clusters=[],
                outlier_count=0,
                quality_metrics={},
            )

        tie_ranks = None
        if self.tie_break == "item_id":
            ids = (metadata or {}).get("ids")
            if ids is None or len(ids) != n:
                raise InvalidParameterError(
                    "tie_break='item_id' requires one id per vector in metadata['ids']",
                )
            tie_ranks = rank_by_item_id(ids)

        distances = build_distance_matrix(vectors)
        core_distances = compute_core_distances(distances, self.min_cluster_size)
        mst = build_mutual_reachability_mst(distances, core_distances, tie_ranks)
        del distances

        clusters = extract_clusters(mst, n, self.min_cluster_size)
        labels = self._labels_from_clusters(n, clusters)
        outlier_count = int(np.sum(labels == -1))

        logger.info(f"HDBSCAN found {len(clusters)} clusters with {outlier_count} outliers")

        centroids = self._calculate_centroids(vectors, clusters)
        quality_metrics: Dict[str, float] = {}
        if self.config.compute_quality_metrics:
            quality_metrics = self._calculate_quality_metrics(vectors, labels, centroids)

        return ClusteringResult(
            cluster_labels=labels,
            clusters=clusters,
            outlier_count=outlier_count,
            quality_metrics=quality_metrics,
            centroids=centroids,
        )
