"""
Clustering Engine - Orchestrates a grouping run.

items -> density clustering -> naming -> merging -> output records.

The whole run is synchronous and in-memory. Distances are exact, so memory
grows with n^2 (distance matrix plus n(n-1)/2 candidate edges); inputs beyond
a few tens of thousands of items are not practical.
"""

import time
from typing import List, Optional, Sequence

from category_grouper.core.base_clustering import ClusteringConfig
from category_grouper.core.distance import as_embedding_matrix
from category_grouper.core.hdbscan_algorithm import (
    HDBSCANAlgorithm,
    validate_min_cluster_size,
)
from category_grouper.core.merging import merge_named_clusters
from category_grouper.core.naming import CategoryTable, ClusterNamer
from category_grouper.schemas.data_models import (
    ClusterMember,
    GroupingResult,
    Item,
    NamedCluster,
)
from category_grouper.utils.advanced_logging import (
    MetricsLogger,
    PerformanceLogger,
    get_logger,
)

logger = get_logger(__name__)


class ClusteringEngine:
    """
    Main engine turning a complete item list into named groups.

    Produces two record sequences: the named clusters as extracted and the
    clusters merged by normalised name.
    """

    def __init__(
        self,
        min_cluster_size: int = 5,
        tie_break: str = "input_order",
        namer: Optional[ClusterNamer] = None,
        compute_quality_metrics: bool = True,
        max_items_warning: int = 20000,
    ):
        """
        Initialize clustering engine.

        Args:
            min_cluster_size: Default minimum cluster size
            tie_break: Default equal-weight edge ordering
            namer: Cluster namer (default keyword table if None)
            compute_quality_metrics: Compute silhouette etc. after clustering
            max_items_warning: Item count above which a size warning is logged
        """
        self.min_cluster_size = validate_min_cluster_size(min_cluster_size)
        self.tie_break = tie_break
        self.namer = namer or ClusterNamer()
        self.compute_quality_metrics = compute_quality_metrics
        self.max_items_warning = max_items_warning
        logger.debug("clustering_engine_initialized", min_cluster_size=self.min_cluster_size)

    @classmethod
    def from_settings(cls, settings) -> "ClusteringEngine":
        """Build an engine from the clustering section of Settings."""
        clustering = settings.clustering
        table = CategoryTable.from_records(
            category.model_dump() for category in clustering.categories
        )
        return cls(
            min_cluster_size=clustering.min_cluster_size,
            tie_break=clustering.tie_break,
            namer=ClusterNamer(table),
            compute_quality_metrics=clustering.compute_quality_metrics,
            max_items_warning=clustering.max_items_warning,
        )

    def run(
        self,
        items: Sequence[Item],
        min_cluster_size: Optional[int] = None,
        tie_break: Optional[str] = None,
    ) -> GroupingResult:
        """
        Cluster, name and merge a full item set.

        Args:
            items: Items with equal-length embeddings
            min_cluster_size: Override of the engine default
            tie_break: Override of the engine default

        Returns:
            GroupingResult (empty when no cluster survives)

        Raises:
            InvalidParameterError: If min_cluster_size < 1
            DimensionMismatchError: If embedding lengths differ
        """
        start = time.time()
        min_size = validate_min_cluster_size(
            self.min_cluster_size if min_cluster_size is None else min_cluster_size
        )
        n = len(items)

        if n == 0:
            logger.info("no_items_to_cluster")
            return GroupingResult(total_items=0, min_cluster_size=min_size, processing_time_ms=0.0)

        vectors = as_embedding_matrix([item.embedding for item in items])

        if n > self.max_items_warning:
            logger.warning(
                "large_input_warning",
                item_count=n,
                threshold=self.max_items_warning,
                distance_matrix_mb=round(n * n * 8 / (1024 * 1024), 1),
            )

        algorithm = HDBSCANAlgorithm(
            ClusteringConfig(
                algorithm_name="hdbscan",
                params={
                    "min_cluster_size": min_size,
                    "tie_break": tie_break or self.tie_break,
                },
                compute_quality_metrics=self.compute_quality_metrics,
            )
        )

        with PerformanceLogger("density_clustering", logger=logger, item_count=n):
            result = algorithm.cluster(vectors, {"ids": [item.id for item in items]})

        MetricsLogger(logger).log_cpu_memory(context="after_clustering")

        with PerformanceLogger("cluster_naming", logger=logger, item_count=result.n_clusters):
            named = self.name_clusters(items, result.clusters)

        # Pre-merge output: extraction id + 1, largest first
        pre_merge = sorted(
            (
                NamedCluster(id=cluster.id + 1, name=cluster.name, members=cluster.members)
                for cluster in named
            ),
            key=lambda c: c.size,
            reverse=True,
        )
        merged = merge_named_clusters(named)

        if not named:
            logger.info("no_clusters_found", item_count=n, min_cluster_size=min_size)

        grouping = GroupingResult(
            total_items=n,
            min_cluster_size=min_size,
            clusters=[cluster.to_record() for cluster in pre_merge],
            merged_clusters=[cluster.to_record() for cluster in merged],
            outlier_count=result.outlier_count,
            quality_metrics=result.quality_metrics,
            processing_time_ms=round((time.time() - start) * 1000, 2),
        )

        logger.info(
            "clustering_complete",
            total_items=n,
            clusters=len(grouping.clusters),
            merged_clusters=len(grouping.merged_clusters),
            outliers=grouping.outlier_count,
        )
        return grouping

    def name_clusters(self, items: Sequence[Item], clusters) -> List[NamedCluster]:
        """Label each raw cluster from its members' names."""
        named = []
        for cluster in clusters:
            members = [items[index] for index in cluster.indices]
            named.append(
                NamedCluster(
                    id=cluster.id,
                    name=self.namer.name([member.name for member in members]),
                    members=[ClusterMember(id=member.id, name=member.name) for member in members],
                )
            )
        return named
