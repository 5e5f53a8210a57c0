"""
Core clustering module.

Exports:
- ClusteringEngine: Main orchestration class
- HDBSCANAlgorithm: Density clustering built from primitives
- ClusterNamer / CategoryTable: Cluster labelling
- merge_named_clusters: Name-based cluster merging
"""

from category_grouper.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringConfig,
    ClusteringResult,
)
from category_grouper.core.clustering_engine import ClusteringEngine
from category_grouper.core.distance import build_distance_matrix, compute_core_distances
from category_grouper.core.extraction import RawCluster, extract_clusters
from category_grouper.core.hdbscan_algorithm import HDBSCANAlgorithm
from category_grouper.core.merging import merge_named_clusters
from category_grouper.core.naming import (
    DEFAULT_CATEGORY_TABLE,
    Category,
    CategoryTable,
    ClusterNamer,
)
from category_grouper.core.spanning_tree import Edge, build_mutual_reachability_mst

__all__ = [
    "ClusteringEngine",
    "BaseClusteringAlgorithm",
    "ClusteringResult",
    "ClusteringConfig",
    "HDBSCANAlgorithm",
    "build_distance_matrix",
    "compute_core_distances",
    "Edge",
    "build_mutual_reachability_mst",
    "RawCluster",
    "extract_clusters",
    "Category",
    "CategoryTable",
    "ClusterNamer",
    "DEFAULT_CATEGORY_TABLE",
    "merge_named_clusters",
]
