"""
Base Clustering Algorithm Interface.

Defines the contract for clustering algorithms used by the engine.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from category_grouper.core.extraction import RawCluster

logger = logging.getLogger(__name__)


@dataclass
class ClusteringConfig:
    """Configuration for clustering algorithms."""

    algorithm_name: str
    params: Dict[str, Any] = field(default_factory=dict)
    compute_quality_metrics: bool = True


class ClusteringResult:
    """Results from clustering operation."""

    def __init__(
        self,
        cluster_labels: np.ndarray,
        clusters: List[RawCluster],
        outlier_count: int,
        quality_metrics: Dict[str, float],
        centroids: Optional[np.ndarray] = None,
    ):
        self.cluster_labels = cluster_labels
        self.clusters = clusters
        self.outlier_count = outlier_count
        self.quality_metrics = quality_metrics
        self.centroids = centroids

    @property
    def n_clusters(self) -> int:
        return len(self.clusters)

    @property
    def labels(self) -> np.ndarray:
        """Alias for cluster_labels."""
        return self.cluster_labels

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "n_clusters": self.n_clusters,
            "outlier_count": self.outlier_count,
            "quality_metrics": self.quality_metrics,
            "total_items": len(self.cluster_labels),
        }


class BaseClusteringAlgorithm(ABC):
    """
    Abstract base class for clustering algorithms.

    Subclasses implement cluster() and return a flat partition with -1
    labels for noise.
    """

    def __init__(self, config: ClusteringConfig):
        """
        Initialize clustering algorithm.

        Args:
            config: Clustering configuration
        """
        self.config = config
        self.name = config.algorithm_name

    @abstractmethod
    def cluster(
        self,
        vectors: np.ndarray,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ClusteringResult:
        """
        Perform clustering on vectors.

        Args:
            vectors: Embedding vectors (N x D)
            metadata: Optional per-run metadata (e.g. item ids)

        Returns:
            ClusteringResult with labels and metrics
        """
        pass

    @staticmethod
    def _labels_from_clusters(n: int, clusters: List[RawCluster]) -> np.ndarray:
        """Per-item label array, -1 for noise."""
        labels = np.full(n, -1, dtype=np.int32)
        for cluster in clusters:
            labels[list(cluster.indices)] = cluster.id
        return labels

    @staticmethod
    def _calculate_centroids(
        vectors: np.ndarray,
        clusters: List[RawCluster],
    ) -> Optional[np.ndarray]:
        """Mean vector per cluster, indexed by cluster id."""
        if not clusters:
            return None

        centroids = np.zeros((len(clusters), vectors.shape[1]))
        for cluster in clusters:
            centroids[cluster.id] = np.mean(vectors[list(cluster.indices)], axis=0)
        return centroids

    def _calculate_quality_metrics(
        self,
        vectors: np.ndarray,
        labels: np.ndarray,
        centroids: Optional[np.ndarray] = None,
    ) -> Dict[str, float]:
        """
        Calculate clustering quality metrics.

        Args:
            vectors: Input vectors
            labels: Cluster labels
            centroids: Optional cluster centroids

        Returns:
            Dictionary of quality metrics
        """
        from sklearn.metrics import silhouette_score, davies_bouldin_score

        metrics: Dict[str, float] = {}

        # Filter out noise (-1 labels) for metrics calculation
        non_outlier_mask = labels != -1
        clustered = int(np.sum(non_outlier_mask))
        n_labels = len(np.unique(labels[non_outlier_mask]))

        if clustered > 1 and 1 < n_labels < clustered:
            # Silhouette score (higher is better, range: -1 to 1)
            metrics["silhouette_score"] = float(
                silhouette_score(vectors[non_outlier_mask], labels[non_outlier_mask])
            )
            # Davies-Bouldin Index (lower is better)
            metrics["davies_bouldin_index"] = float(
                davies_bouldin_score(vectors[non_outlier_mask], labels[non_outlier_mask])
            )

        if centroids is not None:
            intra_similarities = []
            for cluster_id in np.unique(labels):
                if cluster_id == -1:
                    continue
                cluster_vectors = vectors[labels == cluster_id]
                centroid = centroids[cluster_id]
                norms = np.linalg.norm(cluster_vectors, axis=1) * np.linalg.norm(centroid)
                if np.all(norms > 0):
                    # Cosine similarity with centroid
                    similarities = np.dot(cluster_vectors, centroid) / norms
                    intra_similarities.append(np.mean(similarities))

            if intra_similarities:
                metrics["avg_intra_cluster_similarity"] = float(np.mean(intra_similarities))

        if len(labels) > 0:
            metrics["noise_ratio"] = float(1.0 - clustered / len(labels))

        return metrics
