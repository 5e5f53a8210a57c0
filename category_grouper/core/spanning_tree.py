"""
Minimum spanning tree over mutual reachability distances.

The mutual reachability distance between i and j is
max(d(i, j), core(i), core(j)): never below the raw distance, and it pushes
sparse points away from dense ones.
"""

import logging
from typing import List, NamedTuple, Optional

import numpy as np

from category_grouper.core.disjoint_set import DisjointSet

logger = logging.getLogger(__name__)


class Edge(NamedTuple):
    """Weighted edge between two item indices."""

    source: int
    target: int
    weight: float


def mutual_reachability(distances: np.ndarray, core_distances: np.ndarray) -> np.ndarray:
    """
    Full (N x N) mutual reachability matrix.

    Args:
        distances: (N x N) raw distance matrix
        core_distances: N core distances

    Returns:
        Matrix of max(raw, core[i], core[j])
    """
    core_pairs = np.maximum(core_distances[:, None], core_distances[None, :])
    return np.maximum(distances, core_pairs)


def build_mutual_reachability_mst(
    distances: np.ndarray,
    core_distances: np.ndarray,
    tie_ranks: Optional[np.ndarray] = None,
) -> List[Edge]:
    """
    Kruskal's algorithm over the complete mutual reachability graph.

    Candidate edges (i < j) are generated row-major and sorted ascending by
    weight. Equal weights are ordered by (min rank, max rank) of their
    endpoints; with the default ranks (item index) this is exactly the
    generation order.

    Args:
        distances: (N x N) raw distance matrix
        core_distances: N core distances
        tie_ranks: Optional rank per item used to order equal-weight edges

    Returns:
        Accepted edges in acceptance order (N - 1 edges for N >= 1)
    """
    n = distances.shape[0]
    if n <= 1:
        return []

    if tie_ranks is None:
        tie_ranks = np.arange(n)

    rows, cols = np.triu_indices(n, k=1)
    weights = np.maximum(
        distances[rows, cols],
        np.maximum(core_distances[rows], core_distances[cols]),
    )

    rank_rows = tie_ranks[rows]
    rank_cols = tie_ranks[cols]
    low = np.minimum(rank_rows, rank_cols)
    high = np.maximum(rank_rows, rank_cols)

    # lexsort: last key is primary
    order = np.lexsort((high, low, weights))

    components = DisjointSet(n)
    mst: List[Edge] = []

    for edge_index in order:
        source = int(rows[edge_index])
        target = int(cols[edge_index])
        if components.union(source, target):
            mst.append(Edge(source, target, float(weights[edge_index])))
            if len(mst) == n - 1:
                break

    logger.debug(f"Built MST with {len(mst)} edges over {n} items")
    return mst
