"""
Flat cluster extraction from the spanning tree.

Bottom-up, size-gated agglomeration: MST edges are visited heaviest first and
two components are joined only while both are still smaller than the minimum
cluster size. Components that never reach the minimum are noise.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from category_grouper.core.disjoint_set import DisjointSet
from category_grouper.core.spanning_tree import Edge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawCluster:
    """Surviving component: sequential id and ascending item indices."""

    id: int
    indices: Tuple[int, ...]

    @property
    def size(self) -> int:
        return len(self.indices)


def extract_clusters(
    mst: Sequence[Edge],
    n: int,
    min_cluster_size: int,
) -> List[RawCluster]:
    """
    Convert the spanning tree into a flat partition.

    Edges are visited heaviest first; equal weights keep their MST order
    (stable sort). A component at or above min_cluster_size is never
    extended, so with min_cluster_size >= 2 no component exceeds
    2 * (min_cluster_size - 1) items.

    Each component also carries a label root: when two components join,
    the target side's label is kept. Survivors are numbered from 0 in
    ascending label order, independent of which root union-by-size picks.

    Args:
        mst: Spanning tree edges
        n: Number of items
        min_cluster_size: Minimum surviving component size

    Returns:
        Surviving clusters with ascending member indices
    """
    components = DisjointSet(n)
    # union-find root -> label root
    labels = list(range(n))

    for edge in sorted(mst, key=lambda e: e.weight, reverse=True):
        root_source = components.find(edge.source)
        root_target = components.find(edge.target)
        if root_source == root_target:
            continue

        if (
            components.size[root_source] < min_cluster_size
            and components.size[root_target] < min_cluster_size
        ):
            label = labels[root_target]
            components.union(root_source, root_target)
            labels[components.find(root_source)] = label

    groups: Dict[int, List[int]] = {}
    for index in range(n):
        groups.setdefault(components.find(index), []).append(index)

    survivors = sorted(
        (members for members in groups.values() if len(members) >= min_cluster_size),
        key=lambda members: labels[components.find(members[0])],
    )
    clusters = [
        RawCluster(id=cluster_id, indices=tuple(members))
        for cluster_id, members in enumerate(survivors)
    ]

    noise = n - sum(cluster.size for cluster in clusters)
    logger.debug(f"Extracted {len(clusters)} clusters, {noise} noise points")
    return clusters
