"""Merge named clusters whose labels collide after normalisation."""

import logging
from typing import Dict, List, Sequence

from category_grouper.schemas.data_models import NamedCluster

logger = logging.getLogger(__name__)


def merge_key(name: str) -> str:
    """Normalised label used to detect duplicates."""
    return name.strip().lower()


def merge_named_clusters(clusters: Sequence[NamedCluster]) -> List[NamedCluster]:
    """
    Coalesce clusters that share a normalised name.

    The first cluster seen for a key keeps its display name; members of later
    clusters are appended in encounter order (no de-duplication). The result
    is ranked by descending member count (stable) and renumbered from 1.

    Args:
        clusters: Named clusters in extraction order

    Returns:
        Merged clusters with ids 1..m
    """
    merged: Dict[str, NamedCluster] = {}

    for cluster in clusters:
        key = merge_key(cluster.name)
        if key not in merged:
            merged[key] = NamedCluster(
                id=cluster.id,
                name=cluster.name,
                members=list(cluster.members),
            )
        else:
            merged[key].members.extend(cluster.members)

    ranked = sorted(merged.values(), key=lambda c: c.size, reverse=True)
    result = [
        NamedCluster(id=rank, name=cluster.name, members=cluster.members)
        for rank, cluster in enumerate(ranked, start=1)
    ]

    logger.debug(f"Merged {len(clusters)} named clusters into {len(result)}")
    return result
