"""
Pairwise distances and core distances.

Exact O(n^2) Euclidean distances over all items; the distance matrix is the
dominant memory cost of a clustering run (n * n float64 values), which keeps
practical inputs in the tens of thousands of items.
"""

import logging
from typing import Sequence, Union

import numpy as np

from category_grouper.utils.error_handling import (
    DimensionMismatchError,
    InvalidParameterError,
)

logger = logging.getLogger(__name__)

EmbeddingInput = Union[np.ndarray, Sequence[Sequence[float]]]


def as_embedding_matrix(embeddings: EmbeddingInput) -> np.ndarray:
    """
    Convert embeddings to an (N x D) float64 array.

    Args:
        embeddings: Array or sequence of equal-length vectors

    Returns:
        2-D float64 array (shape (0, 0) for empty input)

    Raises:
        DimensionMismatchError: If any two embeddings differ in length
    """
    if isinstance(embeddings, np.ndarray):
        if embeddings.size == 0 and embeddings.ndim <= 1:
            return np.zeros((0, 0), dtype=np.float64)
        if embeddings.ndim != 2:
            raise DimensionMismatchError(
                f"Expected a 2-D embedding array, got {embeddings.ndim}-D",
                details={"shape": list(embeddings.shape)},
            )
        return embeddings.astype(np.float64, copy=False)

    if len(embeddings) == 0:
        return np.zeros((0, 0), dtype=np.float64)

    expected = len(embeddings[0])
    for index, vector in enumerate(embeddings):
        if len(vector) != expected:
            raise DimensionMismatchError(
                f"Embedding {index} has dimension {len(vector)}, expected {expected}",
                details={"index": index, "dimension": len(vector), "expected": expected},
            )

    return np.asarray(embeddings, dtype=np.float64).reshape(len(embeddings), expected)


def build_distance_matrix(embeddings: EmbeddingInput) -> np.ndarray:
    """
    Compute the symmetric matrix of pairwise Euclidean distances.

    Row i is computed as ||x_j - x_i|| for all j. Squared differences are
    sign-independent, so d[i, j] == d[j, i] exactly and the diagonal is 0.

    Args:
        embeddings: Embedding vectors (N x D)

    Returns:
        (N x N) distance matrix; (0 x 0) for empty input

    Raises:
        DimensionMismatchError: If embedding lengths differ
    """
    vectors = as_embedding_matrix(embeddings)
    n = vectors.shape[0]

    distances = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        diff = vectors - vectors[i]
        distances[i] = np.sqrt(np.einsum("ij,ij->i", diff, diff))

    logger.debug(f"Built {n}x{n} distance matrix")
    return distances


def compute_core_distances(distances: np.ndarray, k: int) -> np.ndarray:
    """
    Distance from each item to its k-th nearest neighbour.

    Each row is sorted ascending (the item itself sits at position 0) and the
    value at position min(k, n - 1) is taken.

    Args:
        distances: (N x N) distance matrix
        k: Neighbour rank, normally the minimum cluster size

    Returns:
        Array of N core distances
    """
    if k < 1:
        raise InvalidParameterError(
            f"Core distance rank must be >= 1, got {k}",
            details={"k": k},
        )

    n = distances.shape[0]
    if n == 0:
        return np.zeros(0, dtype=np.float64)

    position = min(k, n - 1)
    return np.sort(distances, axis=1, kind="stable")[:, position].copy()
