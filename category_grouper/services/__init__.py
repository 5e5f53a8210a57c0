"""
Embedding acquisition services.

This module contains the embedding API client and the resumable, batched
indexer that feeds the vector store.
"""

from category_grouper.services.embedding_client import EmbeddingClient
from category_grouper.services.embedding_indexer import (
    EmbeddingIndexer,
    EmbeddingOutcome,
    build_items,
)

__all__ = ["EmbeddingClient", "EmbeddingIndexer", "EmbeddingOutcome", "build_items"]
