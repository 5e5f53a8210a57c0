"""
vector_store.py

FAISS-backed embedding store.

Each collection is two files under the store directory:
- <collection>.faiss: flat L2 index holding the vectors
- <collection>.meta.pkl: pickled list of {"id", "name"} in index order

Items are keyed by id: adding an id that is already stored is a no-op, so
re-indexing the same input does not duplicate rows. Vectors are held as
float32 by FAISS; values read back are float32 precision widened to
float (0.1 comes back as 0.10000000149011612).

The store is an explicit context object: open() loads (or starts) the
collection, close() persists it. Nothing is initialised lazily.
"""

import pickle
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np

from category_grouper.schemas.data_models import Item
from category_grouper.utils.advanced_logging import get_logger
from category_grouper.utils.error_handling import (
    DimensionMismatchError,
    VectorStoreError,
)

logger = get_logger(__name__)


class EmbeddingStore:
    """
    Persistent collection of item embeddings.

    Example:
        with EmbeddingStore("data/vector_store", "embeddings") as store:
            store.add(items)
            everything = store.get_all()
    """

    def __init__(self, path: str, collection_name: str = "embeddings"):
        """
        Args:
            path: Store directory
            collection_name: Collection to open
        """
        self.path = Path(path)
        self.collection_name = collection_name
        self._is_open = False
        # None until the first vector fixes the dimension
        self._index: Optional[faiss.Index] = None
        self._metadata: List[Dict[str, str]] = []
        # id -> row in the index
        self._positions: Dict[str, int] = {}
        self._dirty = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def index_file(self) -> Path:
        return self.path / f"{self.collection_name}.faiss"

    @property
    def metadata_file(self) -> Path:
        return self.path / f"{self.collection_name}.meta.pkl"

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> "EmbeddingStore":
        """
        Load the collection, or start an empty one if it does not exist.

        Raises:
            VectorStoreError: If the stored files are unreadable or inconsistent
        """
        if self._is_open:
            return self

        self._index = None
        self._metadata = []
        self._positions = {}

        if self.index_file.exists():
            try:
                index = faiss.read_index(str(self.index_file))
                with open(self.metadata_file, "rb") as f:
                    metadata = pickle.load(f)
            except (OSError, RuntimeError, pickle.UnpicklingError, EOFError) as e:
                raise VectorStoreError(
                    f"Failed to load collection '{self.collection_name}': {e}",
                    details={"path": str(self.path)},
                ) from e

            if index.ntotal != len(metadata):
                raise VectorStoreError(
                    f"Collection '{self.collection_name}' is inconsistent: "
                    f"{index.ntotal} vectors, {len(metadata)} metadata rows",
                    details={"path": str(self.path)},
                )

            self._index = index
            self._metadata = metadata
            self._positions = {meta["id"]: row for row, meta in enumerate(metadata)}
            logger.info("collection_loaded", collection=self.collection_name, count=index.ntotal)
        else:
            logger.info("collection_created", collection=self.collection_name)

        self._is_open = True
        self._dirty = False
        return self

    def close(self) -> None:
        """Persist pending changes and release the index."""
        if not self._is_open:
            return

        if self._dirty:
            self.flush()

        self._index = None
        self._metadata = []
        self._positions = {}
        self._is_open = False
        logger.debug("collection_closed", collection=self.collection_name)

    def flush(self) -> None:
        """
        Write the collection to disk.

        Raises:
            VectorStoreError: If the files cannot be written
        """
        self._require_open()
        if self._index is None:
            self._dirty = False
            return

        try:
            self.path.mkdir(parents=True, exist_ok=True)
            faiss.write_index(self._index, str(self.index_file))
            with open(self.metadata_file, "wb") as f:
                pickle.dump(self._metadata, f)
        except (OSError, RuntimeError) as e:
            raise VectorStoreError(
                f"Failed to write collection '{self.collection_name}': {e}",
                details={"path": str(self.path)},
            ) from e

        self._dirty = False
        logger.info("collection_saved", collection=self.collection_name, count=self._index.ntotal)

    def __enter__(self) -> "EmbeddingStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # Operations
    # =========================================================================

    @property
    def dimension(self) -> Optional[int]:
        """Vector dimension, None while the collection is empty."""
        return None if self._index is None else self._index.d

    def add(self, items: Sequence[Item]) -> int:
        """
        Append items whose id is not stored yet.

        Items with an id already in the collection (or repeated earlier in
        the same call) are skipped; the first stored vector is kept.

        Returns:
            Number of items added

        Raises:
            DimensionMismatchError: If an embedding does not match the collection
        """
        self._require_open()
        if not items:
            return 0

        dimension = self.dimension or len(items[0].embedding)
        for item in items:
            if len(item.embedding) != dimension:
                raise DimensionMismatchError(
                    f"Item {item.id} has dimension {len(item.embedding)}, expected {dimension}",
                    details={"id": item.id, "dimension": len(item.embedding), "expected": dimension},
                )

        new_items: List[Item] = []
        seen = set()
        for item in items:
            if item.id in self._positions or item.id in seen:
                continue
            seen.add(item.id)
            new_items.append(item)

        skipped = len(items) - len(new_items)
        if skipped:
            logger.info("existing_ids_skipped", collection=self.collection_name, count=skipped)
        if not new_items:
            return 0

        if self._index is None:
            self._index = faiss.IndexFlatL2(dimension)

        start = len(self._metadata)
        vectors = np.asarray([item.embedding for item in new_items], dtype=np.float32)
        self._index.add(vectors)
        for row, item in enumerate(new_items, start=start):
            self._metadata.append({"id": item.id, "name": item.name})
            self._positions[item.id] = row
        self._dirty = True

        logger.debug("items_added", collection=self.collection_name, count=len(new_items))
        return len(new_items)

    def contains(self, item_id: str) -> bool:
        """True if an item with this id is stored."""
        self._require_open()
        return item_id in self._positions

    def count(self) -> int:
        """Number of stored items."""
        self._require_open()
        return 0 if self._index is None else self._index.ntotal

    def get_all(self) -> List[Item]:
        """All stored items in insertion order."""
        return self.peek(limit=None)

    def peek(self, limit: Optional[int] = 1) -> List[Item]:
        """
        First stored items.

        Embeddings come back at float32 precision, not the float64 values
        originally added.

        Args:
            limit: Maximum number of items (None for all)
        """
        total = self.count()
        n = total if limit is None else min(limit, total)
        if n == 0:
            return []

        vectors = self._index.reconstruct_n(0, n)
        return [
            Item(id=meta["id"], name=meta["name"], embedding=vectors[i].astype(np.float64).tolist())
            for i, meta in enumerate(self._metadata[:n])
        ]

    def clear(self) -> None:
        """Delete the collection from memory and disk."""
        for file in (self.index_file, self.metadata_file):
            if file.exists():
                file.unlink()

        self._index = None
        self._metadata = []
        self._positions = {}
        self._dirty = False
        logger.info("collection_cleared", collection=self.collection_name)

    def stats(self) -> Dict[str, Any]:
        """Collection statistics."""
        return {
            "collection": self.collection_name,
            "count": self.count(),
            "dimension": self.dimension,
            "path": str(self.path),
        }

    def _require_open(self) -> None:
        if not self._is_open:
            raise VectorStoreError(
                f"Collection '{self.collection_name}' is not open",
                error_code="STORE_NOT_OPEN",
            )
