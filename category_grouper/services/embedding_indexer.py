"""
Embedding Indexer Service.

Turns an ordered list of texts into one outcome per index: an embedding or a
recorded failure. Texts are processed in batches with a bounded number of
concurrent requests, and progress is checkpointed so an interrupted run
resumes from the last saved offset.
"""

import hashlib
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional, Sequence

from category_grouper.schemas.data_models import Item
from category_grouper.utils.advanced_logging import BatchLogger, get_logger
from category_grouper.utils.checkpoint import CheckpointStore
from category_grouper.utils.error_handling import CategoryGrouperError

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class EmbeddingOutcome:
    """Result for one input index."""

    index: int
    embedding: Optional[List[float]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.embedding is not None


def fingerprint(texts: Sequence[str]) -> str:
    """Identifies the input a checkpoint belongs to."""
    digest = hashlib.sha256()
    for text in texts:
        digest.update(text.encode("utf-8"))
        digest.update(b"\x00")
    return f"{len(texts)}:{digest.hexdigest()}"


class EmbeddingIndexer:
    """
    Batched, concurrent, resumable embedding of texts.

    The client only needs an embed(text) -> List[float] method.
    """

    def __init__(
        self,
        client,
        batch_size: int = 100,
        concurrency: int = 10,
        batch_delay_seconds: float = 0.1,
        checkpoint_store: Optional[CheckpointStore] = None,
        checkpoint_interval: int = 10,
    ):
        """
        Initialize indexer.

        Args:
            client: Embedding client
            batch_size: Texts per batch
            concurrency: Maximum concurrent requests
            batch_delay_seconds: Pause between batches
            checkpoint_store: Where to save progress (None disables checkpoints)
            checkpoint_interval: Save a checkpoint every N batches
        """
        self.client = client
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.batch_delay_seconds = batch_delay_seconds
        self.checkpoint_store = checkpoint_store
        self.checkpoint_interval = checkpoint_interval

    @classmethod
    def from_settings(cls, client, settings) -> "EmbeddingIndexer":
        embedding = settings.embedding
        return cls(
            client,
            batch_size=embedding.batch_size,
            concurrency=embedding.concurrency,
            batch_delay_seconds=embedding.batch_delay_seconds,
            checkpoint_store=CheckpointStore(embedding.checkpoint_path),
            checkpoint_interval=embedding.checkpoint_interval,
        )

    def embed(
        self,
        texts: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[EmbeddingOutcome]:
        """
        Embed all texts.

        Args:
            texts: Ordered input texts
            on_progress: Called with (done, total) after each batch

        Returns:
            One outcome per input index, in index order
        """
        total = len(texts)
        run_fingerprint = fingerprint(texts)
        outcomes, offset = self._resume(run_fingerprint)

        if offset:
            logger.info("indexing_resumed", offset=offset, total=total)

        progress = BatchLogger(
            total_items=total,
            operation="embedding",
            log_interval=self.batch_size * 10,
            logger=logger,
            initial_count=offset,
        )
        batches_since_checkpoint = 0

        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            for start in range(offset, total, self.batch_size):
                batch = texts[start:start + self.batch_size]
                indices = range(start, start + len(batch))
                outcomes.extend(pool.map(self._embed_one, indices, batch))

                done = start + len(batch)
                progress.update(len(batch))
                if on_progress:
                    on_progress(done, total)

                batches_since_checkpoint += 1
                if batches_since_checkpoint >= self.checkpoint_interval and done < total:
                    self._save_checkpoint(run_fingerprint, outcomes, done)
                    batches_since_checkpoint = 0

                if self.batch_delay_seconds and done < total:
                    time.sleep(self.batch_delay_seconds)

        progress.complete()
        if self.checkpoint_store:
            self.checkpoint_store.delete()

        failures = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info("indexing_complete", total=total, failures=failures)
        return outcomes

    def _embed_one(self, index: int, text: str) -> EmbeddingOutcome:
        try:
            return EmbeddingOutcome(index=index, embedding=self.client.embed(text))
        except (CategoryGrouperError, ConnectionError, TimeoutError) as e:
            logger.warning("embedding_failed", index=index, error=str(e), error_type=type(e).__name__)
            return EmbeddingOutcome(index=index, error=str(e))

    def _resume(self, run_fingerprint: str):
        """Outcomes and next offset from a matching checkpoint."""
        if not self.checkpoint_store:
            return [], 0

        checkpoint = self.checkpoint_store.load()
        if not checkpoint:
            return [], 0

        if checkpoint.get("fingerprint") != run_fingerprint:
            logger.warning("checkpoint_ignored", reason="input changed")
            return [], 0

        outcomes = [EmbeddingOutcome(**row) for row in checkpoint.get("outcomes", [])]
        return outcomes, int(checkpoint.get("next_offset", len(outcomes)))

    def _save_checkpoint(
        self,
        run_fingerprint: str,
        outcomes: List[EmbeddingOutcome],
        next_offset: int,
    ) -> None:
        if not self.checkpoint_store:
            return

        self.checkpoint_store.save({
            "fingerprint": run_fingerprint,
            "next_offset": next_offset,
            "outcomes": [asdict(outcome) for outcome in outcomes],
        })
        logger.info("checkpoint_saved", next_offset=next_offset)


def build_items(rows: Sequence[Dict[str, str]], outcomes: Sequence[EmbeddingOutcome]) -> List[Item]:
    """
    Pair input rows with their embeddings, dropping failed indices.

    Args:
        rows: {id, name} rows in input order
        outcomes: Outcomes indexed like rows
    """
    by_index = {outcome.index: outcome for outcome in outcomes}
    items = []
    for index, row in enumerate(rows):
        outcome = by_index.get(index)
        if outcome is not None and outcome.ok:
            items.append(Item(id=row["id"], name=row["name"], embedding=outcome.embedding))
    return items
