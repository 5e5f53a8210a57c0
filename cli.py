#!/usr/bin/env python3
"""
Category Grouper CLI

Command-line interface for indexing and clustering named items.

Usage:
    python cli.py index <input.csv>               # Embed names and store vectors
    python cli.py cluster                         # Cluster stored vectors, write CSVs
    python cli.py cluster --min-cluster-size 8    # Override minimum cluster size
    python cli.py inspect                         # Show collection contents
    python cli.py clear                           # Delete the collection
"""

import argparse
import sys
import time
import uuid
from typing import List, Optional

from category_grouper.config.settings_loader import ConfigManager, Settings
from category_grouper.core.clustering_engine import ClusteringEngine
from category_grouper.schemas.data_models import GroupingResult
from category_grouper.services.embedding_client import EmbeddingClient
from category_grouper.services.embedding_indexer import EmbeddingIndexer, build_items
from category_grouper.storage.csv_storage import read_items_csv, write_group_records
from category_grouper.storage.vector_store import EmbeddingStore
from category_grouper.utils.advanced_logging import (
    LogContext,
    configure_logging,
    get_logger,
    log_exceptions,
)
from category_grouper.utils.error_handling import CategoryGrouperError, RetryConfig


def format_time(seconds: float) -> str:
    """Human readable duration (e.g. "1h 5m", "3m 12s", "42s")."""
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def progress_bar(current: int, total: int) -> str:
    """Fixed-width progress bar."""
    percent = int(current / total * 100) if total else 100
    filled = percent // 2
    return f"[{'█' * filled}{'░' * (50 - filled)}] {percent}% ({current}/{total})"


def reduction_percent(input_rows: int, output_rows: int) -> float:
    if input_rows == 0:
        return 0.0
    return round((1 - output_rows / input_rows) * 100, 2)


class GrouperCLI:
    """CLI commands over the vector store and clustering engine."""

    def __init__(self, settings: Settings):
        """
        Args:
            settings: Loaded settings
        """
        self.settings = settings

    def open_store(self) -> EmbeddingStore:
        store_settings = self.settings.vector_store
        return EmbeddingStore(store_settings.path, store_settings.collection_name)

    def index(self, input_file: str) -> int:
        """Embed the names of a CSV file and store the vectors."""
        embedding = self.settings.embedding
        if not embedding.api_key:
            print("❌ GEMINI_API_KEY is not set", file=sys.stderr)
            return 1

        print("🚀 Starting indexing process...\n")
        start = time.time()

        rows = read_items_csv(input_file)
        print(f"✓ Read {len(rows)} items from {input_file}")

        with self.open_store() as store:
            print(f"✓ Vector store ready ({store.count()} existing embeddings)\n")

            pending = [row for row in rows if not store.contains(row["id"])]
            already_stored = len(rows) - len(pending)
            if already_stored:
                print(f"✓ Skipping {already_stored} items already in the collection")

            retry_config = RetryConfig(**embedding.retry.model_dump())
            with EmbeddingClient(
                api_key=embedding.api_key,
                model=embedding.model,
                api_url=embedding.api_url,
                timeout=embedding.request_timeout,
                retry_config=retry_config,
            ) as client:
                indexer = EmbeddingIndexer.from_settings(client, self.settings)
                print("⏳ Generating embeddings...")
                outcomes = indexer.embed(
                    [row["name"] for row in pending],
                    on_progress=lambda done, total: print(f"\r{progress_bar(done, total)}", end=""),
                )
                print("\n")

            items = build_items(pending, outcomes)
            failed = len(pending) - len(items)

            print("💾 Storing embeddings...")
            batch_size = self.settings.vector_store.write_batch_size
            stored = 0
            for offset in range(0, len(items), batch_size):
                stored += store.add(items[offset:offset + batch_size])
                print(f"  Stored {min(offset + batch_size, len(items))}/{len(items)}")

        print("\n✅ Indexing complete!")
        print(f"   Items indexed: {stored}")
        if already_stored:
            print(f"   Already stored: {already_stored}")
        if failed:
            print(f"   Failed items: {failed}")
        print(f"   Time taken: {format_time(time.time() - start)}")
        print("\n▶  Next: run 'python cli.py cluster' to generate clusters")
        return 0

    def cluster(
        self,
        min_cluster_size: Optional[int] = None,
        tie_break: Optional[str] = None,
        output: Optional[str] = None,
        merged_output: Optional[str] = None,
    ) -> int:
        """Cluster every stored item and write both CSV outputs."""
        print("🧠 Starting clustering process...\n")
        start = time.time()

        with self.open_store() as store:
            print("📥 Loading embeddings...")
            items = store.get_all()
        print(f"✓ Loaded {len(items)} embeddings\n")

        if not items:
            print("❌ No embeddings found. Run indexing first: python cli.py index input.csv", file=sys.stderr)
            return 1

        print("🔄 Running density clustering...")
        engine = ClusteringEngine.from_settings(self.settings)
        result = engine.run(items, min_cluster_size=min_cluster_size, tie_break=tie_break)

        if result.is_empty:
            print(f"⚠️  No clusters found (min cluster size {result.min_cluster_size})\n")
        else:
            print(f"✓ Found {len(result.clusters)} clusters ({result.outlier_count} unclustered)\n")
            print_top_clusters(result)

        output = output or self.settings.output.clustered_path
        merged_output = merged_output or self.settings.output.merged_path

        write_group_records(output, result.clusters)
        print_summary("Clustering", len(items), len(result.clusters), start, output)

        write_group_records(merged_output, result.merged_clusters)
        print_summary("Merge clustering", len(items), len(result.merged_clusters), start, merged_output)
        return 0

    def inspect(self) -> int:
        """Print collection statistics and the first stored item."""
        with self.open_store() as store:
            stats = store.stats()
            print("🔍 Vector store\n")
            print(f"Collection: {stats['collection']} ({stats['path']})")
            print(f"Total items: {stats['count']}")

            first = store.peek(limit=1)
            if first:
                item = first[0]
                print("\nFirst item:")
                print(f"ID: {item.id}")
                print(f"Name: {item.name}")
                print(f"Embedding length: {len(item.embedding)}")
                print(f"First 5 values: {item.embedding[:5]}")
        return 0

    def clear(self) -> int:
        """Delete the collection."""
        print("🗑️  Clearing vector store collection...\n")
        with self.open_store() as store:
            store.clear()
        print("✅ Collection cleared successfully")
        return 0


def print_top_clusters(result: GroupingResult, limit: int = 5) -> None:
    """Print the largest clusters."""
    print(f"📊 Top {limit} Clusters:")
    for position, record in enumerate(result.clusters[:limit], start=1):
        print(f"  {position}. {record.group_name} ({len(record.members_id)} items)")


def print_summary(title: str, input_rows: int, output_rows: int, start: float, path: str) -> None:
    """Print row counts, reduction and elapsed time."""
    print(f"\n✅ {title} complete!")
    print(f"   Input rows: {input_rows}")
    print(f"   Output rows: {output_rows}")
    print(f"   Reduction: {reduction_percent(input_rows, output_rows):.2f}%")
    print(f"   Time taken: {format_time(time.time() - start)}")
    print(f"   Output: {path}")


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Category Grouper CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "command",
        help="Command to execute",
        choices=["index", "cluster", "inspect", "clear"],
    )

    parser.add_argument("args", nargs="*", help="Command arguments")
    parser.add_argument("--config", help="Path to settings YAML")
    parser.add_argument("--min-cluster-size", type=int, help="Minimum cluster size")
    parser.add_argument("--tie-break", choices=["input_order", "item_id"], help="Equal-weight edge order")
    parser.add_argument("--output", help="Pre-merge CSV path")
    parser.add_argument("--merged-output", help="Post-merge CSV path")

    args = parser.parse_args(argv)

    try:
        settings = ConfigManager.load_config(args.config)
    except CategoryGrouperError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        sys.exit(1)

    configure_logging(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        log_file=settings.logging.file,
        service_name=settings.service.name,
    )

    cli = GrouperCLI(settings)
    run_id = f"{args.command}-{uuid.uuid4().hex[:8]}"

    with LogContext.correlation_context(run_id):
        try:
            with log_exceptions(logger=get_logger(__name__), operation=args.command):
                if args.command == "index":
                    if not args.args:
                        print("❌ Input CSV required: python cli.py index <input.csv>", file=sys.stderr)
                        sys.exit(1)
                    status = cli.index(args.args[0])

                elif args.command == "cluster":
                    status = cli.cluster(
                        min_cluster_size=args.min_cluster_size,
                        tie_break=args.tie_break,
                        output=args.output,
                        merged_output=args.merged_output,
                    )

                elif args.command == "inspect":
                    status = cli.inspect()

                else:
                    status = cli.clear()

        except CategoryGrouperError as e:
            print(f"❌ Error: {e.message}", file=sys.stderr)
            sys.exit(1)

    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
