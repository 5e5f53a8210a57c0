"""
Logging setup and helpers for the category grouper.

structlog renders every event, either as console lines for interactive
runs or as JSON for log shipping. The helpers here cover what the CLI and
the clustering engine report:
- the run id shared by all events of one CLI invocation
- timed stages (clustering, naming) with items per second
- embedding progress every few batches
- process memory after the heavy numeric steps
"""

import contextlib
import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Optional

import psutil
import structlog
from structlog.types import EventDict, Processor

LOG_FILE_MAX_BYTES = 100 * 1024 * 1024
LOG_FILE_BACKUPS = 5


# =============================================================================
# Setup
# =============================================================================


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    log_file: Optional[str] = None,
    service_name: str = "category-grouper",
) -> None:
    """
    Route stdlib logging and structlog through one pipeline.

    Args:
        log_level: Level name, e.g. "DEBUG" or "WARNING"
        log_format: "json" for one JSON object per line, anything else for console output
        log_file: Also write to this file, rotated at 100MB
        service_name: Value of the "service" field on every event
    """
    level = getattr(logging, log_level.upper())
    root = logging.getLogger()

    # basicConfig is a no-op once the root logger has handlers
    logging.basicConfig(format="%(message)s", level=level)
    root.setLevel(level)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        )
        rotating.setLevel(level)
        root.addHandler(rotating)

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_service_context(service_name),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_service_context(service_name: str) -> Processor:
    """Processor stamping the service name on each event."""

    def stamp_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service_name)
        return event_dict

    return stamp_service


# =============================================================================
# Run id
# =============================================================================


class LogContext:
    """Run id bound into loggers created while it is set."""

    _correlation_id: Optional[str] = None

    @classmethod
    def set_correlation_id(cls, correlation_id: str) -> None:
        cls._correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> Optional[str]:
        return cls._correlation_id

    @classmethod
    def clear_correlation_id(cls) -> None:
        cls._correlation_id = None

    @classmethod
    @contextlib.contextmanager
    def correlation_context(cls, correlation_id: str):
        """
        Set the run id for the duration of a block, then restore the outer one.

        Example:
            with LogContext.correlation_context("index-3f9c0a1e"):
                GrouperCLI(settings).index("jobs.csv")
        """
        outer = cls.get_correlation_id()
        cls.set_correlation_id(correlation_id)
        try:
            yield
        finally:
            cls._correlation_id = outer


def get_logger(name: str) -> structlog.BoundLogger:
    """structlog logger for a module, carrying the current run id if any."""
    logger = structlog.get_logger(name)
    run_id = LogContext.get_correlation_id()
    return logger.bind(correlation_id=run_id) if run_id else logger


# =============================================================================
# Stage timing
# =============================================================================


class PerformanceLogger:
    """
    Times one stage of a run.

    Emits "operation_started" at debug level on entry and "operation_completed"
    (or "operation_failed" with the error) on exit. With item_count set, the
    completion event also reports items per second.

    Example:
        with PerformanceLogger("density_clustering", logger=logger, item_count=len(items)):
            raw = extract_clusters(mst, len(items), min_cluster_size)
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.BoundLogger] = None,
        log_level: str = "info",
        item_count: Optional[int] = None,
        **extra_context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.log_level = log_level
        self.item_count = item_count
        self.extra_context = extra_context
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        self.logger.debug("operation_started", operation=self.operation, **self.extra_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end_time = time.perf_counter()
        fields = self._fields(self.elapsed_time)

        if exc_type is None:
            getattr(self.logger, self.log_level)("operation_completed", **fields)
            return

        self.logger.error(
            "operation_failed",
            error=str(exc_val),
            error_type=exc_type.__name__,
            **fields,
        )

    @property
    def elapsed_time(self) -> float:
        """Seconds since entry; keeps counting until the block exits."""
        if self.start_time is None:
            return 0.0
        return (self.end_time or time.perf_counter()) - self.start_time

    def _fields(self, duration: float) -> dict[str, Any]:
        fields = {"operation": self.operation, "duration_seconds": round(duration, 3)}
        if self.item_count and duration > 0:
            fields["item_count"] = self.item_count
            fields["items_per_second"] = round(self.item_count / duration, 2)
        fields.update(self.extra_context)
        return fields


# =============================================================================
# Embedding progress
# =============================================================================


class BatchLogger:
    """
    Progress events for a long loop over items.

    "batch_progress" is emitted once at least log_interval items have been
    processed since the last event, and always when the total is reached.
    A resumed run passes the items already done as initial_count.
    """

    def __init__(
        self,
        total_items: int,
        operation: str,
        log_interval: int = 100,
        logger: Optional[structlog.BoundLogger] = None,
        initial_count: int = 0,
    ):
        self.total_items = total_items
        self.operation = operation
        self.log_interval = log_interval
        self.logger = logger or get_logger(__name__)
        self.processed_items = initial_count
        self._started = time.perf_counter()
        self._logged_at = initial_count

    def update(self, count: int = 1) -> None:
        """Record count more processed items."""
        self.processed_items += count

        due = self.processed_items - self._logged_at >= self.log_interval
        if due or self.processed_items >= self.total_items:
            self._report()

    def complete(self) -> None:
        """Emit "batch_completed" with overall throughput."""
        elapsed = time.perf_counter() - self._started
        self.logger.info(
            "batch_completed",
            operation=self.operation,
            total_items=self.processed_items,
            duration_seconds=round(elapsed, 3),
            items_per_second=round(self.processed_items / elapsed, 2) if elapsed > 0 else 0,
        )

    def _report(self) -> None:
        percent = 100.0 * self.processed_items / self.total_items if self.total_items else 0.0
        self.logger.info(
            "batch_progress",
            operation=self.operation,
            processed=self.processed_items,
            total=self.total_items,
            progress_pct=round(percent, 1),
            elapsed_seconds=round(time.perf_counter() - self._started, 1),
        )
        self._logged_at = self.processed_items


# =============================================================================
# Process resources
# =============================================================================


class MetricsLogger:
    """Reports this process's CPU and memory use via psutil."""

    def __init__(self, logger: Optional[structlog.BoundLogger] = None):
        self.logger = logger or get_logger(__name__)
        self.process = psutil.Process()

    def log_cpu_memory(self, context: Optional[str] = None) -> dict[str, Any]:
        """
        Emit "cpu_memory_metrics" and return the same values.

        The distance matrix is n x n floats, so memory_mb after clustering
        tracks input size closely.
        """
        with self.process.oneshot():
            metrics: dict[str, Any] = {
                "cpu_percent": self.process.cpu_percent(),
                "memory_mb": round(self.process.memory_info().rss / 2**20, 1),
                "memory_percent": round(self.process.memory_percent(), 2),
            }
        if context:
            metrics["context"] = context

        self.logger.info("cpu_memory_metrics", **metrics)
        return metrics


# =============================================================================
# Error reporting
# =============================================================================


@contextlib.contextmanager
def log_exceptions(
    logger: Optional[structlog.BoundLogger] = None,
    operation: Optional[str] = None,
    reraise: bool = True,
):
    """
    Log any exception leaving the block as "exception_caught" with its traceback.

    Example:
        with log_exceptions(logger=logger, operation="cluster"):
            status = cli.cluster()
    """
    try:
        yield
    except Exception as e:
        context = {"operation": operation} if operation else {}
        (logger or get_logger(__name__)).error(
            "exception_caught",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
            **context,
        )
        if reraise:
            raise
