"""Prometheus metrics for monitoring archival runs."""

import time
from pathlib import Path
from typing import Optional

import structlog
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    write_to_textfile,
)

from utils.logging import get_logger


class ArchiverMetrics:
    """Prometheus metrics for the archiver.

    A one-shot run has nothing to scrape, so metrics are written to a file
    picked up by node exporter's textfile collector.
    """

    def __init__(
        self,
        logger: Optional[structlog.BoundLogger] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        """Initialize metrics.

        Args:
            logger: Optional logger instance
            registry: Optional Prometheus registry (a fresh one by default)
        """
        self.logger = logger or get_logger("metrics")
        self.registry = registry or CollectorRegistry()

        self.records_archived_total = Counter(
            "org_archiver_records_archived_total",
            "Total number of documents archived and deleted",
            ["collection"],
            registry=self.registry,
        )

        self.batches_committed_total = Counter(
            "org_archiver_batches_committed_total",
            "Total number of batches committed to both sinks",
            ["collection"],
            registry=self.registry,
        )

        self.commit_failures_total = Counter(
            "org_archiver_commit_failures_total",
            "Total number of batch commits that failed after retries",
            ["collection", "sink"],  # sink: archive, source
            registry=self.registry,
        )

        self.runs_total = Counter(
            "org_archiver_runs_total",
            "Total number of archival runs",
            ["collection", "status"],  # success, partial, fatal
            registry=self.registry,
        )

        self.batch_commit_seconds = Histogram(
            "org_archiver_batch_commit_seconds",
            "Duration of committing one batch to both sinks",
            ["collection"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry,
        )

        self.last_success_timestamp = Gauge(
            "org_archiver_last_success_timestamp",
            "Unix timestamp of the last successful archival run",
            ["collection"],
            registry=self.registry,
        )

    def record_batch_committed(
        self, collection: str, record_count: int, duration_seconds: float
    ) -> None:
        """Record a batch committed to both sinks.

        Args:
            collection: Live collection name
            record_count: Number of documents in the batch
            duration_seconds: Time taken by both commits
        """
        self.batches_committed_total.labels(collection=collection).inc()
        self.records_archived_total.labels(collection=collection).inc(record_count)
        self.batch_commit_seconds.labels(collection=collection).observe(duration_seconds)

    def record_commit_failure(self, collection: str, sink: str) -> None:
        """Record a commit failure for one sink."""
        self.commit_failures_total.labels(collection=collection, sink=sink).inc()

    def record_run_status(self, collection: str, status: str) -> None:
        """Record run status.

        Args:
            collection: Live collection name
            status: Run status (success, partial, fatal)
        """
        self.runs_total.labels(collection=collection, status=status).inc()
        if status == "success":
            self.last_success_timestamp.labels(collection=collection).set(time.time())

    def get_metrics(self) -> bytes:
        """Get Prometheus metrics in text format."""
        return generate_latest(self.registry)

    def write_textfile(self, path: Path) -> None:
        """Write metrics for the textfile collector.

        Args:
            path: Destination file (written atomically)
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(str(path), self.registry)
        self.logger.debug("Metrics written", path=str(path))
