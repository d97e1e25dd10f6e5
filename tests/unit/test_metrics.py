"""Unit tests for Prometheus metrics."""

from pathlib import Path

from prometheus_client import CollectorRegistry

from org_archiver.metrics import ArchiverMetrics


class TestArchiverMetrics:
    """Tests for ArchiverMetrics class."""

    def test_init_uses_private_registry(self):
        """Test each instance registers its metrics on its own registry."""
        first = ArchiverMetrics()
        second = ArchiverMetrics()
        assert first.registry is not second.registry

    def test_init_with_registry(self):
        """Test an explicit registry is used."""
        registry = CollectorRegistry()
        metrics = ArchiverMetrics(registry=registry)
        assert metrics.registry is registry

    def test_record_batch_committed(self):
        """Test recording a committed batch."""
        metrics = ArchiverMetrics()

        metrics.record_batch_committed("Organizations", record_count=500, duration_seconds=0.4)
        metrics.record_batch_committed("Organizations", record_count=2, duration_seconds=0.1)

        labels = {"collection": "Organizations"}
        registry = metrics.registry
        assert registry.get_sample_value("org_archiver_records_archived_total", labels) == 502.0
        assert registry.get_sample_value("org_archiver_batches_committed_total", labels) == 2.0
        assert registry.get_sample_value("org_archiver_batch_commit_seconds_count", labels) == 2.0

    def test_record_commit_failure(self):
        """Test recording commit failures per sink."""
        metrics = ArchiverMetrics()

        metrics.record_commit_failure("Organizations", "archive")

        assert (
            metrics.registry.get_sample_value(
                "org_archiver_commit_failures_total",
                {"collection": "Organizations", "sink": "archive"},
            )
            == 1.0
        )

    def test_record_run_status_success(self):
        """Test successful runs update the last success timestamp."""
        metrics = ArchiverMetrics()

        metrics.record_run_status("Organizations", "success")

        registry = metrics.registry
        assert (
            registry.get_sample_value(
                "org_archiver_runs_total", {"collection": "Organizations", "status": "success"}
            )
            == 1.0
        )
        assert (
            registry.get_sample_value(
                "org_archiver_last_success_timestamp", {"collection": "Organizations"}
            )
            > 0
        )

    def test_record_run_status_partial(self):
        """Test failed runs leave the last success timestamp unset."""
        metrics = ArchiverMetrics()

        metrics.record_run_status("Organizations", "partial")

        assert (
            metrics.registry.get_sample_value(
                "org_archiver_last_success_timestamp", {"collection": "Organizations"}
            )
            is None
        )

    def test_get_metrics(self):
        """Test metrics are exposed in Prometheus text format."""
        metrics = ArchiverMetrics()
        metrics.record_batch_committed("Organizations", record_count=1, duration_seconds=0.1)

        output = metrics.get_metrics()

        assert isinstance(output, bytes)
        assert b"org_archiver_records_archived_total" in output

    def test_write_textfile(self, tmp_path: Path):
        """Test metrics are written for the textfile collector."""
        metrics = ArchiverMetrics()
        metrics.record_run_status("Organizations", "fatal")
        path = tmp_path / "textfile" / "org_archiver.prom"

        metrics.write_textfile(path)

        content = path.read_text(encoding="utf-8")
        assert 'org_archiver_runs_total{collection="Organizations",status="fatal"} 1.0' in content
