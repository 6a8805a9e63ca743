"""
Unit tests for the cleanup metrics.
"""

import pytest
from prometheus_client import CollectorRegistry

from hivekeeper.catalog.metadata_cleaner import MetadataCleaner
from hivekeeper.monitoring import metrics as metrics_module
from hivekeeper.monitoring.metrics import CleanupMetrics
from hivekeeper.service import PagingCleanupService
from hivekeeper.storage.path_cleaner import PathCleaner
from hivekeeper.storage.path_store import PathStore
from tests.fakes import BUCKET, NOW


class TestCleanupMetrics:
    """Test cases for CleanupMetrics."""

    def test_initialization_with_custom_registry(self):
        """Test metrics register against the given registry."""
        registry = CollectorRegistry()
        metrics = CleanupMetrics(registry=registry)

        assert metrics.registry is registry

    def test_metric_names(self):
        """Test real-run and dry-run metric names differ."""
        assert CleanupMetrics.metric_name("s3_bytes_deleted") == "hivekeeper_s3_bytes_deleted"
        assert CleanupMetrics.metric_name("s3_bytes_deleted", dry_run=True) == "hivekeeper_dry_run_s3_bytes_deleted"

    def test_dry_run_counters_are_separate(self, metrics):
        """Test dry-run deletions never count towards the real totals."""
        metrics.report_bytes_deleted(100, "db.table")
        metrics.report_bytes_deleted(7, "db.table", dry_run=True)
        metrics.report_objects_deleted(3)

        assert metrics.sample("hivekeeper_s3_bytes_deleted", {"table": "db.table"}) == 100
        assert metrics.sample("hivekeeper_dry_run_s3_bytes_deleted", {"table": "db.table"}) == 7
        assert metrics.sample("hivekeeper_s3_objects_deleted") == 3
        assert metrics.sample("hivekeeper_dry_run_s3_objects_deleted") == 0

    def test_record_outcomes(self, metrics):
        """Test record outcomes are counted per lifecycle and status."""
        metrics.report_record_outcome("EXPIRED", "DELETED")
        metrics.report_record_outcome("EXPIRED", "DELETED")

        assert metrics.sample("hivekeeper_cleanup_records", {"lifecycle": "EXPIRED", "status": "DELETED"}) == 2

    def test_render_latest(self, metrics):
        """Test the exposition output contains reported samples."""
        metrics.report_table_deleted("db.table")

        output = metrics.render_latest().decode()

        assert 'hivekeeper_hive_table_deleted_total{table="db.table"} 1.0' in output

    def test_start_server_once_per_port(self, metrics, monkeypatch):
        """Test the metrics server is started only once for a port."""
        calls = []
        monkeypatch.setattr(metrics_module, "start_http_server",
                            lambda port, registry: calls.append((port, registry)))

        metrics.start_server(9100)
        metrics.start_server(9100)

        assert calls == [(9100, metrics.registry)]


class TestTimers:
    """Test duration histograms."""

    def test_timed_block_is_observed(self, metrics):
        """Test a timed block adds one observation to the real-run histogram."""
        with metrics.timed("s3_path_deletion", table="db.table"):
            pass

        labels = {"table": "db.table"}
        assert metrics.timing_count("hivekeeper_s3_path_deletion_duration_seconds", labels) == 1
        assert metrics.timing_count("hivekeeper_dry_run_s3_path_deletion_duration_seconds", labels) == 0

    def test_timed_block_is_observed_when_it_raises(self, metrics):
        """Test a failing block is still timed."""
        with pytest.raises(RuntimeError):
            with metrics.timed("cleanup_job", dry_run=True):
                raise RuntimeError("boom")

        assert metrics.timing_count("hivekeeper_dry_run_cleanup_job_duration_seconds") == 1
        assert metrics.timing_count("hivekeeper_cleanup_job_duration_seconds") == 0

    def test_cleanup_job_is_timed(self, repository, metrics):
        """Test each cleanup job is timed under its run mode."""
        service = PagingCleanupService([], repository, metrics=metrics)

        service.clean_up(NOW)
        service.clean_up(NOW, dry_run=True)
        service.clean_up(NOW, dry_run=True)

        assert metrics.timing_count("hivekeeper_cleanup_job_duration_seconds") == 1
        assert metrics.timing_count("hivekeeper_dry_run_cleanup_job_duration_seconds") == 2

    def test_path_deletion_is_timed(self, store, metrics):
        """Test each path deletion is timed per table."""
        store.put(BUCKET, "table/partition/a", 10)
        cleaner = PathCleaner(PathStore(store), metrics=metrics)

        cleaner.clean("s3://bucket/table/partition", table_name="table", metric_table="db.table")

        assert metrics.timing_count("hivekeeper_s3_path_deletion_duration_seconds", {"table": "db.table"}) == 1

    def test_catalog_drops_are_timed(self, catalog, metrics):
        """Test table and partition drops are timed, with dry runs kept apart."""
        catalog.add_table("db", "table", partitions=["p=1"])
        cleaner = MetadataCleaner(catalog, metrics=metrics)
        labels = {"table": "db.table"}

        cleaner.drop_partition("db", "table", "p=1", dry_run=True)
        cleaner.drop_partition("db", "table", "p=1")
        cleaner.drop_table("db", "table")

        assert metrics.timing_count("hivekeeper_dry_run_hive_partition_deletion_duration_seconds", labels) == 1
        assert metrics.timing_count("hivekeeper_hive_partition_deletion_duration_seconds", labels) == 1
        assert metrics.timing_count("hivekeeper_hive_table_deletion_duration_seconds", labels) == 1
        assert metrics.timing_count("hivekeeper_dry_run_hive_table_deletion_duration_seconds", labels) == 0
