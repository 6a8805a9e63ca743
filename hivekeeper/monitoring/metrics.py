"""
Prometheus metrics for the cleanup engine.

Every counter and timer has a real-run and a dry-run variant with distinct
metric names, so dry-run activity never pollutes the real deletion totals.
"""

import logging
import time
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from prometheus_client import (
    CollectorRegistry, Counter, Histogram, generate_latest, start_http_server
)

METRIC_PREFIX = "hivekeeper"
DRY_RUN_PREFIX = "dry_run"
DURATION_SUFFIX = "duration_seconds"


class CleanupMetrics:
    """
    Counters and timers for bytes, objects, tables and partitions deleted.

    Provides:
    - Per-table byte and object counters for S3 deletions
    - Per-table counters for dropped Hive tables and partitions
    - Record outcome counters per lifecycle and status
    - Duration histograms for cleanup jobs, path deletions and catalog drops
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize the cleanup metrics.

        Args:
            registry: Optional Prometheus registry. If None, a private registry is created.
        """
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self._counters: Dict[Tuple[str, bool], Counter] = {}
        self._timers: Dict[Tuple[str, bool], Histogram] = {}
        self._server_port: Optional[int] = None
        self._initialize_metrics()

    def _initialize_metrics(self) -> None:
        for dry_run in (False, True):
            self._register('s3_bytes_deleted', 'Bytes deleted from S3', ['table'], dry_run)
            self._register('s3_objects_deleted', 'Objects deleted from S3', [], dry_run)
            self._register('hive_table_deleted', 'Hive tables dropped', ['table'], dry_run)
            self._register('hive_partition_deleted', 'Hive partitions dropped', ['table'], dry_run)

            self._register_timer('cleanup_job', 'Time spent in one cleanup job', [], dry_run)
            self._register_timer('s3_path_deletion', 'Time spent deleting one S3 path', ['table'], dry_run)
            self._register_timer('hive_table_deletion', 'Time spent dropping one Hive table', ['table'], dry_run)
            self._register_timer('hive_partition_deletion', 'Time spent dropping one Hive partition',
                                 ['table'], dry_run)

        self.cleanup_records_total = self.create_counter(
            f'{METRIC_PREFIX}_cleanup_records',
            'Housekeeping records reaching a terminal decision',
            ['lifecycle', 'status']
        )

    def _register(self, name: str, description: str, labelnames: List[str], dry_run: bool):
        self._counters[(name, dry_run)] = self.create_counter(
            self.metric_name(name, dry_run),
            f"{description} (dry run)" if dry_run else description,
            labelnames
        )

    def _register_timer(self, name: str, description: str, labelnames: List[str], dry_run: bool):
        self._timers[(name, dry_run)] = self.create_histogram(
            self.metric_name(f"{name}_{DURATION_SUFFIX}", dry_run),
            f"{description} (dry run)" if dry_run else description,
            labelnames
        )

    @staticmethod
    def metric_name(name: str, dry_run: bool = False) -> str:
        if dry_run:
            return f"{METRIC_PREFIX}_{DRY_RUN_PREFIX}_{name}"
        return f"{METRIC_PREFIX}_{name}"

    def create_counter(self, name: str, description: str,
                       labelnames: Optional[List[str]] = None) -> Counter:
        return Counter(name, description, labelnames or [], registry=self.registry)

    def create_histogram(self, name: str, description: str,
                         labelnames: Optional[List[str]] = None) -> Histogram:
        return Histogram(name, description, labelnames or [], registry=self.registry)

    def counter(self, name: str, dry_run: bool = False) -> Counter:
        return self._counters[(name, dry_run)]

    def timer(self, name: str, dry_run: bool = False) -> Histogram:
        return self._timers[(name, dry_run)]

    def report_bytes_deleted(self, bytes_deleted: int, table: str, dry_run: bool = False):
        self.counter('s3_bytes_deleted', dry_run).labels(table=table).inc(bytes_deleted)

    def report_objects_deleted(self, count: int, dry_run: bool = False):
        self.counter('s3_objects_deleted', dry_run).inc(count)

    def report_table_deleted(self, table: str, dry_run: bool = False):
        self.logger.info(f"Deleted hive table {table}")
        self.counter('hive_table_deleted', dry_run).labels(table=table).inc()

    def report_partition_deleted(self, table: str, dry_run: bool = False):
        self.logger.info(f"Deleted hive partition of {table}")
        self.counter('hive_partition_deleted', dry_run).labels(table=table).inc()

    def report_record_outcome(self, lifecycle: str, status: str):
        self.cleanup_records_total.labels(lifecycle=lifecycle, status=status).inc()

    def observe_duration(self, name: str, seconds: float, dry_run: bool = False, **labels):
        timer = self.timer(name, dry_run)
        if labels:
            timer = timer.labels(**labels)
        timer.observe(seconds)

    @contextmanager
    def timed(self, name: str, dry_run: bool = False, **labels):
        """Observe the wall time of the block, whether or not it raises."""
        start_time = time.time()
        try:
            yield
        finally:
            self.observe_duration(name, time.time() - start_time, dry_run, **labels)

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a counter sample, 0.0 if it has not been touched."""
        value = self.registry.get_sample_value(f"{name}_total", labels or {})
        return value or 0.0

    def timing_count(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Number of observations recorded by a timer."""
        value = self.registry.get_sample_value(f"{name}_count", labels or {})
        return value or 0.0

    def render_latest(self) -> bytes:
        return generate_latest(self.registry)

    def start_server(self, port: int):
        """Expose the registry over HTTP; a second call for the same port is ignored."""
        if self._server_port == port:
            return
        self.logger.info(f"Serving metrics on port {port}")
        start_http_server(port, registry=self.registry)
        self._server_port = port
