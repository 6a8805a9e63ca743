"""
Cleanup services.

``PagingCleanupService`` walks the eligible housekeeping records page by page
and hands each one to the handler for its lifecycle. ``RepositoryCleanupService``
is the retention sweep that purges old DELETED rows.
"""

from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

import structlog

from hivekeeper.catalog.client import CatalogClient
from hivekeeper.catalog.metadata_cleaner import MetadataCleaner
from hivekeeper.errors import CleanupError, HivekeeperError
from hivekeeper.handlers import ExpiredMetadataHandler, RecordHandler, UnreferencedPathHandler
from hivekeeper.models import (
    ELIGIBLE_STATUSES, CleanupDecision, HousekeepingRecord, HousekeepingStatus, LifecycleKind, PageRequest
)
from hivekeeper.monitoring.history import HistoryRecorder, SqliteHistoryRecorder
from hivekeeper.monitoring.metrics import CleanupMetrics
from hivekeeper.repository import HousekeepingRepository, SqliteHousekeepingRepository
from hivekeeper.storage.client import Boto3ObjectStoreClient, ObjectStoreClient
from hivekeeper.storage.path_cleaner import PathCleaner
from hivekeeper.storage.path_store import PathStore

logger = structlog.get_logger(__name__)


@dataclass
class CleanupSummary:
    """Totals for one ``PagingCleanupService.clean_up`` invocation."""
    dry_run: bool
    started_at: datetime
    pages: int = 0
    records: int = 0
    deferred: int = 0
    unhandled: int = 0
    bytes_freed: int = 0
    statuses: Dict[str, int] = field(default_factory=dict)

    def count(self, decision: CleanupDecision):
        self.records += 1
        self.bytes_freed += decision.bytes_freed
        if decision.deferred:
            self.deferred += 1
        else:
            self.statuses[decision.status.value] = self.statuses.get(decision.status.value, 0) + 1

    def status_count(self, status: HousekeepingStatus) -> int:
        return self.statuses.get(status.value, 0)


def _still_eligible(decision: Optional[CleanupDecision]) -> bool:
    """Whether a record stays in the eligible set after a real-run pass."""
    if decision is None or decision.deferred:
        return True
    return decision.status in ELIGIBLE_STATUSES


class PagingCleanupService:
    """
    Drives record handlers over the eligible set, one page at a time.

    In a real run, records that reach DELETED or SKIPPED leave the eligible set,
    so the next page request starts at the same offset, moved on only past the
    records of this page that are still eligible (deferred, FAILED, or with no
    handler). In a dry run nothing changes status and the window moves on by a
    whole page. A short page ends the scan.
    """

    def __init__(self, handlers: Iterable[RecordHandler], repository: HousekeepingRepository,
                 page_size: int = 500, metrics: Optional[CleanupMetrics] = None):
        self.handlers: Dict[LifecycleKind, RecordHandler] = {h.lifecycle: h for h in handlers}
        self.repository = repository
        self.page_size = page_size
        self.metrics = metrics

    def clean_up(self, now: datetime, dry_run: bool = False) -> CleanupSummary:
        logger.info("cleanup_started", now=now.isoformat(), dry_run=dry_run,
                    lifecycles=[kind.value for kind in self.handlers])
        summary = CleanupSummary(dry_run=dry_run, started_at=datetime.now())
        try:
            with self._timed(dry_run):
                self._scan(now, dry_run, summary)
        except HivekeeperError:
            raise
        except Exception as e:
            logger.exception("cleanup_failed", error=str(e))
            raise CleanupError(f"Cleanup failed: {e}") from e

        logger.info("cleanup_finished", dry_run=dry_run, pages=summary.pages,
                    records=summary.records, deferred=summary.deferred,
                    bytes_freed=summary.bytes_freed, statuses=summary.statuses)
        return summary

    def _scan(self, now: datetime, dry_run: bool, summary: CleanupSummary):
        page_request = PageRequest.first(self.page_size)
        while True:
            page = self.repository.page_eligible(now, page_request)
            summary.pages += 1
            retained = 0
            for record in page.records:
                decision = self._handle(record, dry_run)
                if decision is None:
                    summary.unhandled += 1
                else:
                    summary.count(decision)
                if dry_run or _still_eligible(decision):
                    retained += 1

            if page.is_last:
                break
            page_request = page_request.advance(retained)

    def _timed(self, dry_run: bool):
        if self.metrics:
            return self.metrics.timed("cleanup_job", dry_run)
        return nullcontext()

    def _handle(self, record: HousekeepingRecord, dry_run: bool) -> Optional[CleanupDecision]:
        handler = self.handlers.get(record.lifecycle)
        if handler is None:
            logger.warning("no_handler_for_lifecycle", lifecycle=record.lifecycle.value, path=record.path)
            return None
        return handler.process(record, dry_run=dry_run)


class RepositoryCleanupService:
    """Retention sweep: removes DELETED records once they are old enough."""

    def __init__(self, repository: HousekeepingRepository, retention_period_days: int = 7):
        self.repository = repository
        self.retention_period = timedelta(days=retention_period_days)

    def purge(self, older_than: datetime) -> int:
        return self.repository.purge_deleted_older_than(older_than)

    def clean_up(self, now: datetime) -> int:
        cutoff = now - self.retention_period
        logger.info("repository_cleanup_started", cutoff=cutoff.isoformat())
        purged = self.purge(cutoff)
        logger.info("repository_cleanup_finished", purged=purged)
        return purged


@dataclass
class CleanupServices:
    paging: PagingCleanupService
    repository_cleanup: RepositoryCleanupService
    repository: HousekeepingRepository
    metrics: CleanupMetrics


def create_cleanup_services(config, object_store_client: Optional[ObjectStoreClient],
                            catalog_client: CatalogClient,
                            repository: Optional[HousekeepingRepository] = None,
                            history: Optional[HistoryRecorder] = None,
                            metrics: Optional[CleanupMetrics] = None) -> CleanupServices:
    """
    Wire the cleanup engine from a ``CleanupConfig`` and the two external clients.

    The sqlite repository and history recorder at ``config.db_path`` are used
    unless others are given. Without an object store client, a boto3 S3 client
    for ``config.aws_region`` is created.
    """
    if object_store_client is None:
        object_store_client = Boto3ObjectStoreClient(region=config.aws_region)
    repository = repository or SqliteHousekeepingRepository(config.db_path)
    history = history or SqliteHistoryRecorder(config.db_path)
    metrics = metrics or CleanupMetrics()

    path_cleaner = PathCleaner(PathStore(object_store_client), metrics=metrics,
                               batch_size=config.delete_batch_size)
    metadata_cleaner = MetadataCleaner(catalog_client, metrics=metrics)
    handlers = [
        UnreferencedPathHandler(repository, path_cleaner, history=history, metrics=metrics),
        ExpiredMetadataHandler(repository, path_cleaner, metadata_cleaner, history=history, metrics=metrics),
    ]
    return CleanupServices(
        paging=PagingCleanupService(handlers, repository, page_size=config.page_size, metrics=metrics),
        repository_cleanup=RepositoryCleanupService(repository, config.retention_period_days),
        repository=repository,
        metrics=metrics,
    )
