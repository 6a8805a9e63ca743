"""
Shared plumbing for record handlers.

A handler turns one eligible housekeeping record into a ``CleanupDecision``
and, outside dry runs, applies it: attempts are incremented, the status is
persisted, history is written and the outcome is counted.
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from hivekeeper.models import CleanupDecision, HousekeepingRecord, HousekeepingStatus, LifecycleKind
from hivekeeper.monitoring.history import HistoryRecorder
from hivekeeper.monitoring.metrics import CleanupMetrics
from hivekeeper.repository import HousekeepingRepository
from hivekeeper.storage.path_cleaner import PathCleaner

logger = structlog.get_logger(__name__)


class RecordHandler(ABC):
    """Processes records of a single lifecycle kind."""

    lifecycle: LifecycleKind

    def __init__(self, repository: HousekeepingRepository, path_cleaner: PathCleaner,
                 history: Optional[HistoryRecorder] = None,
                 metrics: Optional[CleanupMetrics] = None):
        self.repository = repository
        self.path_cleaner = path_cleaner
        self.history = history
        self.metrics = metrics

    @abstractmethod
    def decide(self, record: HousekeepingRecord, dry_run: bool) -> CleanupDecision:
        """Run the cleanup calls for ``record`` and return what happened."""
        pass

    def process(self, record: HousekeepingRecord, dry_run: bool = False) -> CleanupDecision:
        """
        Handle one record end to end.

        Errors never escape: anything ``decide`` did not translate itself is
        logged and turned into a FAILED decision.
        """
        try:
            decision = self.decide(record, dry_run)
        except Exception as e:
            logger.exception("unexpected_record_failure", path=record.path,
                             table=record.qualified_table_name, error=str(e))
            decision = CleanupDecision(status=HousekeepingStatus.FAILED, error=str(e))

        if decision.deferred:
            logger.info("record_deferred", path=record.path, table=record.qualified_table_name)
            return decision
        if dry_run:
            logger.info("dry_run_decision", path=record.path,
                        status=decision.status.value, bytes_freed=decision.bytes_freed)
            return decision

        self._apply(record, decision)
        return decision

    def _apply(self, record: HousekeepingRecord, decision: CleanupDecision):
        record.cleanup_attempts += 1
        record.status = decision.status
        self.repository.save(record)
        if decision.record_history and self.history and decision.label:
            self.history.record(record, decision.label)
        if self.metrics:
            self.metrics.report_record_outcome(record.lifecycle.value, decision.status.value)
        logger.info(
            "record_processed",
            path=record.path,
            table=record.qualified_table_name,
            status=decision.status.value,
            attempts=record.cleanup_attempts,
            bytes_freed=decision.bytes_freed,
            error=decision.error,
        )
