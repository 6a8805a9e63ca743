"""
Handler for EXPIRED records: tables and partitions past their retention.

Partition records drop the partition and then delete its data. Table records
wait until no partition records of the table remain eligible, and are only
dropped when the table opts in through its expired-data property.
"""

from typing import Optional

import structlog

from hivekeeper.catalog.metadata_cleaner import MetadataCleaner
from hivekeeper.errors import HivekeeperError, ManagedFormatError, PartialDeletionError
from hivekeeper.handlers.base import RecordHandler
from hivekeeper.models import (
    CleanupDecision, HistoryLabel, HousekeepingRecord, HousekeepingStatus, LifecycleKind
)
from hivekeeper.monitoring.history import HistoryRecorder
from hivekeeper.monitoring.metrics import CleanupMetrics
from hivekeeper.repository import HousekeepingRepository
from hivekeeper.storage.path_cleaner import PathCleaner
from hivekeeper.storage.paths import valid_partition_path, valid_table_path

logger = structlog.get_logger(__name__)


def _deletion_enabled(properties: dict) -> bool:
    value = properties.get(LifecycleKind.EXPIRED.table_property)
    return value is not None and str(value).strip().lower() == "true"


class ExpiredMetadataHandler(RecordHandler):
    """Drops expired tables and partitions from the catalog and deletes their data."""

    lifecycle = LifecycleKind.EXPIRED

    def __init__(self, repository: HousekeepingRepository, path_cleaner: PathCleaner,
                 metadata_cleaner: MetadataCleaner, history: Optional[HistoryRecorder] = None,
                 metrics: Optional[CleanupMetrics] = None):
        super().__init__(repository, path_cleaner, history=history, metrics=metrics)
        self.metadata_cleaner = metadata_cleaner

    def decide(self, record: HousekeepingRecord, dry_run: bool) -> CleanupDecision:
        if record.is_partition:
            return self._decide_partition(record, dry_run)
        return self._decide_table(record, dry_run)

    def _decide_partition(self, record: HousekeepingRecord, dry_run: bool) -> CleanupDecision:
        if not valid_partition_path(record.path):
            logger.warning("invalid_partition_path_skipped", path=record.path,
                           table=record.qualified_table_name)
            return CleanupDecision(status=HousekeepingStatus.SKIPPED)

        try:
            table_exists = self.metadata_cleaner.table_exists(record.database_name, record.table_name)
        except HivekeeperError as e:
            return self._failed(record, e)

        if table_exists:
            try:
                self.metadata_cleaner.drop_partition(
                    record.database_name, record.table_name, record.partition_name, dry_run=dry_run
                )
            except HivekeeperError as e:
                return self._failed(record, e, HistoryLabel.FAILED_TO_DELETE)
        else:
            logger.info("partition_table_missing", table=record.qualified_table_name,
                        partition=record.partition_name)

        return self._clean_path(record, dry_run)

    def _decide_table(self, record: HousekeepingRecord, dry_run: bool) -> CleanupDecision:
        partitions = self.repository.count_partitions_registered(record.database_name, record.table_name)
        if partitions > 0:
            logger.info("table_has_registered_partitions", table=record.qualified_table_name,
                        partitions=partitions)
            return CleanupDecision.defer()

        try:
            properties = self.metadata_cleaner.get_table_properties(record.database_name, record.table_name)
        except ManagedFormatError as e:
            logger.warning("managed_format_table_skipped", table=record.qualified_table_name, error=str(e))
            return CleanupDecision(status=HousekeepingStatus.SKIPPED, error=str(e), record_history=False)
        except HivekeeperError as e:
            return self._failed(record, e)

        if not _deletion_enabled(properties):
            logger.info("table_deletion_disabled", table=record.qualified_table_name,
                        property=LifecycleKind.EXPIRED.table_property)
            return CleanupDecision(status=HousekeepingStatus.SKIPPED)

        if not valid_table_path(record.path):
            logger.warning("invalid_table_path_skipped", path=record.path,
                           table=record.qualified_table_name)
            return CleanupDecision(status=HousekeepingStatus.SKIPPED)

        try:
            table_exists = self.metadata_cleaner.table_exists(record.database_name, record.table_name)
        except HivekeeperError as e:
            return self._failed(record, e)

        if not table_exists:
            logger.info("table_already_dropped", table=record.qualified_table_name)
            return CleanupDecision(status=HousekeepingStatus.DELETED)

        try:
            self.metadata_cleaner.drop_table(record.database_name, record.table_name, dry_run=dry_run)
        except HivekeeperError as e:
            return self._failed(record, e, HistoryLabel.FAILED_TO_DELETE)

        return self._clean_path(record, dry_run)

    def _clean_path(self, record: HousekeepingRecord, dry_run: bool) -> CleanupDecision:
        try:
            bytes_freed = self.path_cleaner.clean(
                record.path,
                table_name=record.table_name,
                metric_table=record.qualified_table_name,
                dry_run=dry_run,
            )
        except PartialDeletionError as e:
            decision = self._failed(record, e)
            decision.bytes_freed = e.bytes_freed
            return decision
        except HivekeeperError as e:
            return self._failed(record, e)
        return CleanupDecision(status=HousekeepingStatus.DELETED, bytes_freed=bytes_freed)

    @staticmethod
    def _failed(record: HousekeepingRecord, error: Exception,
                label: Optional[HistoryLabel] = None) -> CleanupDecision:
        logger.warning("metadata_cleanup_failed", table=record.qualified_table_name,
                       partition=record.partition_name, path=record.path, error=str(error))
        return CleanupDecision(status=HousekeepingStatus.FAILED, error=str(error), history_label=label)

    def _apply(self, record: HousekeepingRecord, decision: CleanupDecision):
        super()._apply(record, decision)
        if not record.is_partition and decision.status is HousekeepingStatus.DELETED:
            self.repository.delete_child_partition_records(record.database_name, record.table_name)
