"""
Handler for UNREFERENCED records: paths orphaned by metadata operations.
"""

import structlog

from hivekeeper.errors import HivekeeperError, PartialDeletionError
from hivekeeper.handlers.base import RecordHandler
from hivekeeper.models import CleanupDecision, HousekeepingRecord, HousekeepingStatus, LifecycleKind
from hivekeeper.storage.paths import valid_table_path

logger = structlog.get_logger(__name__)


class UnreferencedPathHandler(RecordHandler):
    """Deletes the path of a record; there is no catalog work for this lifecycle."""

    lifecycle = LifecycleKind.UNREFERENCED

    def decide(self, record: HousekeepingRecord, dry_run: bool) -> CleanupDecision:
        if not valid_table_path(record.path):
            logger.warning("invalid_path_skipped", path=record.path)
            return CleanupDecision(status=HousekeepingStatus.SKIPPED)

        logger.info("cleaning_path", path=record.path, dry_run=dry_run)
        try:
            bytes_freed = self.path_cleaner.clean(
                record.path,
                table_name=record.table_name,
                metric_table=record.qualified_table_name,
                dry_run=dry_run,
            )
        except PartialDeletionError as e:
            logger.warning("partial_path_deletion", path=record.path,
                           undeleted=len(e.undeleted_keys), bytes_freed=e.bytes_freed)
            return CleanupDecision(status=HousekeepingStatus.FAILED,
                                   bytes_freed=e.bytes_freed, error=str(e))
        except HivekeeperError as e:
            logger.warning("path_cleanup_failed", path=record.path, error=str(e))
            return CleanupDecision(status=HousekeepingStatus.FAILED, error=str(e))

        return CleanupDecision(status=HousekeepingStatus.DELETED, bytes_freed=bytes_freed)
