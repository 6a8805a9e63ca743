"""
Deletion of a single housekeeping path from S3.

A path is either a single object (file case) or a prefix (directory case).
Directory deletes are issued in bounded batches; bytes freed are computed
only from the keys the store confirms deleted.
"""

import logging
from contextlib import nullcontext
from typing import List, Optional

from hivekeeper.errors import InvalidPathError, PartialDeletionError
from hivekeeper.monitoring.metrics import CleanupMetrics
from hivekeeper.storage.bytes_accountant import BytesAccountant
from hivekeeper.storage.path_store import PathStore
from hivekeeper.storage.paths import StoreURI, as_directory
from hivekeeper.storage.sentinel_pruner import SentinelPruner

DEFAULT_DELETE_BATCH_SIZE = 1000


class PathCleaner:
    """Deletes the objects behind a housekeeping path and reports bytes freed."""

    def __init__(self, path_store: PathStore, sentinel_pruner: Optional[SentinelPruner] = None,
                 metrics: Optional[CleanupMetrics] = None,
                 batch_size: int = DEFAULT_DELETE_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.path_store = path_store
        self.sentinel_pruner = sentinel_pruner or SentinelPruner(path_store)
        self.metrics = metrics
        self.batch_size = batch_size
        self.logger = logging.getLogger(__name__)

    def clean(self, path: str, table_name: Optional[str] = None,
              metric_table: Optional[str] = None, dry_run: bool = False) -> int:
        """
        Delete everything at ``path`` and return the number of bytes freed.

        Args:
            path: S3 URI of a file or a directory prefix.
            table_name: Table the path belongs to; bounds the sentinel ascent.
            metric_table: ``db.table`` label for the bytes and timing metrics.
            dry_run: Perform all reads but no deletes.

        Raises:
            InvalidPathError: ``path`` is not an S3 URI.
            PartialDeletionError: the store confirmed fewer deletes than
                requested. ``bytes_freed`` on the error holds the confirmed total.
            TransientStorageError: the store failed.
        """
        uri = StoreURI.parse(path)
        if not uri.key.strip("/"):
            raise InvalidPathError(path, "refusing to clean a bucket root")
        table = metric_table or table_name or uri.bucket
        with self._timed(table, dry_run):
            return self._clean(uri, table_name, table, dry_run)

    def _clean(self, uri: StoreURI, table_name: Optional[str], table: str, dry_run: bool) -> int:
        accountant = BytesAccountant()
        is_file = not uri.key.endswith("/") and self.path_store.exists(uri.bucket, uri.key)
        try:
            if is_file:
                self._delete_file(uri, accountant, dry_run)
            else:
                try:
                    self._delete_directory(uri, accountant, dry_run)
                    self._delete_own_sentinel(uri, dry_run)
                finally:
                    self._prune_ancestors(uri, table_name, dry_run)
        finally:
            self._report(accountant.bytes_freed, table, dry_run)
        return accountant.bytes_freed

    def _timed(self, table: str, dry_run: bool):
        if self.metrics:
            return self.metrics.timed("s3_path_deletion", dry_run, table=table)
        return nullcontext()

    def _delete_file(self, uri: StoreURI, accountant: BytesAccountant, dry_run: bool):
        accountant.remember_size(uri.key, self.path_store.size(uri.bucket, uri.key))
        self.path_store.delete_one(uri.bucket, uri.key, dry_run=dry_run)
        accountant.settle([uri.key])
        self._count_objects(1, dry_run)

    def _delete_directory(self, uri: StoreURI, accountant: BytesAccountant, dry_run: bool):
        prefix = as_directory(uri.key)
        keys: List[str] = []
        for summary in self.path_store.iter_objects(uri.bucket, prefix):
            accountant.remember_size(summary.key, summary.size)
            keys.append(summary.key)

        if not keys:
            self.logger.info(f"Nothing to delete at \"{uri.bucket}/{prefix}\"")
            return

        deleted: List[str] = []
        for start in range(0, len(keys), self.batch_size):
            batch = keys[start:start + self.batch_size]
            confirmed = self.path_store.delete_many(uri.bucket, batch, dry_run=dry_run)
            accountant.settle(confirmed)
            deleted.extend(confirmed)
        self._count_objects(len(deleted), dry_run)

        if len(deleted) < len(keys):
            confirmed_set = set(deleted)
            undeleted = [key for key in keys if key not in confirmed_set]
            raise PartialDeletionError(
                path=f"{uri.bucket}/{prefix}",
                undeleted_keys=undeleted,
                deleted_count=len(deleted),
                total_count=len(keys),
                bytes_freed=accountant.bytes_freed,
            )

    def _delete_own_sentinel(self, uri: StoreURI, dry_run: bool):
        try:
            self.sentinel_pruner.delete_sentinel(uri.bucket, uri.key, dry_run=dry_run)
        except Exception as e:
            self.logger.warning(f"Sentinel file for \"{uri.path}\" could not be deleted: {e}")

    def _prune_ancestors(self, uri: StoreURI, table_name: Optional[str], dry_run: bool):
        try:
            self.sentinel_pruner.prune_ancestors(uri.bucket, uri.key, table_name, dry_run=dry_run)
        except Exception as e:
            self.logger.warning(f"Parent sentinel file(s) for \"{uri.path}\" could not be deleted: {e}")

    def _count_objects(self, count: int, dry_run: bool):
        if self.metrics and count:
            self.metrics.report_objects_deleted(count, dry_run=dry_run)

    def _report(self, bytes_freed: int, table: str, dry_run: bool):
        if self.metrics and bytes_freed > 0:
            self.metrics.report_bytes_deleted(bytes_freed, table, dry_run=dry_run)
