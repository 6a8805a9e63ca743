"""
Removal of ``_$folder$`` sentinel markers left behind by Hadoop S3 connectors.

After a directory-style deletion the pruner walks up the key's ancestors and
removes the marker of every ancestor that has become empty, stopping at the
first ancestor that still holds data or at the table root.
"""

import logging
from typing import Optional

from hivekeeper.storage.path_store import PathStore
from hivekeeper.storage.paths import SEPARATOR, as_directory, parent_key, sentinel_key


class SentinelPruner:
    """Deletes empty-directory markers for a path and its emptied ancestors."""

    def __init__(self, path_store: PathStore):
        self.path_store = path_store
        self.logger = logging.getLogger(__name__)

    def delete_sentinel(self, bucket: str, key: str, dry_run: bool = False) -> bool:
        """Delete the zero-byte marker for ``key`` if there is one."""
        marker = sentinel_key(key)
        if not self.path_store.exists(bucket, marker):
            return False
        if self.path_store.size(bucket, marker) != 0:
            self.logger.warning(f"Not deleting \"{bucket}/{marker}\": sentinel file is not empty")
            return False
        self.path_store.delete_one(bucket, marker, dry_run=dry_run)
        return True

    def prune_ancestors(self, bucket: str, key: str, table_name: Optional[str],
                        dry_run: bool = False) -> int:
        """
        Ascend from the parent of ``key`` towards the table root.

        Returns the number of ancestors whose markers were considered removed.
        """
        pruned = 0
        child = key.rstrip(SEPARATOR)
        ancestor = parent_key(child)
        while ancestor and self._below_table_root(ancestor, table_name):
            if not self.is_empty(bucket, ancestor, child, dry_run=dry_run):
                self.logger.debug(f"Stopping sentinel ascent at non-empty \"{bucket}/{ancestor}\"")
                break
            self.delete_sentinel(bucket, ancestor, dry_run=dry_run)
            pruned += 1
            child = ancestor
            ancestor = parent_key(ancestor)
        return pruned

    def is_empty(self, bucket: str, ancestor: str, child: str, dry_run: bool = False) -> bool:
        """
        Whether nothing remains inside ``ancestor``.

        Keys that merely share a textual prefix (``partition_1`` vs
        ``partition_10``) do not occupy the ancestor. In a dry run the
        contents of ``child`` and its marker are treated as already gone.
        """
        child_dir = as_directory(child)
        child_marker = sentinel_key(child)
        for summary in self.path_store.iter_objects(bucket, ancestor):
            suffix = summary.key[len(ancestor):]
            if not suffix.startswith(SEPARATOR):
                continue
            if dry_run and (summary.key.startswith(child_dir) or summary.key == child_marker):
                continue
            return False
        return True

    @staticmethod
    def _below_table_root(ancestor: str, table_name: Optional[str]) -> bool:
        if not table_name:
            return False
        path = SEPARATOR + ancestor
        return f"{SEPARATOR}{table_name}{SEPARATOR}" in path and not path.endswith(SEPARATOR + table_name)
