"""
Dry-run aware object store operations used by the path cleaner.

Reads always go to the store. In a dry run every delete becomes a no-op that
only logs what would have been removed.
"""

import logging
from typing import Iterator, List

from hivekeeper.storage.client import ObjectStoreClient, ObjectSummary


class PathStore:
    """Thin layer over an ``ObjectStoreClient`` adding pagination and dry runs."""

    def __init__(self, client: ObjectStoreClient):
        self.client = client
        self.logger = logging.getLogger(__name__)

    def exists(self, bucket: str, key: str) -> bool:
        return self.client.exists(bucket, key)

    def size(self, bucket: str, key: str) -> int:
        return self.client.head_size(bucket, key)

    def iter_objects(self, bucket: str, prefix: str) -> Iterator[ObjectSummary]:
        """Yield every object under ``prefix``, following continuation tokens."""
        token = None
        while True:
            page = self.client.list_objects(bucket, prefix, token)
            for summary in page.objects:
                yield summary
            token = page.continuation_token
            if not token:
                break

    def delete_one(self, bucket: str, key: str, dry_run: bool = False) -> None:
        if dry_run:
            self.logger.info(f"Dry run - deleting \"{bucket}/{key}\"")
            return
        self.logger.info(f"Deleting \"{bucket}/{key}\"")
        self.client.delete_one(bucket, key)

    def delete_many(self, bucket: str, keys: List[str], dry_run: bool = False) -> List[str]:
        """Delete one batch of keys and return the keys confirmed deleted."""
        if not keys:
            return []
        if dry_run:
            for key in keys:
                self.logger.info(f"Dry run - deleting \"{bucket}/{key}\"")
            return list(keys)
        for key in keys:
            self.logger.info(f"Deleting \"{bucket}/{key}\"")
        return self.client.delete_many(bucket, keys)
