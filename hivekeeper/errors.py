"""
Exception types raised by the cleanup engine.

Client adapters translate native client failures into these types at the
adapter boundary; record handlers turn them into cleanup decisions.
"""

from typing import List, Optional


class HivekeeperError(Exception):
    """Base class for all hivekeeper errors."""


class ConfigError(HivekeeperError):
    """Raised when the cleanup configuration cannot be loaded or validated."""


class InvalidPathError(HivekeeperError):
    """Raised when a housekeeping path does not parse as an S3 URI."""

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = path
        message = f"Could not create URI from path: '{path}'"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class TransientStorageError(HivekeeperError):
    """Network or service failure reported by the object store."""


class PartialDeletionError(HivekeeperError):
    """
    A batch delete confirmed fewer keys than requested.

    The bytes freed by the confirmed subset travel with the error so callers
    never lose the byte accounting on this path.
    """

    def __init__(self, path: str, undeleted_keys: List[str], deleted_count: int,
                 total_count: int, bytes_freed: int = 0):
        self.path = path
        self.undeleted_keys = list(undeleted_keys)
        self.deleted_count = deleted_count
        self.total_count = total_count
        self.bytes_freed = bytes_freed
        failed = ", ".join(f"'{key}'" for key in self.undeleted_keys)
        super().__init__(
            f'Not all files could be deleted at path "{path}"; deleted '
            f"{deleted_count}/{total_count} objects. Objects not deleted: {failed}."
        )


class CatalogError(HivekeeperError):
    """Failure reported by the table catalog (metastore) client."""


class ManagedFormatError(CatalogError):
    """The table uses a managed format (e.g. Iceberg) that is not cleaned here."""


class CleanupError(HivekeeperError):
    """A whole cleanup cycle failed unexpectedly."""
