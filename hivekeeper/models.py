"""
Data models for the cleanup engine.

This module contains the housekeeping record, its status enums and the
paging value types shared by the repository, handlers and services.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional


class HousekeepingStatus(Enum):
    """Persisted status of a housekeeping record."""
    SCHEDULED = "SCHEDULED"
    DELETED = "DELETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    DISABLED = "DISABLED"


ELIGIBLE_STATUSES = (HousekeepingStatus.SCHEDULED, HousekeepingStatus.FAILED)


class HistoryLabel(Enum):
    """Labels written to the audit history; a superset of the statuses."""
    SCHEDULED = "SCHEDULED"
    DELETED = "DELETED"
    FAILED = "FAILED"
    FAILED_TO_DELETE = "FAILED_TO_DELETE"
    SKIPPED = "SKIPPED"
    DISABLED = "DISABLED"

    @classmethod
    def for_status(cls, status: HousekeepingStatus) -> "HistoryLabel":
        return cls(status.value)


class LifecycleKind(Enum):
    """Which retention semantics (and record handler) apply to a record."""
    EXPIRED = "EXPIRED"
    UNREFERENCED = "UNREFERENCED"

    @property
    def table_property(self) -> str:
        """Catalog table property that opts a table into this lifecycle."""
        return _TABLE_PROPERTIES[self]


_TABLE_PROPERTIES = {
    LifecycleKind.EXPIRED: "beekeeper.remove.expired.data",
    LifecycleKind.UNREFERENCED: "beekeeper.remove.unreferenced.data",
}


@dataclass
class HousekeepingRecord:
    """
    The unit of work for the cleanup engine.

    A record either targets a bare path (UNREFERENCED), a whole table or a
    single partition (EXPIRED). ``partition_name`` is fixed at creation and
    distinguishes partition-level records from table-level ones.
    """
    path: str
    database_name: str
    table_name: str
    creation_timestamp: datetime
    cleanup_delay: timedelta
    lifecycle: LifecycleKind
    partition_name: Optional[str] = None
    status: HousekeepingStatus = HousekeepingStatus.SCHEDULED
    cleanup_attempts: int = 0
    client_id: Optional[str] = None
    modified_timestamp: Optional[datetime] = None
    id: Optional[int] = None
    cleanup_timestamp: datetime = field(init=False)

    def __post_init__(self):
        self.cleanup_timestamp = self.creation_timestamp + self.cleanup_delay

    def set_cleanup_delay(self, cleanup_delay: timedelta):
        """Set the delay and recompute the cleanup timestamp."""
        self.cleanup_delay = cleanup_delay
        self.cleanup_timestamp = self.creation_timestamp + cleanup_delay

    @property
    def is_partition(self) -> bool:
        return self.partition_name is not None

    @property
    def qualified_table_name(self) -> str:
        return f"{self.database_name}.{self.table_name}"


@dataclass(frozen=True)
class PageRequest:
    """A window of ``size`` records starting at ``offset`` in repository order."""
    offset: int
    size: int

    def advance(self, count: int) -> "PageRequest":
        """Move the window past ``count`` records that stay in the eligible set."""
        return PageRequest(self.offset + count, self.size)

    @classmethod
    def first(cls, size: int) -> "PageRequest":
        if size <= 0:
            raise ValueError("page size must be positive")
        return cls(0, size)


@dataclass
class Page:
    """A page of eligible records returned by the repository."""
    records: List[HousekeepingRecord]
    request: PageRequest

    @property
    def is_last(self) -> bool:
        """A short (or empty) page ends the scan."""
        return len(self.records) < self.request.size

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class CleanupDecision:
    """Outcome of handling a single record."""
    status: Optional[HousekeepingStatus]
    bytes_freed: int = 0
    error: Optional[str] = None
    deferred: bool = False
    record_history: bool = True
    history_label: Optional[HistoryLabel] = None

    @property
    def label(self) -> Optional[HistoryLabel]:
        if self.history_label is not None:
            return self.history_label
        return HistoryLabel.for_status(self.status) if self.status else None

    @classmethod
    def defer(cls) -> "CleanupDecision":
        return cls(status=None, deferred=True, record_history=False)
