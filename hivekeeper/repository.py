"""
Persistence of housekeeping records.

``HousekeepingRepository`` is the interface the cleanup engine depends on;
``SqliteHousekeepingRepository`` is the sqlite-backed implementation.
"""

import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import structlog

from hivekeeper.models import (
    HousekeepingRecord, HousekeepingStatus, LifecycleKind, Page, PageRequest
)

logger = structlog.get_logger(__name__)


class HousekeepingRepository(ABC):
    """Abstract store of housekeeping records."""

    @abstractmethod
    def page_eligible(self, now: datetime, page_request: PageRequest,
                      lifecycle: Optional[LifecycleKind] = None) -> Page:
        """
        Return one page of records eligible for cleanup at ``now``.

        Eligible means status SCHEDULED or FAILED and a cleanup timestamp at
        or before ``now``. Records are ordered by path, then id.
        """
        pass

    @abstractmethod
    def count_partitions_registered(self, database_name: str, table_name: str) -> int:
        """Number of SCHEDULED or FAILED partition records for a table."""
        pass

    @abstractmethod
    def save(self, record: HousekeepingRecord) -> HousekeepingRecord:
        """Insert or update ``record``."""
        pass

    @abstractmethod
    def purge_deleted_older_than(self, cutoff: datetime) -> int:
        """Delete DELETED records whose cleanup timestamp is before ``cutoff``."""
        pass

    @abstractmethod
    def delete_child_partition_records(self, database_name: str, table_name: str) -> int:
        """Remove leftover, non-DELETED partition records of a dropped table."""
        pass

    @abstractmethod
    def get(self, record_id: int) -> Optional[HousekeepingRecord]:
        pass

    def add(self, record: HousekeepingRecord) -> HousekeepingRecord:
        return self.save(record)


_COLUMNS = (
    "path", "database_name", "table_name", "partition_name", "housekeeping_status",
    "creation_timestamp", "modified_timestamp", "cleanup_timestamp",
    "cleanup_delay_seconds", "cleanup_attempts", "client_id", "lifecycle_type",
)

_ELIGIBLE = "housekeeping_status IN ('SCHEDULED', 'FAILED')"


def _ts(value: Optional[datetime]) -> Optional[str]:
    """
    Serialise a timestamp as naive UTC so stored values compare correctly as text.

    Aware values are converted to UTC; naive values are taken to be UTC already.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


class SqliteHousekeepingRepository(HousekeepingRepository):
    """Housekeeping records stored in a sqlite ``housekeeping_record`` table."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._create_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_schema(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS housekeeping_record (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    path TEXT NOT NULL,
                    database_name TEXT NOT NULL,
                    table_name TEXT NOT NULL,
                    partition_name TEXT,
                    housekeeping_status TEXT NOT NULL,
                    creation_timestamp TEXT NOT NULL,
                    modified_timestamp TEXT,
                    cleanup_timestamp TEXT NOT NULL,
                    cleanup_delay_seconds REAL NOT NULL,
                    cleanup_attempts INTEGER NOT NULL DEFAULT 0,
                    client_id TEXT,
                    lifecycle_type TEXT NOT NULL
                )
            """)
            # Path-only records are unique by path
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS ux_unreferenced_path
                ON housekeeping_record (path) WHERE lifecycle_type = 'UNREFERENCED'
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS ix_eligible
                ON housekeeping_record (housekeeping_status, cleanup_timestamp)
            """)

    def _row_to_record(self, row: sqlite3.Row) -> HousekeepingRecord:
        record = HousekeepingRecord(
            id=row["id"],
            path=row["path"],
            database_name=row["database_name"],
            table_name=row["table_name"],
            partition_name=row["partition_name"],
            status=HousekeepingStatus(row["housekeeping_status"]),
            creation_timestamp=datetime.fromisoformat(row["creation_timestamp"]),
            modified_timestamp=(
                datetime.fromisoformat(row["modified_timestamp"]) if row["modified_timestamp"] else None
            ),
            cleanup_delay=timedelta(seconds=row["cleanup_delay_seconds"]),
            cleanup_attempts=row["cleanup_attempts"],
            client_id=row["client_id"],
            lifecycle=LifecycleKind(row["lifecycle_type"]),
        )
        return record

    def _values(self, record: HousekeepingRecord) -> tuple:
        return (
            record.path,
            record.database_name,
            record.table_name,
            record.partition_name,
            record.status.value,
            _ts(record.creation_timestamp),
            _ts(record.modified_timestamp),
            _ts(record.cleanup_timestamp),
            record.cleanup_delay.total_seconds(),
            record.cleanup_attempts,
            record.client_id,
            record.lifecycle.value,
        )

    def page_eligible(self, now: datetime, page_request: PageRequest,
                      lifecycle: Optional[LifecycleKind] = None) -> Page:
        query = f"SELECT * FROM housekeeping_record WHERE {_ELIGIBLE} AND cleanup_timestamp <= ?"
        params: list = [_ts(now)]
        if lifecycle:
            query += " AND lifecycle_type = ?"
            params.append(lifecycle.value)
        query += " ORDER BY path, id LIMIT ? OFFSET ?"
        params.extend([page_request.size, page_request.offset])

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return Page(records=[self._row_to_record(row) for row in rows], request=page_request)

    def count_partitions_registered(self, database_name: str, table_name: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT COUNT(*) FROM housekeeping_record
                WHERE database_name = ? AND table_name = ?
                  AND partition_name IS NOT NULL AND lifecycle_type = ? AND {_ELIGIBLE}
                """,
                (database_name, table_name, LifecycleKind.EXPIRED.value),
            ).fetchone()
        return row[0]

    def save(self, record: HousekeepingRecord) -> HousekeepingRecord:
        record.modified_timestamp = datetime.now(timezone.utc)
        with self._connect() as conn:
            if record.id is None:
                placeholders = ", ".join("?" for _ in _COLUMNS)
                cursor = conn.execute(
                    f"INSERT INTO housekeeping_record ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                    self._values(record),
                )
                record.id = cursor.lastrowid
            else:
                assignments = ", ".join(f"{column} = ?" for column in _COLUMNS)
                conn.execute(
                    f"UPDATE housekeeping_record SET {assignments} WHERE id = ?",
                    self._values(record) + (record.id,),
                )
        return record

    def get(self, record_id: int) -> Optional[HousekeepingRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM housekeeping_record WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def all_records(self) -> List[HousekeepingRecord]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM housekeeping_record ORDER BY id").fetchall()
        return [self._row_to_record(row) for row in rows]

    def purge_deleted_older_than(self, cutoff: datetime) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM housekeeping_record WHERE housekeeping_status = ? AND cleanup_timestamp < ?",
                (HousekeepingStatus.DELETED.value, _ts(cutoff)),
            )
            purged = cursor.rowcount
        logger.info("purged_deleted_records", count=purged, cutoff=cutoff.isoformat())
        return purged

    def delete_child_partition_records(self, database_name: str, table_name: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                DELETE FROM housekeeping_record
                WHERE database_name = ? AND table_name = ?
                  AND partition_name IS NOT NULL AND lifecycle_type = ?
                  AND housekeeping_status != ?
                """,
                (database_name, table_name, LifecycleKind.EXPIRED.value, HousekeepingStatus.DELETED.value),
            )
            removed = cursor.rowcount
        if removed:
            logger.info("deleted_child_partition_records",
                        table=f"{database_name}.{table_name}", count=removed)
        return removed
