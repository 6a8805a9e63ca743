"""
Audit history of housekeeping decisions.

Every terminal decision a record handler persists is also written here with
its history label, so operators can see what was deleted, skipped or failed.
"""

import json
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from hivekeeper.models import HistoryLabel, HousekeepingRecord

logger = structlog.get_logger(__name__)


@dataclass
class HistoryEvent:
    """A single audit history row."""
    event_timestamp: datetime
    database_name: str
    table_name: str
    lifecycle_type: str
    housekeeping_status: str
    event_details: Dict[str, Any]
    id: Optional[int] = None


class HistoryRecorder(ABC):
    """Abstract sink for audit history events."""

    @abstractmethod
    def record(self, record: HousekeepingRecord, label: HistoryLabel) -> None:
        """Persist one history event for ``record``."""
        pass


def build_event(record: HousekeepingRecord, label: HistoryLabel) -> HistoryEvent:
    details = {
        "id": record.id,
        "path": record.path,
        "partition_name": record.partition_name,
        "cleanup_attempts": record.cleanup_attempts,
        "cleanup_timestamp": record.cleanup_timestamp.isoformat(),
        "client_id": record.client_id,
    }
    return HistoryEvent(
        event_timestamp=datetime.now(),
        database_name=record.database_name,
        table_name=record.table_name,
        lifecycle_type=record.lifecycle.value,
        housekeeping_status=label.value,
        event_details=details,
    )


class SqliteHistoryRecorder(HistoryRecorder):
    """History recorder writing to a ``housekeeping_history`` sqlite table."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._create_table()

    def _create_table(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS housekeeping_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_timestamp TEXT NOT NULL,
                    database_name TEXT NOT NULL,
                    table_name TEXT NOT NULL,
                    lifecycle_type TEXT NOT NULL,
                    housekeeping_status TEXT NOT NULL,
                    event_details TEXT
                )
            """)

    def record(self, record: HousekeepingRecord, label: HistoryLabel) -> None:
        event = build_event(record, label)
        logger.info(
            "saving_history_event",
            table=record.qualified_table_name,
            lifecycle=event.lifecycle_type,
            status=event.housekeeping_status,
        )
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO housekeeping_history
                    (event_timestamp, database_name, table_name, lifecycle_type,
                     housekeeping_status, event_details)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    event.event_timestamp.isoformat(),
                    event.database_name,
                    event.table_name,
                    event.lifecycle_type,
                    event.housekeeping_status,
                    json.dumps(event.event_details),
                ),
            )

    def events(self, lifecycle: Optional[str] = None) -> List[HistoryEvent]:
        """Return recorded events, oldest first, optionally for one lifecycle."""
        query = "SELECT * FROM housekeeping_history"
        params: tuple = ()
        if lifecycle:
            query += " WHERE lifecycle_type = ?"
            params = (lifecycle,)
        query += " ORDER BY id"
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(query, params).fetchall()
        return [
            HistoryEvent(
                id=row["id"],
                event_timestamp=datetime.fromisoformat(row["event_timestamp"]),
                database_name=row["database_name"],
                table_name=row["table_name"],
                lifecycle_type=row["lifecycle_type"],
                housekeeping_status=row["housekeeping_status"],
                event_details=json.loads(row["event_details"] or "{}"),
            )
            for row in rows
        ]
