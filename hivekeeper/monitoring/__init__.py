"""
Monitoring module for the cleanup engine.

This module provides:
- Prometheus counters for bytes, objects, tables and partitions deleted
- Audit history of housekeeping decisions
"""

from .history import HistoryEvent, HistoryRecorder, SqliteHistoryRecorder
from .metrics import CleanupMetrics

__all__ = [
    'CleanupMetrics',
    'HistoryEvent',
    'HistoryRecorder',
    'SqliteHistoryRecorder',
]
