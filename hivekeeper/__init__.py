"""
Hivekeeper - lifecycle cleanup engine for Hive-style tables on S3.

This package contains the cleanup side of the housekeeping system: the
record handlers, the S3 path cleaner, the catalog metadata cleaner and the
paging service that drives them on a schedule.
"""

__version__ = "0.1.0"
