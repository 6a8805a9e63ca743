"""
Catalog-facing side of the cleanup engine: existence checks and drops.
"""

import logging
from contextlib import nullcontext
from typing import Dict, Optional

from hivekeeper.catalog.client import CatalogClient
from hivekeeper.errors import CatalogError, HivekeeperError, ManagedFormatError
from hivekeeper.monitoring.metrics import CleanupMetrics

TABLE_TYPE_PROPERTY = "table_type"
METADATA_LOCATION_PROPERTY = "metadata_location"


def is_managed_format(properties: Dict[str, str]) -> bool:
    """Iceberg tables advertise themselves via table_type or metadata_location."""
    if not properties:
        return False
    table_type = (properties.get(TABLE_TYPE_PROPERTY) or "").lower()
    metadata_location = (properties.get(METADATA_LOCATION_PROPERTY) or "").strip()
    return "iceberg" in table_type or bool(metadata_location)


def format_partition_name(partition_name: str) -> str:
    """Normalise ``year=2020,hour=01`` to the catalog form ``year=2020/hour=01``."""
    return "/".join(part.strip() for part in partition_name.split(",") if part.strip())


class MetadataCleaner:
    """Drops tables and partitions from the catalog and reports what was dropped."""

    def __init__(self, client: CatalogClient, metrics: Optional[CleanupMetrics] = None):
        self.client = client
        self.metrics = metrics
        self.logger = logging.getLogger(__name__)

    def table_exists(self, database_name: str, table_name: str) -> bool:
        return self._call("check existence of", database_name, table_name,
                          lambda: self.client.table_exists(database_name, table_name))

    def get_table_properties(self, database_name: str, table_name: str) -> Dict[str, str]:
        """
        Read the table properties.

        Raises:
            ManagedFormatError: the table is an Iceberg table, or the client
                reported one.
            CatalogError: the lookup failed.
        """
        properties = self._call("read properties of", database_name, table_name,
                                lambda: self.client.get_table_properties(database_name, table_name))
        properties = dict(properties or {})
        if is_managed_format(properties):
            raise ManagedFormatError(
                f"Iceberg table {database_name}.{table_name} is not currently supported."
            )
        return properties

    def drop_table(self, database_name: str, table_name: str, dry_run: bool = False) -> None:
        table = f"{database_name}.{table_name}"
        with self._timed("hive_table_deletion", table, dry_run):
            if dry_run:
                self.logger.info(f"Dry run - deleting metadata for table \"{table}\"")
            else:
                self.logger.info(f"Deleting metadata for table \"{table}\"")
                self._call("drop", database_name, table_name,
                           lambda: self.client.drop_table(database_name, table_name))
        if self.metrics:
            self.metrics.report_table_deleted(table, dry_run=dry_run)

    def drop_partition(self, database_name: str, table_name: str, partition_name: str,
                       dry_run: bool = False) -> bool:
        """Drop a partition; returns False when it was already absent."""
        table = f"{database_name}.{table_name}"
        partition = format_partition_name(partition_name)
        with self._timed("hive_partition_deletion", table, dry_run):
            if dry_run:
                self.logger.info(f"Dry run - dropping partition \"{partition}\" from table \"{table}\"")
                dropped = True
            else:
                self.logger.info(f"Dropping partition \"{partition}\" from table \"{table}\"")
                dropped = self._call("drop partition of", database_name, table_name,
                                     lambda: self.client.drop_partition(database_name, table_name, partition))
        if not dropped:
            self.logger.info(
                f"Could not drop partition \"{partition}\" from table \"{table}\". "
                f"Partition does not exist."
            )
        if dropped and self.metrics:
            self.metrics.report_partition_deleted(table, dry_run=dry_run)
        return bool(dropped)

    def _timed(self, name: str, table: str, dry_run: bool):
        if self.metrics:
            return self.metrics.timed(name, dry_run, table=table)
        return nullcontext()

    @staticmethod
    def _call(action: str, database_name: str, table_name: str, fn):
        try:
            return fn()
        except HivekeeperError:
            raise
        except Exception as e:
            raise CatalogError(
                f"Unexpected exception when trying to {action} table \"{database_name}.{table_name}\": {e}"
            ) from e
