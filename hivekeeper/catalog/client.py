"""
Interface to the table catalog (Hive metastore).

Concrete adapters wrap a metastore client and translate its native errors
into ``CatalogError`` or ``ManagedFormatError`` at this boundary.
"""

from abc import ABC, abstractmethod
from typing import Dict


class CatalogClient(ABC):
    """Abstract interface for catalog operations used by the cleanup engine."""

    @abstractmethod
    def table_exists(self, database_name: str, table_name: str) -> bool:
        """Whether the table is registered in the catalog."""
        pass

    @abstractmethod
    def get_table_properties(self, database_name: str, table_name: str) -> Dict[str, str]:
        """Table parameters as a string map."""
        pass

    @abstractmethod
    def drop_table(self, database_name: str, table_name: str) -> None:
        """Drop the table metadata (data is removed separately)."""
        pass

    @abstractmethod
    def drop_partition(self, database_name: str, table_name: str, partition_name: str) -> bool:
        """
        Drop a single partition, given as ``key=value/key2=value2``.

        Returns False when the partition was already absent.
        """
        pass
