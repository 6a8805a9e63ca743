"""
Unit tests for the catalog-facing metadata cleaner.
"""

import pytest

from hivekeeper.catalog.metadata_cleaner import MetadataCleaner, format_partition_name, is_managed_format
from hivekeeper.errors import CatalogError, ManagedFormatError


@pytest.fixture
def cleaner(catalog, metrics):
    return MetadataCleaner(catalog, metrics=metrics)


class TestManagedFormatDetection:
    """Test Iceberg table detection."""

    def test_iceberg_table_type(self):
        """Test a table_type mentioning Iceberg is detected."""
        assert is_managed_format({"table_type": "ICEBERG"})

    def test_metadata_location(self):
        """Test a metadata_location property is detected."""
        assert is_managed_format({"metadata_location": "s3://bucket/table/metadata/00001.json"})

    def test_plain_hive_table(self):
        """Test a plain Hive table is not detected."""
        assert not is_managed_format({"table_type": "EXTERNAL_TABLE", "metadata_location": " "})
        assert not is_managed_format({})


class TestFormatPartitionName:
    """Test partition name formatting."""

    def test_commas_become_separators(self):
        """Test comma separated keys become path separated."""
        assert format_partition_name("event_date=2020-01-01,event_hour=0") == "event_date=2020-01-01/event_hour=0"

    def test_single_key(self):
        """Test a single key is unchanged."""
        assert format_partition_name("event_date=2020-01-01") == "event_date=2020-01-01"


class TestMetadataCleaner:
    """Test the metadata cleaner."""

    def test_get_table_properties(self, catalog, cleaner):
        """Test table properties are returned from the client."""
        catalog.add_table("db", "table", {"beekeeper.remove.expired.data": "true"})

        assert cleaner.get_table_properties("db", "table") == {"beekeeper.remove.expired.data": "true"}

    def test_iceberg_properties_raise_managed_format_error(self, catalog, cleaner):
        """Test Iceberg properties raise ManagedFormatError."""
        catalog.add_table("db", "table", {"table_type": "iceberg"})

        with pytest.raises(ManagedFormatError, match="db.table"):
            cleaner.get_table_properties("db", "table")

    def test_client_managed_format_error_passes_through(self, catalog, cleaner):
        """Test a ManagedFormatError from the client passes through."""
        catalog.fail("get_table_properties", ManagedFormatError("iceberg"))

        with pytest.raises(ManagedFormatError):
            cleaner.get_table_properties("db", "table")

    def test_unexpected_client_error_becomes_catalog_error(self, catalog, cleaner):
        """Test unexpected client errors become CatalogError."""
        catalog.fail("table_exists", ConnectionError("metastore down"))

        with pytest.raises(CatalogError, match="metastore down"):
            cleaner.table_exists("db", "table")

    def test_drop_table_counts_metric(self, catalog, cleaner, metrics):
        """Test dropping a table counts the table metric."""
        catalog.add_table("db", "table")

        cleaner.drop_table("db", "table")

        assert catalog.dropped_tables == ["db.table"]
        assert metrics.sample("hivekeeper_hive_table_deleted", {"table": "db.table"}) == 1

    def test_drop_table_dry_run_only_logs(self, catalog, cleaner, metrics):
        """Test a dry-run table drop only logs and counts."""
        catalog.add_table("db", "table")

        cleaner.drop_table("db", "table", dry_run=True)

        assert catalog.dropped_tables == []
        assert catalog.table_exists("db", "table")
        assert metrics.sample("hivekeeper_dry_run_hive_table_deleted", {"table": "db.table"}) == 1
        assert metrics.sample("hivekeeper_hive_table_deleted", {"table": "db.table"}) == 0

    def test_drop_partition(self, catalog, cleaner, metrics):
        """Test a partition is dropped in catalog form."""
        catalog.add_table("db", "table", partitions=["event_date=2020-01-01/event_hour=0"])

        assert cleaner.drop_partition("db", "table", "event_date=2020-01-01,event_hour=0")
        assert catalog.dropped_partitions == [("db.table", "event_date=2020-01-01/event_hour=0")]
        assert metrics.sample("hivekeeper_hive_partition_deleted", {"table": "db.table"}) == 1

    def test_drop_missing_partition_is_not_an_error(self, catalog, cleaner, metrics):
        """Test dropping a missing partition returns False."""
        catalog.add_table("db", "table")

        assert not cleaner.drop_partition("db", "table", "event_date=2020-01-01")
        assert metrics.sample("hivekeeper_hive_partition_deleted", {"table": "db.table"}) == 0

    def test_drop_partition_failure_becomes_catalog_error(self, catalog, cleaner):
        """Test a failed partition drop becomes CatalogError."""
        catalog.add_table("db", "table", partitions=["event_date=2020-01-01"])
        catalog.fail("drop_partition", RuntimeError("lock timeout"))

        with pytest.raises(CatalogError):
            cleaner.drop_partition("db", "table", "event_date=2020-01-01")

    def test_drop_partition_dry_run_only_logs(self, catalog, cleaner):
        """Test a dry-run partition drop only logs and counts."""
        catalog.add_table("db", "table", partitions=["event_date=2020-01-01"])

        assert cleaner.drop_partition("db", "table", "event_date=2020-01-01", dry_run=True)
        assert catalog.dropped_partitions == []
