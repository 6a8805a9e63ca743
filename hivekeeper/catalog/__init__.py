"""
Catalog (Hive metastore) access for the cleanup engine.
"""

from .client import CatalogClient
from .metadata_cleaner import MetadataCleaner, format_partition_name, is_managed_format

__all__ = [
    'CatalogClient',
    'MetadataCleaner',
    'format_partition_name',
    'is_managed_format',
]
