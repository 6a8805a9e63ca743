"""
S3 storage layer for the cleanup engine.

Provides the object store client adapter, the dry-run aware path store,
sentinel pruning and the path cleaner used by the record handlers.
"""

from .bytes_accountant import BytesAccountant
from .client import Boto3ObjectStoreClient, ListPage, ObjectStoreClient, ObjectSummary
from .path_cleaner import PathCleaner
from .path_store import PathStore
from .paths import StoreURI, valid_partition_path, valid_table_path
from .sentinel_pruner import SentinelPruner

__all__ = [
    'BytesAccountant',
    'Boto3ObjectStoreClient',
    'ListPage',
    'ObjectStoreClient',
    'ObjectSummary',
    'PathCleaner',
    'PathStore',
    'SentinelPruner',
    'StoreURI',
    'valid_partition_path',
    'valid_table_path',
]
