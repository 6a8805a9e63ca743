"""
Record handlers: one per lifecycle kind.
"""

from .base import RecordHandler
from .metadata_handler import ExpiredMetadataHandler
from .path_handler import UnreferencedPathHandler

__all__ = [
    'RecordHandler',
    'ExpiredMetadataHandler',
    'UnreferencedPathHandler',
]
