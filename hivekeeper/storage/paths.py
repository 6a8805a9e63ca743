"""
S3 path parsing and validation.
"""

import re
from dataclasses import dataclass

from hivekeeper.errors import InvalidPathError

SEPARATOR = "/"
SENTINEL_SUFFIX = "_$folder$"

_SCHEME_PATTERN = re.compile(r"^s3[an]?://")

# s3://bucket/table has 3 separators, s3://bucket/table/partition has 4
MIN_TABLE_PATH_SEPARATORS = 3
MIN_PARTITION_PATH_SEPARATORS = 4


@dataclass(frozen=True)
class StoreURI:
    """An S3 location split into bucket and key."""
    bucket: str
    key: str

    @classmethod
    def parse(cls, path: str) -> "StoreURI":
        """Parse ``s3://``, ``s3a://`` or ``s3n://`` paths."""
        if not path or not _SCHEME_PATTERN.match(path):
            raise InvalidPathError(path, "not an S3 path")
        remainder = _SCHEME_PATTERN.sub("", path, count=1)
        bucket, _, key = remainder.partition(SEPARATOR)
        if not bucket:
            raise InvalidPathError(path, "missing bucket")
        return cls(bucket=bucket, key=key)

    @property
    def path(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


def sentinel_key(key: str) -> str:
    """Folder marker key written by Hadoop connectors for ``key``."""
    return key.rstrip(SEPARATOR) + SENTINEL_SUFFIX


def as_directory(key: str) -> str:
    """Normalise ``key`` to exactly one trailing separator."""
    return key.rstrip(SEPARATOR) + SEPARATOR


def parent_key(key: str) -> str:
    """Key of the parent directory, or an empty string at the bucket root."""
    stripped = key.rstrip(SEPARATOR)
    if SEPARATOR not in stripped:
        return ""
    return stripped.rsplit(SEPARATOR, 1)[0]


def _is_parseable(path: str) -> bool:
    try:
        uri = StoreURI.parse(path)
    except InvalidPathError:
        return False
    return bool(uri.key.strip(SEPARATOR))


def valid_table_path(path: str) -> bool:
    return _is_parseable(path) and path.count(SEPARATOR) >= MIN_TABLE_PATH_SEPARATORS


def valid_partition_path(path: str) -> bool:
    return _is_parseable(path) and path.count(SEPARATOR) >= MIN_PARTITION_PATH_SEPARATORS
