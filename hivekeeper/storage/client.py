"""
Object store client interface and the boto3-backed S3 adapter.

The adapter is the only place native botocore exceptions are seen; they are
translated into ``TransientStorageError`` before leaving this module.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from hivekeeper.errors import TransientStorageError

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class ObjectSummary:
    """A listed object key and its size in bytes."""
    key: str
    size: int


@dataclass
class ListPage:
    """One page of a prefix listing."""
    objects: List[ObjectSummary] = field(default_factory=list)
    continuation_token: Optional[str] = None


class ObjectStoreClient(ABC):
    """Abstract interface for object store operations."""

    @abstractmethod
    def exists(self, bucket: str, key: str) -> bool:
        """Whether an object exists exactly at ``key``."""
        pass

    @abstractmethod
    def head_size(self, bucket: str, key: str) -> int:
        """Size in bytes of the object at ``key``."""
        pass

    @abstractmethod
    def list_objects(self, bucket: str, prefix: str,
                     continuation_token: Optional[str] = None) -> ListPage:
        """List one page of objects whose key starts with ``prefix``."""
        pass

    @abstractmethod
    def delete_one(self, bucket: str, key: str) -> None:
        """Delete a single object."""
        pass

    @abstractmethod
    def delete_many(self, bucket: str, keys: List[str]) -> List[str]:
        """Delete ``keys`` and return the subset the store confirmed."""
        pass


class Boto3ObjectStoreClient(ObjectStoreClient):
    """S3 implementation of ``ObjectStoreClient`` built on boto3."""

    def __init__(self, s3_client=None, region: Optional[str] = None,
                 max_attempts: int = 1):
        if s3_client is None:
            # Failed calls are retried by the next cleanup cycle, not here
            cfg = BotoConfig(retries={"max_attempts": max_attempts, "mode": "standard"})
            s3_client = boto3.client("s3", region_name=region, config=cfg)
        self.s3 = s3_client
        self.logger = logging.getLogger(__name__)

    def exists(self, bucket: str, key: str) -> bool:
        try:
            self.s3.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise _storage_error("check existence of", bucket, key, e) from e
        except BotoCoreError as e:
            raise _storage_error("check existence of", bucket, key, e) from e

    def head_size(self, bucket: str, key: str) -> int:
        try:
            response = self.s3.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _storage_error("read size of", bucket, key, e) from e
        return int(response.get("ContentLength", 0))

    def list_objects(self, bucket: str, prefix: str,
                     continuation_token: Optional[str] = None) -> ListPage:
        kwargs = {"Bucket": bucket, "Prefix": prefix}
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        try:
            response = self.s3.list_objects_v2(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise _storage_error("list", bucket, prefix, e) from e

        objects = [
            ObjectSummary(key=item["Key"], size=int(item.get("Size", 0)))
            for item in response.get("Contents", [])
        ]
        token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        return ListPage(objects=objects, continuation_token=token)

    def delete_one(self, bucket: str, key: str) -> None:
        try:
            self.s3.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _storage_error("delete", bucket, key, e) from e

    def delete_many(self, bucket: str, keys: List[str]) -> List[str]:
        if not keys:
            return []
        try:
            response = self.s3.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
            )
        except (ClientError, BotoCoreError) as e:
            raise _storage_error("batch delete under", bucket, keys[0], e) from e

        for error in response.get("Errors", []):
            self.logger.warning(
                f"Could not delete \"{bucket}/{error.get('Key')}\": "
                f"{error.get('Code')} {error.get('Message')}"
            )
        return [item["Key"] for item in response.get("Deleted", [])]


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _storage_error(action: str, bucket: str, key: str, cause: Exception) -> TransientStorageError:
    return TransientStorageError(f"Failed to {action} \"{bucket}/{key}\": {cause}")
