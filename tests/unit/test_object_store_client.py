"""
Unit tests for the boto3 S3 adapter, driven through botocore's Stubber.
"""

import boto3
import pytest
from botocore.stub import Stubber

from hivekeeper.errors import TransientStorageError
from hivekeeper.storage.client import Boto3ObjectStoreClient


@pytest.fixture
def s3():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(s3):
    with Stubber(s3) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def client(s3):
    return Boto3ObjectStoreClient(s3_client=s3)


class TestBoto3ObjectStoreClient:
    """Test the boto3 object store adapter."""

    def test_exists_true(self, stubber, client):
        """Test exists is True when the head request succeeds."""
        stubber.add_response("head_object", {"ContentLength": 3}, {"Bucket": "bucket", "Key": "a"})

        assert client.exists("bucket", "a")

    def test_exists_false_on_404(self, stubber, client):
        """Test exists is False on a 404."""
        stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

        assert not client.exists("bucket", "a")

    def test_exists_raises_on_other_errors(self, stubber, client):
        """Test other head errors become TransientStorageError."""
        stubber.add_client_error("head_object", service_error_code="AccessDenied", http_status_code=403)

        with pytest.raises(TransientStorageError, match="bucket/a"):
            client.exists("bucket", "a")

    def test_head_size(self, stubber, client):
        """Test head_size returns the content length."""
        stubber.add_response("head_object", {"ContentLength": 42}, {"Bucket": "bucket", "Key": "a"})

        assert client.head_size("bucket", "a") == 42

    def test_list_objects_follows_truncation(self, stubber, client):
        """Test listing returns the continuation token while truncated."""
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "t/p/a", "Size": 1}, {"Key": "t/p/b", "Size": 2}],
                "IsTruncated": True,
                "NextContinuationToken": "next",
            },
            {"Bucket": "bucket", "Prefix": "t/p/"},
        )
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "t/p/c", "Size": 3}], "IsTruncated": False},
            {"Bucket": "bucket", "Prefix": "t/p/", "ContinuationToken": "next"},
        )

        first = client.list_objects("bucket", "t/p/")
        second = client.list_objects("bucket", "t/p/", first.continuation_token)

        assert [o.key for o in first.objects] == ["t/p/a", "t/p/b"]
        assert first.continuation_token == "next"
        assert [(o.key, o.size) for o in second.objects] == [("t/p/c", 3)]
        assert second.continuation_token is None

    def test_delete_many_returns_confirmed_keys(self, stubber, client):
        """Test delete_many returns only the keys S3 confirmed."""
        stubber.add_response(
            "delete_objects",
            {
                "Deleted": [{"Key": "a"}],
                "Errors": [{"Key": "b", "Code": "AccessDenied", "Message": "denied"}],
            },
            {
                "Bucket": "bucket",
                "Delete": {"Objects": [{"Key": "a"}, {"Key": "b"}], "Quiet": False},
            },
        )

        assert client.delete_many("bucket", ["a", "b"]) == ["a"]

    def test_delete_many_with_no_keys_makes_no_call(self, stubber, client):
        """Test delete_many without keys makes no request."""
        assert client.delete_many("bucket", []) == []

    def test_delete_one_failure_is_translated(self, stubber, client):
        """Test a failed delete becomes TransientStorageError."""
        stubber.add_client_error("delete_object", service_error_code="InternalError", http_status_code=500)

        with pytest.raises(TransientStorageError):
            client.delete_one("bucket", "a")
