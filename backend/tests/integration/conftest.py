"""Integration fixtures: an S3 bucket backed by moto.

Every test gets a fresh in-process AWS mock, so nothing touches a real
bucket and no credentials are needed.
"""

import boto3
import pytest
from moto import mock_aws

from storage.blob import S3BlobStore

BUCKET = "scribe-test"
REGION = "us-east-1"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so botocore never looks for real ones."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def s3_client(aws_credentials):
    with mock_aws():
        client = boto3.client("s3", region_name=REGION)
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def s3_store(s3_client) -> S3BlobStore:
    return S3BlobStore(BUCKET, region=REGION, client=s3_client, timeout=5)
