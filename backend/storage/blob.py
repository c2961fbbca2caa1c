"""Blob storage for chat transcripts and document content.

Two implementations share the BlobStore interface:

* S3BlobStore: any S3-compatible bucket via boto3. boto3 is synchronous,
  so calls run in a worker thread and every call is bounded by a timeout.
* InMemoryBlobStore: process-local dict, used for development and tests
  when no bucket is configured.

All failures surface as StorageError (BlobNotFoundError for missing keys,
BlobExistsError when a create-only write finds the key taken), so callers
never need to know about botocore exception types.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A blob read, write or delete failed."""


class BlobNotFoundError(StorageError):
    """The requested key does not exist."""


class BlobExistsError(StorageError):
    """A create-only write found the key already written."""


class BlobStore(ABC):
    @abstractmethod
    async def write(self, key: str, content: str, content_type: str = "application/json") -> None:
        ...

    @abstractmethod
    async def create(self, key: str, content: str, content_type: str = "application/json") -> None:
        """Write ``key`` only if it does not exist yet, else raise BlobExistsError."""

    @abstractmethod
    async def read(self, key: str) -> str:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class S3BlobStore(BlobStore):
    """S3-compatible blob store (AWS, R2, MinIO...)."""

    def __init__(
        self,
        bucket: str,
        *,
        endpoint_url: str | None = None,
        region: str = "auto",
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        timeout: float = 10.0,
        client=None,
    ):
        self.bucket = bucket
        self.timeout = timeout
        if client is None:
            kwargs = {
                "region_name": region,
                "config": Config(
                    retries={"max_attempts": 3},
                    connect_timeout=timeout,
                    read_timeout=timeout,
                ),
            }
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            if access_key_id and secret_access_key:
                kwargs["aws_access_key_id"] = access_key_id
                kwargs["aws_secret_access_key"] = secret_access_key
            client = boto3.client("s3", **kwargs)
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "S3BlobStore":
        return cls(
            settings.s3_bucket,
            endpoint_url=settings.s3_endpoint,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            timeout=settings.storage_timeout_seconds,
        )

    async def _call(self, op: str, key: str, fn, **kwargs):
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, **kwargs), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StorageError(f"S3 {op} timed out after {self.timeout}s: {key}") from e
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise BlobNotFoundError(f"Blob not found: {key}") from e
            if code in ("PreconditionFailed", "ConditionalRequestConflict", "412"):
                raise BlobExistsError(f"Blob already exists: {key}") from e
            raise StorageError(f"S3 {op} failed for {key}: {code or e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 {op} failed for {key}: {e}") from e

    async def write(self, key: str, content: str, content_type: str = "application/json") -> None:
        await self._call(
            "put",
            key,
            self._client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=content.encode("utf-8"),
            ContentType=content_type,
        )

    async def create(self, key: str, content: str, content_type: str = "application/json") -> None:
        await self._call(
            "create",
            key,
            self._client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=content.encode("utf-8"),
            ContentType=content_type,
            IfNoneMatch="*",
        )

    def _get_body(self, **kwargs) -> bytes:
        response = self._client.get_object(**kwargs)
        return response["Body"].read()

    async def read(self, key: str) -> str:
        # The body streams over the same connection, so it shares the timeout
        body = await self._call("get", key, self._get_body, Bucket=self.bucket, Key=key)
        return body.decode("utf-8")

    async def delete(self, key: str) -> None:
        await self._call(
            "delete", key, self._client.delete_object, Bucket=self.bucket, Key=key
        )


@dataclass
class StoredBlob:
    data: str
    content_type: str
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryBlobStore(BlobStore):
    """Process-local blob store. Content is lost on restart."""

    def __init__(self):
        self._store: dict[str, StoredBlob] = {}
        self._lock = threading.Lock()

    async def write(self, key: str, content: str, content_type: str = "application/json") -> None:
        with self._lock:
            self._store[key] = StoredBlob(data=content, content_type=content_type)

    async def create(self, key: str, content: str, content_type: str = "application/json") -> None:
        with self._lock:
            if key in self._store:
                raise BlobExistsError(f"Blob already exists: {key}")
            self._store[key] = StoredBlob(data=content, content_type=content_type)

    async def read(self, key: str) -> str:
        with self._lock:
            blob = self._store.get(key)
        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {key}")
        return blob.data

    async def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._store if k.startswith(prefix))


def create_blob_store(settings) -> BlobStore:
    """Pick the blob store for this process from settings."""
    if settings.uses_s3:
        logger.info("Using S3 blob store (bucket=%s)", settings.s3_bucket)
        return S3BlobStore.from_settings(settings)
    logger.warning("S3_BUCKET not set, using in-memory blob store")
    return InMemoryBlobStore()
