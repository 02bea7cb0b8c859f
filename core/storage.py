"""
Blind blob storage

Blobs are opaque byte sequences addressed by (owner_id, blob_id). Each owner
gets a disjoint partition: a directory for the local backend, a key prefix
for S3. The stores never parse, validate or transform the bytes they hold.
"""
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import get_settings
from core.exceptions import NotFound, StorageError
from core.logger import logger

BLOB_SUFFIX = ".bin"

# Ids become path components and object keys
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def _check_id(value, kind: str) -> str:
    value = str(value)
    if not _SAFE_ID.match(value):
        raise ValueError(f"Invalid {kind}: {value!r}")
    return value


class BlobStore(ABC):
    """Owner-partitioned mapping from blob id to bytes"""

    @abstractmethod
    def put(self, owner_id, blob_id, data: bytes) -> None:
        """Persist data; a concurrent get sees nothing or all of it."""

    @abstractmethod
    def get(self, owner_id, blob_id) -> bytes:
        """Return the stored bytes or raise NotFound."""

    @abstractmethod
    def delete(self, owner_id, blob_id) -> None:
        """Remove the blob. Deleting a missing blob is not an error."""

    @abstractmethod
    def list_owner_ids(self) -> list[str]:
        """Owner partitions currently present"""

    @abstractmethod
    def list_blob_ids(self, owner_id) -> list[str]:
        """Blob ids stored in one owner partition"""


class LocalBlobStore(BlobStore):
    """
    Stores blobs on the local filesystem as <root>/<owner_id>/<blob_id>.bin
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _partition(self, owner_id) -> Path:
        return self.root / _check_id(owner_id, "owner id")

    def _path(self, owner_id, blob_id) -> Path:
        return self._partition(owner_id) / f"{_check_id(blob_id, 'blob id')}{BLOB_SUFFIX}"

    def put(self, owner_id, blob_id, data: bytes) -> None:
        path = self._path(owner_id, blob_id)
        logger.info("Writing blob %s/%s (%d bytes)", owner_id, blob_id, len(data))
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write next to the target so the final rename stays on one filesystem
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.exception("Failed to write blob %s/%s", owner_id, blob_id)
            raise StorageError(f"Failed to write blob {blob_id}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def get(self, owner_id, blob_id) -> bytes:
        path = self._path(owner_id, blob_id)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise NotFound() from e
        except OSError as e:
            logger.exception("Failed to read blob %s/%s", owner_id, blob_id)
            raise StorageError(f"Failed to read blob {blob_id}") from e

    def delete(self, owner_id, blob_id) -> None:
        path = self._path(owner_id, blob_id)
        logger.info("Deleting blob %s/%s", owner_id, blob_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.exception("Failed to delete blob %s/%s", owner_id, blob_id)
            raise StorageError(f"Failed to delete blob {blob_id}") from e

    def list_owner_ids(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def list_blob_ids(self, owner_id) -> list[str]:
        partition = self._partition(owner_id)
        if not partition.is_dir():
            return []
        return sorted(
            p.name[: -len(BLOB_SUFFIX)]
            for p in partition.iterdir()
            if p.is_file() and p.name.endswith(BLOB_SUFFIX) and not p.name.startswith(".")
        )


class S3BlobStore(BlobStore):
    """
    Stores blobs in an S3 bucket under <prefix><owner_id>/<blob_id>.bin

    S3 PUTs are atomic, so readers never observe a partial object.
    """

    def __init__(self, bucket: str, prefix: str = "", client=None):
        self.bucket = bucket
        self.prefix = prefix
        self.client = client if client is not None else boto3.client("s3")

    def _owner_prefix(self, owner_id) -> str:
        return f"{self.prefix}{_check_id(owner_id, 'owner id')}/"

    def _key(self, owner_id, blob_id) -> str:
        return f"{self._owner_prefix(owner_id)}{_check_id(blob_id, 'blob id')}{BLOB_SUFFIX}"

    def put(self, owner_id, blob_id, data: bytes) -> None:
        key = self._key(owner_id, blob_id)
        logger.info("Uploading blob s3://%s/%s (%d bytes)", self.bucket, key, len(data))
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType="application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            logger.exception("Failed to upload blob s3://%s/%s", self.bucket, key)
            raise StorageError(f"Failed to write blob {blob_id}") from e

    def get(self, owner_id, blob_id) -> bytes:
        key = self._key(owner_id, blob_id)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("NoSuchKey", "404", "NotFound"):
                raise NotFound() from e
            logger.exception("Failed to download blob s3://%s/%s", self.bucket, key)
            raise StorageError(f"Failed to read blob {blob_id}") from e
        except BotoCoreError as e:
            logger.exception("Failed to download blob s3://%s/%s", self.bucket, key)
            raise StorageError(f"Failed to read blob {blob_id}") from e

    def delete(self, owner_id, blob_id) -> None:
        key = self._key(owner_id, blob_id)
        logger.info("Deleting blob s3://%s/%s", self.bucket, key)
        try:
            # S3 reports success for missing keys
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.exception("Failed to delete blob s3://%s/%s", self.bucket, key)
            raise StorageError(f"Failed to delete blob {blob_id}") from e

    def _paginate(self, prefix: str, delimiter: str | None = None):
        kwargs = {"Bucket": self.bucket, "Prefix": prefix}
        if delimiter:
            kwargs["Delimiter"] = delimiter
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            yield from paginator.paginate(**kwargs)
        except (ClientError, BotoCoreError) as e:
            logger.exception("Failed to list s3://%s/%s", self.bucket, prefix)
            raise StorageError("Failed to list blobs") from e

    def list_owner_ids(self) -> list[str]:
        owners = []
        for page in self._paginate(self.prefix, delimiter="/"):
            for common_prefix in page.get("CommonPrefixes", []):
                name = common_prefix["Prefix"][len(self.prefix):].rstrip("/")
                if name:
                    owners.append(name)
        return sorted(owners)

    def list_blob_ids(self, owner_id) -> list[str]:
        prefix = self._owner_prefix(owner_id)
        blob_ids = []
        for page in self._paginate(prefix):
            for obj in page.get("Contents", []):
                name = obj["Key"][len(prefix):]
                # Skip anything nested deeper than the partition
                if "/" in name or not name.endswith(BLOB_SUFFIX):
                    continue
                blob_ids.append(name[: -len(BLOB_SUFFIX)])
        return sorted(blob_ids)


_blob_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    """
    Get the configured blob store, created on first use
    """
    global _blob_store
    if _blob_store is None:
        settings = get_settings()
        if settings.STORAGE_BACKEND == "s3":
            if not settings.STORAGE_BUCKET:
                raise RuntimeError("STORAGE_BUCKET must be set for the s3 backend")
            client = boto3.client("s3", region_name=settings.AWS_REGION)
            _blob_store = S3BlobStore(
                settings.STORAGE_BUCKET, settings.STORAGE_PREFIX, client
            )
        elif settings.STORAGE_BACKEND == "local":
            _blob_store = LocalBlobStore(settings.STORAGE_ROOT)
        else:
            raise RuntimeError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
    return _blob_store


def reset_blob_store():
    """Drop the cached store so new settings take effect"""
    global _blob_store
    _blob_store = None
