"""
Blob Store - Binary asset storage for template images

Two providers behind one interface: a local static directory (served by
the app's static mount) and an S3-compatible bucket. Neither promises
atomicity with the record store; callers own ordering and cleanup.
"""

import asyncio
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from memeplate.config.constants import ALLOWED_IMAGE_TYPES
from memeplate.config.settings import Settings
from memeplate.core.errors import BlobStoreError
from memeplate.models.template import AssetRef


def _extension_for(content_type: str) -> str:
    return ALLOWED_IMAGE_TYPES.get((content_type or "").lower(), "bin")


@dataclass(frozen=True)
class StoredBlob:
    """A blob as listed by its provider"""

    storage_key: str
    # Timezone-aware UTC
    last_modified: datetime


class BlobStore(ABC):
    """Upload / delete binary assets at an external provider"""

    name = "blob"

    @abstractmethod
    async def upload(self, data: bytes, content_type: str) -> AssetRef:
        """Store bytes under a fresh key; return its url and storage key"""
        ...

    @abstractmethod
    async def delete(self, storage_key: str) -> bool:
        """Delete a blob. Returns False if it did not exist (not an error)."""
        ...

    @abstractmethod
    async def exists(self, storage_key: str) -> bool:
        ...

    @abstractmethod
    async def list_blobs(self) -> List[StoredBlob]:
        """All blobs owned by this store with their last write time"""
        ...

    async def list_keys(self) -> List[str]:
        return [blob.storage_key for blob in await self.list_blobs()]

    async def close(self) -> None:
        """Release provider resources"""
        return None


class LocalBlobStore(BlobStore):
    """
    Store template images on local disk under a date-partitioned tree
    """

    name = "local"

    def __init__(self, root_dir: str, url_prefix: str, url_subdir: str):
        """
        Initialize local blob storage

        Args:
            root_dir: Directory holding the blobs
            url_prefix: Static mount prefix (e.g. /static)
            url_subdir: Path of root_dir below the static mount
        """
        self.root_dir = Path(root_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.url_subdir = url_subdir.strip("/")

    def ensure_directories(self) -> None:
        """Create storage directory if it doesn't exist"""
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, storage_key: str) -> Path:
        root = self.root_dir.resolve()
        path = (root / storage_key).resolve()
        if root not in path.parents:
            raise BlobStoreError(f"Invalid storage key: {storage_key}")
        return path

    def url_for(self, storage_key: str) -> str:
        return f"{self.url_prefix}/{self.url_subdir}/{storage_key}"

    async def upload(self, data: bytes, content_type: str) -> AssetRef:
        date_str = datetime.utcnow().strftime("%Y/%m/%d")
        storage_key = f"{date_str}/{uuid.uuid4().hex}.{_extension_for(content_type)}"
        path = self._path_for(storage_key)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise BlobStoreError(f"Failed to write asset: {e}") from e

        return AssetRef(url=self.url_for(storage_key), storage_key=storage_key)

    async def delete(self, storage_key: str) -> bool:
        path = self._path_for(storage_key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise BlobStoreError(f"Failed to delete asset {storage_key}: {e}") from e
        return True

    async def exists(self, storage_key: str) -> bool:
        return self._path_for(storage_key).is_file()

    async def list_blobs(self) -> List[StoredBlob]:
        if not self.root_dir.exists():
            return []
        blobs = [
            StoredBlob(
                storage_key=path.relative_to(self.root_dir).as_posix(),
                last_modified=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
            )
            for path in self.root_dir.rglob("*")
            if path.is_file()
        ]
        return sorted(blobs, key=lambda blob: blob.storage_key)


class S3BlobStore(BlobStore):
    """
    Store template images in an S3-compatible bucket (AWS, R2, MinIO)

    boto3 is blocking, so every call runs in a worker thread.
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        key_prefix: str = "meme-templates",
        public_base_url: str = "",
        endpoint_url: str = "",
        access_key: str = "",
        secret_key: str = "",
        region: str = "auto",
        client: Optional[Any] = None,
    ):
        if not bucket:
            raise ValueError("S3 blob store requires a bucket name")
        self.bucket = bucket
        self.key_prefix = key_prefix.strip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.endpoint_url = endpoint_url.rstrip("/")
        self._access_key = access_key
        self._secret_key = secret_key
        self._region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            import boto3

            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url or None,
                aws_access_key_id=self._access_key or None,
                aws_secret_access_key=self._secret_key or None,
                region_name=self._region,
            )
        return self._client

    def url_for(self, storage_key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{storage_key}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{storage_key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{storage_key}"

    async def upload(self, data: bytes, content_type: str) -> AssetRef:
        storage_key = f"{self.key_prefix}/{uuid.uuid4().hex}.{_extension_for(content_type)}"
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=storage_key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Failed to upload asset: {e}") from e

        return AssetRef(url=self.url_for(storage_key), storage_key=storage_key)

    async def exists(self, storage_key: str) -> bool:
        try:
            await asyncio.to_thread(self.client.head_object, Bucket=self.bucket, Key=storage_key)
            return True
        except ClientError as e:
            code = (e.response.get("Error") or {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise BlobStoreError(f"Failed to check asset {storage_key}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to check asset {storage_key}: {e}") from e

    async def delete(self, storage_key: str) -> bool:
        # S3 deletes are idempotent and never report a missing key, so look first
        found = await self.exists(storage_key)
        if not found:
            return False
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=storage_key)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Failed to delete asset {storage_key}: {e}") from e
        return True

    async def list_blobs(self) -> List[StoredBlob]:
        def _list() -> List[StoredBlob]:
            blobs = []
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=f"{self.key_prefix}/"):
                blobs.extend(
                    StoredBlob(storage_key=obj["Key"], last_modified=obj["LastModified"])
                    for obj in page.get("Contents", [])
                )
            return blobs

        try:
            blobs = await asyncio.to_thread(_list)
            return sorted(blobs, key=lambda blob: blob.storage_key)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Failed to list assets: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.close)
            self._client = None


def create_blob_store(settings: Settings) -> BlobStore:
    """
    Build the blob store selected by settings.blob_backend
    """
    if settings.blob_backend == "s3":
        return S3BlobStore(
            bucket=settings.s3_bucket,
            key_prefix=settings.s3_key_prefix,
            public_base_url=settings.s3_public_base_url,
            endpoint_url=settings.s3_endpoint_url,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            region=settings.s3_region,
        )

    return LocalBlobStore(
        root_dir=settings.static_template_dir,
        url_prefix=settings.static_url_prefix,
        url_subdir=settings.static_template_subdir,
    )
