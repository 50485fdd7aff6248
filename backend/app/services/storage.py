"""
Durable storage for uploaded game files.

Two backends share one interface:
- LocalStorage: files under UPLOAD_DIR, served by the app at FILES_URL_PREFIX
- S3Storage: objects in an S3 bucket, served from the bucket URL

The backend is chosen once at startup from StorageConfig.
"""
import mimetypes
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional
import logging

from app.services.errors import StorageError

logger = logging.getLogger(__name__)

# Leading path segment of staged (not yet finalized) files
STAGING_DIR = ".staging"


@dataclass(frozen=True)
class StorageConfig:
    """Which backend to use and where it writes"""
    backend: str = "local"  # "local" or "s3"
    root: str = "./uploads"
    url_prefix: str = "/games/files"
    staging_root: Optional[str] = None
    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    key_prefix: str = ""
    public_base_url: Optional[str] = None


class StorageBackend(ABC):
    """Write bytes at relative paths and resolve public references to them"""

    @abstractmethod
    def write(self, path: str, data: bytes) -> None:
        """Write data at a slash-separated relative path, creating parents"""

    @abstractmethod
    def finalize(self, staging: str, final: str) -> None:
        """Move everything under the staging prefix to the final prefix"""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Publicly resolvable reference for a relative path"""


class LocalStorage(StorageBackend):
    """
    Files on local disk below a root directory.

    Paths under STAGING_DIR are kept in a separate staging_root, so staged
    files never appear under the publicly served root.
    """

    def __init__(
        self,
        root: str | Path,
        url_prefix: str = "/games/files",
        staging_root: str | Path | None = None,
    ):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.staging_root = Path(staging_root) if staging_root else self.root.with_name(self.root.name + STAGING_DIR)

    def _resolve(self, path: str) -> Path:
        head, _, rest = path.partition("/")
        if head == STAGING_DIR:
            base, path = self.staging_root, rest
        else:
            base = self.root

        target = (base / path).resolve()
        if not target.is_relative_to(base.resolve()):
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    def write(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def finalize(self, staging: str, final: str) -> None:
        source = self._resolve(staging)
        destination = self._resolve(final)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(source, destination)

    def public_url(self, path: str) -> str:
        return f"{self.url_prefix}/{path}"


class S3Storage(StorageBackend):
    """Objects in an S3 (or S3-compatible) bucket"""

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        key_prefix: str = "",
        public_base_url: Optional[str] = None,
        client: Any = None,
    ):
        if not bucket:
            raise ValueError("AWS_BUCKET is required when USE_S3 is enabled")

        self.bucket = bucket
        self.key_prefix = key_prefix.strip("/")
        self.public_base_url = (public_base_url or f"https://{bucket}.s3.amazonaws.com").rstrip("/")

        if client is None:
            import boto3
            client = boto3.client("s3", region_name=region, endpoint_url=endpoint_url)
        self._client = client

    def _key(self, path: str) -> str:
        return f"{self.key_prefix}/{path}" if self.key_prefix else path

    def write(self, path: str, data: bytes) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        content_type, _ = mimetypes.guess_type(path)
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=self._key(path),
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 upload failed for {path}: {e}") from e

    def _list_keys(self, prefix: str) -> List[str]:
        keys: List[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def finalize(self, staging: str, final: str) -> None:
        # S3 has no rename: copy every staged object, then drop the staged copies
        from botocore.exceptions import BotoCoreError, ClientError

        staging_prefix = self._key(staging).rstrip("/") + "/"
        final_prefix = self._key(final).rstrip("/") + "/"
        try:
            staged = self._list_keys(staging_prefix)
            for key in staged:
                self._client.copy_object(
                    Bucket=self.bucket,
                    Key=final_prefix + key[len(staging_prefix):],
                    CopySource={"Bucket": self.bucket, "Key": key},
                )
            # delete_objects accepts at most 1000 keys per call
            for start in range(0, len(staged), 1000):
                batch = staged[start:start + 1000]
                self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch]},
                )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 finalize failed for {final}: {e}") from e

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self._key(path)}"


def create_storage(config: StorageConfig) -> StorageBackend:
    """Build the configured storage backend"""
    if config.backend == "s3":
        logger.info(f"Using S3 storage: bucket={config.bucket}")
        return S3Storage(
            bucket=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
            key_prefix=config.key_prefix,
            public_base_url=config.public_base_url,
        )
    if config.backend == "local":
        logger.info(f"Using local storage: {config.root}")
        return LocalStorage(config.root, config.url_prefix, config.staging_root)
    raise ValueError(f"Unknown storage backend: {config.backend}")
