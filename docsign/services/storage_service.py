"""Document storage: S3 when enabled, a local directory otherwise."""

import secrets
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from docsign.config import settings
from docsign.persistence.abstractions import IDocumentStore, StorageError, StorageWriteError
from docsign.persistence.local import LocalDocumentStore
from docsign.utils.logger import logger

__all__ = ["StorageService", "StorageError", "StorageWriteError", "new_share_id", "locator_for"]


def _ascii_safe(val: str) -> str:
    """Ensure string is ASCII-only; S3 metadata accepts ASCII only."""
    return val.encode("ascii", "replace").decode("ascii")


def new_share_id(length: int = 16) -> str:
    """Random URL-safe share id for an uploaded document."""
    return secrets.token_urlsafe(length)[:length]


def locator_for(share_id: str) -> str:
    """Storage locator of a shared document."""
    return f"d{share_id}.pdf"


class StorageService(IDocumentStore):
    """Service for reading and writing signed documents.

    S3 writes are a single ``put_object``; local writes replace the file
    atomically. Either way a reader sees the old or the new document, never a
    mix.
    """

    def __init__(
        self,
        enabled: Optional[bool] = None,
        local_dir: Optional[str] = None,
        s3_client=None,
    ):
        self.enabled = settings.s3_enabled if enabled is None else enabled
        if not self.enabled:
            base_dir = local_dir or settings.document_storage_dir
            logger.info(f"S3 storage is disabled, using local directory {base_dir}")
            self._local = LocalDocumentStore(base_dir)
            return

        self.bucket_name = settings.s3_bucket_name
        if s3_client is not None:
            self.s3_client = s3_client
            return
        kwargs = {
            "region_name": settings.s3_region,
            "aws_access_key_id": settings.s3_access_key,
            "aws_secret_access_key": settings.s3_secret_key,
        }
        if settings.s3_endpoint_url:
            kwargs["endpoint_url"] = settings.s3_endpoint_url
        self.s3_client = boto3.client("s3", **kwargs)

    def fetch(self, locator: str) -> bytes:
        """Download document content."""
        if not self.enabled:
            return self._local.fetch(locator)

        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=locator)
            content: bytes = response["Body"].read()
            logger.info(f"Successfully downloaded {locator} from S3")
            return content
        except ClientError as e:
            logger.error(f"Failed to download {locator} from S3: {e}")
            raise StorageError(f"S3 download failed: {e}") from e

    def store(
        self,
        locator: str,
        content: bytes,
        content_type: str = "application/pdf",
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Upload document content with optional metadata."""
        if not self.enabled:
            return self._local.store(locator, content, content_type, metadata)

        try:
            kwargs = {
                "Bucket": self.bucket_name,
                "Key": locator,
                "Body": content,
                "ContentType": content_type,
            }
            if metadata:
                kwargs["Metadata"] = {k: _ascii_safe(v) for k, v in metadata.items()}
            self.s3_client.put_object(**kwargs)
            logger.info(f"Successfully uploaded {locator} to S3 bucket {self.bucket_name}")
            return locator
        except ClientError as e:
            logger.error(f"Failed to upload {locator} to S3: {e}")
            raise StorageWriteError(f"S3 upload failed: {e}") from e

    def delete(self, locator: str) -> None:
        if not self.enabled:
            self._local.delete(locator)
            return

        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=locator)
            logger.info(f"Deleted {locator} from S3")
        except ClientError as e:
            logger.error(f"Failed to delete {locator} from S3: {e}")
            raise StorageError(f"S3 delete failed: {e}") from e

    def exists(self, locator: str) -> bool:
        if not self.enabled:
            return self._local.exists(locator)

        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=locator)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.error(f"Failed to check {locator} in S3: {e}")
            raise StorageError(f"S3 lookup failed: {e}") from e

    def metadata(self, locator: str) -> dict[str, str]:
        if not self.enabled:
            return self._local.metadata(locator)

        try:
            response = self.s3_client.head_object(Bucket=self.bucket_name, Key=locator)
            return dict(response.get("Metadata", {}))
        except ClientError as e:
            logger.warning(f"No metadata for {locator}: {e}")
            return {}
