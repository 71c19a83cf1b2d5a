"""S3 upload, delete and bucket management utilities."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import S3AccessError, UploadError
from .file_collector import S3FileInfo

LOGGER = logging.getLogger(__name__)

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


class S3Uploader:
    """Uploads encrypted artifacts and removes expired ones."""

    def __init__(self, s3_client, bucket: str, storage_class: str = "STANDARD") -> None:
        self.s3_client = s3_client
        self.bucket = bucket
        self.storage_class = storage_class

    def bucket_exists(self) -> bool:
        """Return True if the bucket is reachable, False if it does not exist."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_BUCKET_CODES:
                return False
            raise S3AccessError(f"Unable to access bucket '{self.bucket}': {exc}") from exc
        except BotoCoreError as exc:
            raise S3AccessError(f"Unable to access bucket '{self.bucket}': {exc}") from exc
        return True

    def ensure_bucket(self) -> None:
        """Create the bucket when it does not exist yet."""
        if self.bucket_exists():
            return
        LOGGER.info("Bucket '%s' not found, creating it", self.bucket)
        try:
            self.s3_client.create_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as exc:
            raise S3AccessError(f"Unable to create bucket '{self.bucket}': {exc}") from exc

    def check_connection(self) -> bool:
        """Return True if the bucket is accessible and False if only the endpoint is.

        Raises S3AccessError when the endpoint itself cannot be reached.
        """
        try:
            if self.bucket_exists():
                return True
        except S3AccessError:
            LOGGER.debug("head_bucket failed, falling back to list_buckets", exc_info=True)
        try:
            self.s3_client.list_buckets()
        except (BotoCoreError, ClientError) as exc:
            raise S3AccessError(f"Cannot connect to S3 storage: {exc}") from exc
        return False

    def upload(self, file_path: Path, key: str) -> S3FileInfo:
        """Upload ``file_path`` to ``key`` using the configured storage class."""
        file_path = Path(file_path)
        try:
            self.s3_client.upload_file(
                str(file_path),
                self.bucket,
                key,
                ExtraArgs={"StorageClass": self.storage_class},
            )
        except (BotoCoreError, ClientError, OSError) as exc:
            raise UploadError(
                f"Unable to upload {file_path} to s3://{self.bucket}/{key}: {exc}"
            ) from exc

        stat = file_path.stat()
        return S3FileInfo(
            bucket=self.bucket,
            key=key,
            size=stat.st_size,
            last_modified=datetime.now(timezone.utc),
        )

    def delete(self, file_info: S3FileInfo) -> None:
        """Delete a single stored archive."""
        try:
            self.s3_client.delete_object(Bucket=file_info.bucket, Key=file_info.key)
        except (BotoCoreError, ClientError) as exc:
            raise S3AccessError(f"Unable to delete {file_info.get_s3_uri()}: {exc}") from exc
