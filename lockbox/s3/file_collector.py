"""S3 object discovery utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..archive import BackupType
from ..exceptions import S3AccessError

ARCHIVE_EXTENSION = ".7z"


@dataclass
class S3FileInfo:
    """Represents metadata about a stored backup object."""

    bucket: str
    key: str
    size: int
    last_modified: datetime

    def get_s3_uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def get_filename(self) -> str:
        return os.path.basename(self.key)

    def get_date_string(self) -> str:
        """Return the UTC last-modified date as ``YYYY-MM-DD``."""
        return self.last_modified.astimezone(timezone.utc).strftime("%Y-%m-%d")


class S3FileCollector:
    """Lists backup archives stored in the bucket."""

    def __init__(self, s3_client, bucket: str):
        self.s3_client = s3_client
        self.bucket = bucket

    def list_backups(self, prefix: str) -> List[S3FileInfo]:
        """Return every ``.7z`` object beneath ``prefix``."""
        backups: List[S3FileInfo] = []
        for page in self._paginate(Prefix=prefix):
            for obj in page.get("Contents", []):
                key = obj.get("Key")
                if not key or not key.endswith(ARCHIVE_EXTENSION):
                    continue
                last_modified = obj.get("LastModified")
                if isinstance(last_modified, datetime):
                    if last_modified.tzinfo is None:
                        last_modified = last_modified.replace(tzinfo=timezone.utc)
                else:
                    last_modified = datetime.now(timezone.utc)
                backups.append(
                    S3FileInfo(
                        bucket=self.bucket,
                        key=key,
                        size=int(obj.get("Size", 0)),
                        last_modified=last_modified,
                    )
                )
        return backups

    def list_names(self, backup_type: BackupType) -> List[str]:
        """Return the backup names (first-level folders) under a type prefix."""
        prefix = backup_type.list_prefix()
        names: List[str] = []
        for page in self._paginate(Prefix=prefix, Delimiter="/"):
            for common in page.get("CommonPrefixes", []):
                folder = common.get("Prefix", "")[len(prefix):].strip("/")
                if folder:
                    names.append(folder)
        return sorted(names)

    def latest_backup(self, backup_type: BackupType, name: str) -> Optional[S3FileInfo]:
        """Return the most recent archive stored for ``name``, if any."""
        backups = self.list_backups(backup_type.list_prefix(name))
        if not backups:
            return None
        return max(backups, key=lambda info: (info.last_modified, info.key))

    def _paginate(self, **kwargs: Any):
        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, **kwargs):
                yield page
        except (BotoCoreError, ClientError) as exc:
            raise S3AccessError(
                f"Unable to list objects for s3://{self.bucket}/{kwargs.get('Prefix', '')}: {exc}"
            ) from exc
