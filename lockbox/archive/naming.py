"""Backup types, artifact names and S3 key layout."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from ..exceptions import ValidationError

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
ARTIFACT_SUFFIX = ".xz.7z"

_ARTIFACT_RE = re.compile(
    r"^(?P<name>.+)_(?P<stamp>\d{8}_\d{6})\.(?P<ext>tar|sql|rdb)\.xz\.7z$"
)


@dataclass(frozen=True)
class BackupType:
    """A kind of backup and where its artifacts live."""

    kind: str
    s3_prefix: str
    extension: str
    display_name: str

    def artifact_name(self, name: str, timestamp: str) -> str:
        return f"{name}_{timestamp}.{self.extension}{ARTIFACT_SUFFIX}"

    def s3_key(self, name: str, filename: str) -> str:
        return f"{self.s3_prefix}/{name}/{filename}"

    def list_prefix(self, name: Optional[str] = None) -> str:
        if name is None:
            return f"{self.s3_prefix}/"
        return f"{self.s3_prefix}/{name}/"


VOLUME = BackupType("volume", "volumes", "tar", "volumes")
POSTGRES = BackupType("pg", "pg", "sql", "PostgreSQL")
REDIS = BackupType("redis", "redis", "rdb", "Redis")

BACKUP_TYPES: Dict[str, BackupType] = {
    VOLUME.kind: VOLUME,
    POSTGRES.kind: POSTGRES,
    REDIS.kind: REDIS,
}


def get_backup_type(kind: str) -> BackupType:
    """Resolve ``volume``/``volumes``/``pg``/``redis`` to a BackupType."""
    normalized = kind.strip().lower()
    for backup_type in BACKUP_TYPES.values():
        if normalized in (backup_type.kind, backup_type.s3_prefix):
            return backup_type
    raise ValidationError(f"Invalid type '{kind}'. Valid types: volume, pg, redis")


def make_timestamp(now: Optional[datetime] = None) -> str:
    """Return the run timestamp in local wall-clock time."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class ArtifactName:
    name: str
    timestamp: datetime
    extension: str


def parse_artifact_name(key: str) -> Optional[ArtifactName]:
    """Parse ``<name>_<YYYYMMDD_HHMMSS>.<ext>.xz.7z`` from a key or file name."""
    match = _ARTIFACT_RE.match(posixpath.basename(key))
    if match is None:
        return None
    try:
        timestamp = datetime.strptime(match.group("stamp"), TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return ArtifactName(match.group("name"), timestamp, match.group("ext"))


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """Split ``s3://bucket/key`` into ``(bucket, key)``."""
    if not uri.startswith("s3://"):
        raise ValidationError(f"Not an S3 URI: {uri}")
    bucket, _, key = uri[len("s3://"):].partition("/")
    if not bucket or not key:
        raise ValidationError(f"S3 URI must include a bucket and a key: {uri}")
    return bucket, key
