"""Retention-based removal of old backup archives."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from ..archive import BACKUP_TYPES
from ..config import ConfigManager, validate_retention_days
from ..exceptions import S3AccessError
from ..s3 import S3FileCollector, S3Uploader
from ..utils import ReportGenerator, format_size

LOGGER = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Summarises one retention cleanup."""

    days: int
    cutoff_date: str
    dry_run: bool = False
    deleted: int = 0
    failed: int = 0
    freed_bytes: int = 0
    per_type: Dict[str, Dict[str, int]] = field(default_factory=dict)
    deleted_keys: List[str] = field(default_factory=list)
    failed_keys: List[Tuple[str, str]] = field(default_factory=list)

    def has_failures(self) -> bool:
        return self.failed > 0


def cutoff_date(days: int, now: Optional[datetime] = None) -> str:
    """Return the UTC date ``days`` ago as ``YYYY-MM-DD``."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now.astimezone(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%d")


class CleanupRunner:
    """Deletes archives whose last-modified date falls before the retention cutoff."""

    def __init__(
        self,
        config: ConfigManager,
        collector: S3FileCollector,
        uploader: S3Uploader,
        report_generator: ReportGenerator,
    ):
        self.config = config
        self.collector = collector
        self.uploader = uploader
        self.report_generator = report_generator

    def run(
        self,
        days: Optional[int] = None,
        *,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> CleanupResult:
        self.config.require_s3()
        days = self.config.get_retention_days() if days is None else validate_retention_days(days)
        result = CleanupResult(days=days, cutoff_date=cutoff_date(days, now), dry_run=dry_run)

        LOGGER.info("Cleanup of backups older than %s days", days)
        LOGGER.info("S3 Bucket: s3://%s/", self.collector.bucket)
        LOGGER.info("Cutoff date: %s (files older than this will be deleted)", result.cutoff_date)

        for backup_type in BACKUP_TYPES.values():
            self._cleanup_prefix(backup_type.list_prefix(), backup_type.display_name.upper(), result)

        self.report_generator.generate(
            "Cleanup completed!" if not dry_run else "Cleanup dry run completed!",
            {
                "Retention (days)": days,
                "Cutoff date": result.cutoff_date,
                "Total files deleted": result.deleted,
                "Failed deletions": result.failed,
                "Total space freed": format_size(result.freed_bytes),
            },
            [f"- {key} :: {message}" for key, message in result.failed_keys],
        )
        return result

    def _cleanup_prefix(self, prefix: str, label: str, result: CleanupResult) -> None:
        LOGGER.info("=== Cleaning up %s backups ===", label)
        LOGGER.info("S3 Path: s3://%s/%s", self.collector.bucket, prefix)
        stats = result.per_type.setdefault(prefix.rstrip("/"), {"deleted": 0, "failed": 0, "freed_bytes": 0})

        try:
            backups = self.collector.list_backups(prefix)
        except S3AccessError as exc:
            LOGGER.error("Failed to list s3://%s/%s: %s", self.collector.bucket, prefix, exc)
            stats["failed"] += 1
            result.failed += 1
            result.failed_keys.append((prefix, str(exc)))
            return
        if not backups:
            LOGGER.info("No backups found in s3://%s/%s", self.collector.bucket, prefix)
            return

        for file_info in backups:
            file_date = file_info.get_date_string()
            # ISO dates compare correctly as strings
            if not file_date < result.cutoff_date:
                continue
            LOGGER.info(
                "  Deleting: %s (from %s, %s bytes)", file_info.get_s3_uri(), file_date, file_info.size
            )
            if result.dry_run:
                LOGGER.info("    Dry run: not deleted")
            else:
                try:
                    self.uploader.delete(file_info)
                except S3AccessError as exc:
                    LOGGER.error("    ✗ Failed to delete: %s", exc)
                    stats["failed"] += 1
                    result.failed += 1
                    result.failed_keys.append((file_info.key, str(exc)))
                    continue
                LOGGER.info("    ✓ Deleted")
            stats["deleted"] += 1
            stats["freed_bytes"] += file_info.size
            result.deleted += 1
            result.freed_bytes += file_info.size
            result.deleted_keys.append(file_info.key)

        if stats["deleted"] == 0:
            LOGGER.info("No backups older than %s days found.", result.days)
        else:
            LOGGER.info("Deleted %s file(s) from %s backups", stats["deleted"], label)
            LOGGER.info("Freed up: %s", format_size(stats["freed_bytes"]))
