"""Batch backup of every labelled target of one type."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..archive import compress_file, encrypt_file, make_timestamp
from ..config import ConfigManager
from ..containers import BackupTarget, ContainerStrategy
from ..exceptions import BackupError, LockboxError, S3AccessError, UploadError
from ..s3 import S3FileCollector, S3FileInfo, S3Uploader
from ..utils import ProgressTracker, ReportGenerator, format_size

LOGGER = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Summarises one batch backup run."""

    backup_type: str
    timestamp: str
    total_targets: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    total_size_bytes: int = 0
    duration_seconds: float = 0.0
    uploaded: List[S3FileInfo] = field(default_factory=list)
    failed_targets: List[Tuple[str, str]] = field(default_factory=list)

    def has_failures(self) -> bool:
        return self.failed > 0


class BackupRunner:
    """Exports, compresses, encrypts and uploads each target in turn."""

    def __init__(
        self,
        config: ConfigManager,
        uploader: S3Uploader,
        collector: S3FileCollector,
        report_generator: ReportGenerator,
        progress_tracker: Optional[ProgressTracker] = None,
    ):
        self.config = config
        self.uploader = uploader
        self.collector = collector
        self.report_generator = report_generator
        self.progress_tracker = progress_tracker or ProgressTracker()
        self.temp_dir = Path(config.get_backup_config()["temp_dir"])

    def run(self, strategy: ContainerStrategy, timestamp: Optional[str] = None) -> BackupResult:
        """Back up every target ``strategy`` discovers; failures do not stop the batch."""
        backup_type = strategy.backup_type
        password = self.config.require_password()
        self.config.require_s3()
        timestamp = timestamp or make_timestamp()
        result = BackupResult(backup_type=backup_type.kind, timestamp=timestamp)

        LOGGER.info("Starting %s backup at %s...", backup_type.display_name, timestamp)
        self.uploader.ensure_bucket()
        targets = strategy.discover()
        result.total_targets = len(targets)

        start_time = time.time()
        self.progress_tracker.start(len(targets))
        try:
            for target in targets:
                if target.skip_reason:
                    LOGGER.warning("Skipping %s: %s", target.name, target.skip_reason)
                    result.skipped += 1
                    self.progress_tracker.skip()
                    continue
                try:
                    file_info = self._backup_target(strategy, target, timestamp, password)
                except LockboxError as exc:
                    LOGGER.error("  ✗ %s", exc)
                    result.failed += 1
                    result.failed_targets.append((target.name, str(exc)))
                    self.progress_tracker.fail()
                    continue
                result.successful += 1
                result.total_size_bytes += file_info.size
                result.uploaded.append(file_info)
                self.progress_tracker.advance()
        finally:
            self.progress_tracker.finish()
        result.duration_seconds = time.time() - start_time

        self._report(result, backup_type.display_name, backup_type.list_prefix())
        return result

    def _backup_target(
        self,
        strategy: ContainerStrategy,
        target: BackupTarget,
        timestamp: str,
        password: str,
    ) -> S3FileInfo:
        backup_type = strategy.backup_type
        workdir = self.temp_dir / target.name
        try:
            workdir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackupError(f"Unable to create working directory {workdir}: {exc}") from exc

        artifact = workdir / backup_type.artifact_name(target.name, timestamp)
        key = backup_type.s3_key(target.name, artifact.name)
        LOGGER.info("  - Backing up %s: %s", backup_type.kind, target.name)
        LOGGER.info("    Destination: %s", artifact)

        raw: Optional[Path] = None
        compressed: Optional[Path] = None
        try:
            raw = strategy.export(target, workdir, timestamp)
            LOGGER.info("    Compressing with xz...")
            compressed = compress_file(raw)
            LOGGER.info("    Encrypting with 7z...")
            encrypt_file(compressed, artifact, password)
        finally:
            for leftover in (raw, compressed):
                if leftover is not None:
                    leftover.unlink(missing_ok=True)

        size = artifact.stat().st_size
        LOGGER.info("    Uploading to S3...")
        try:
            file_info = self.uploader.upload(artifact, key)
        except UploadError:
            LOGGER.error("    Local copy kept at %s", artifact)
            raise

        artifact.unlink()
        if not any(workdir.iterdir()):
            workdir.rmdir()
        LOGGER.info("    ✓ Successfully backed up and uploaded %s (%s)", target.name, format_size(size))
        return file_info

    def _report(self, result: BackupResult, display_name: str, prefix: str) -> None:
        location = f"s3://{self.uploader.bucket}/{prefix}"
        details = [f"- {name} :: {message}" for name, message in result.failed_targets]
        try:
            stored = self.collector.list_backups(prefix)
        except S3AccessError as exc:
            LOGGER.debug("Listing %s failed: %s", location, exc)
            details.append("(Unable to list S3 contents - check S3 credentials and permissions)")
        else:
            details.append("S3 backup structure:")
            details.extend(f"  {info.get_s3_uri()} ({info.size})" for info in stored)

        self.report_generator.generate(
            "Backup completed!",
            {
                "Backup type": display_name,
                "Total backed up and uploaded": result.successful,
                "Failed": result.failed,
                "Skipped": result.skipped,
                "Total size": format_size(result.total_size_bytes),
                "Duration (s)": f"{result.duration_seconds:.2f}",
                "S3 Location": location,
            },
            details,
        )
