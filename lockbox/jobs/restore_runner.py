"""Single and batch restores from encrypted archives."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..archive import BackupType, decompress_file, decrypt_file, get_backup_type, parse_artifact_name
from ..config import ConfigManager
from ..containers import ContainerStrategy
from ..exceptions import LockboxError, RestoreError
from ..s3 import FileDownloader, S3FileCollector
from ..utils import ProgressTracker, ReportGenerator

LOGGER = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


@dataclass
class RestoreResult:
    backup_type: str
    name: str
    source: str
    status: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchRestoreResult:
    backup_type: str
    total: int = 0
    successful: int = 0
    failed: int = 0
    restored: List[str] = field(default_factory=list)
    failed_names: List[Tuple[str, str]] = field(default_factory=list)

    def has_failures(self) -> bool:
        return self.failed > 0


class RestoreRunner:
    """Downloads, decrypts, decompresses and hands data to the matching strategy."""

    def __init__(
        self,
        config: ConfigManager,
        strategy_factory: Callable[[str], ContainerStrategy],
        downloader: FileDownloader,
        collector: S3FileCollector,
        report_generator: ReportGenerator,
        progress_tracker: Optional[ProgressTracker] = None,
    ):
        self.config = config
        self.strategy_factory = strategy_factory
        self.downloader = downloader
        self.collector = collector
        self.report_generator = report_generator
        self.progress_tracker = progress_tracker or ProgressTracker("Restoring")

    def restore(
        self,
        kind: str,
        name: str,
        source: str,
        confirm: Optional[ConfirmCallback] = None,
    ) -> RestoreResult:
        """Restore ``name`` from ``source`` (an ``s3://`` URI or a local path).

        ``confirm`` is asked before anything is overwritten; ``None`` means batch mode.
        """
        backup_type = get_backup_type(kind)
        password = self.config.require_password()
        strategy = self.strategy_factory(backup_type.kind)

        LOGGER.info("Restore: type=%s name=%s backup=%s", backup_type.kind, name, source)
        artifact = parse_artifact_name(source)
        if artifact is not None and artifact.extension != backup_type.extension:
            raise RestoreError(
                f"{source} is a .{artifact.extension} archive; {backup_type.kind} restores need .{backup_type.extension}"
            )

        with tempfile.TemporaryDirectory(prefix="lockbox-restore-") as tmp:
            workdir = Path(tmp)
            archive = self._fetch(source, workdir)

            LOGGER.info("Decrypting and decompressing backup...")
            extracted = decrypt_file(archive, workdir / "extracted", password)
            compressed = self._find_compressed(extracted, backup_type)
            data_file = decompress_file(compressed)
            LOGGER.info("✓ Decrypted and decompressed")

            target = strategy.check_restore_target(name)
            if confirm is not None and not confirm(self._confirmation_message(backup_type, name)):
                LOGGER.info("Restore cancelled.")
                return RestoreResult(backup_type.kind, name, source, "cancelled")

            details = strategy.restore(target, data_file)

        LOGGER.info("✓ Successfully restored %s: %s", backup_type.kind, name)
        return RestoreResult(backup_type.kind, name, source, "restored", details)

    def restore_all(self, kind: str) -> BatchRestoreResult:
        """Restore every backed-up name of ``kind`` from its latest archive, without prompting."""
        backup_type = get_backup_type(kind)
        self.config.require_password()
        self.config.require_s3()
        result = BatchRestoreResult(backup_type=backup_type.kind)

        LOGGER.info("Restoring all %s (latest backups)", backup_type.s3_prefix)
        names = self.collector.list_names(backup_type)
        if not names:
            LOGGER.info("No backups found in s3://%s/%s", self.collector.bucket, backup_type.list_prefix())
            return result

        self.progress_tracker.start(len(names))
        try:
            for name in names:
                LOGGER.info("Processing: %s", name)
                latest = self.collector.latest_backup(backup_type, name)
                if latest is None:
                    LOGGER.info("  No backups found for %s", name)
                    self.progress_tracker.skip()
                    continue
                LOGGER.info("  Latest backup: %s", latest.get_filename())
                result.total += 1
                try:
                    self.restore(backup_type.kind, name, latest.get_s3_uri(), confirm=None)
                except LockboxError as exc:
                    LOGGER.error("  ✗ Failed to restore %s: %s", name, exc)
                    result.failed += 1
                    result.failed_names.append((name, str(exc)))
                    self.progress_tracker.fail()
                    continue
                result.successful += 1
                result.restored.append(name)
                self.progress_tracker.advance()
        finally:
            self.progress_tracker.finish()

        self.report_generator.generate(
            "Batch Restore Summary",
            {"Total": result.total, "Success": result.successful, "Failed": result.failed},
            [f"- {name} :: {message}" for name, message in result.failed_names],
        )
        return result

    def _fetch(self, source: str, workdir: Path) -> Path:
        if source.startswith("s3://"):
            self.config.require_s3()
            return self.downloader.download(source, workdir / "backup.7z")
        path = Path(source).expanduser()
        if not path.is_file():
            raise RestoreError(f"Backup file not found: {source}")
        return path

    @staticmethod
    def _find_compressed(extracted: List[Path], backup_type: BackupType) -> Path:
        suffix = f".{backup_type.extension}.xz"
        for path in extracted:
            if path.name.endswith(suffix):
                return path
        raise RestoreError(f"No *{suffix} file found after decryption")

    @staticmethod
    def _confirmation_message(backup_type: BackupType, name: str) -> str:
        if backup_type.kind == "volume":
            return f"This will overwrite volume '{name}'. Continue?"
        return f"This will overwrite existing data in '{name}'. Continue?"
