"""Backup, cleanup and restore jobs."""

from .backup_runner import BackupResult, BackupRunner
from .cleanup_runner import CleanupResult, CleanupRunner, cutoff_date
from .restore_runner import BatchRestoreResult, RestoreResult, RestoreRunner

__all__ = [
    "BackupResult",
    "BackupRunner",
    "BatchRestoreResult",
    "CleanupResult",
    "CleanupRunner",
    "RestoreResult",
    "RestoreRunner",
    "cutoff_date",
]
