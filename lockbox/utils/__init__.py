"""Utility helpers for Lockbox."""

from .logger import configure_logging, job_log
from .progress import ProgressTracker
from .report import ReportGenerator, format_size

__all__ = ["configure_logging", "job_log", "ProgressTracker", "ReportGenerator", "format_size"]
