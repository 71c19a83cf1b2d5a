"""Scheduling: generated crontab or the built-in polling loop."""

from .crontab import JOBS, generate_crontab
from .scheduler import Scheduler

__all__ = ["JOBS", "Scheduler", "generate_crontab"]
