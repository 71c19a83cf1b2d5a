"""Configuration utilities for Lockbox."""

from .config_manager import ConfigManager
from .validator import is_valid_cron, validate_retention_days

__all__ = ["ConfigManager", "is_valid_cron", "validate_retention_days"]
