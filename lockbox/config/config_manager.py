"""Configuration management utilities."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values

from ..exceptions import ConfigurationError, ValidationError
from .validator import is_valid_cron, validate_retention_days

SCHEDULED_JOBS = ("volumes", "pg", "redis", "cleanup")

# Environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "BACKUP_PASSWORD": ("backup", "password"),
    "BACKUP_TEMP_DIR": ("backup", "temp_dir"),
    "BACKUP_EXCLUDE_PATTERNS": ("backup", "exclude_patterns"),
    "BACKUP_HELPER_IMAGE": ("backup", "helper_image"),
    "BACKUP_RETENTION_DAYS": ("retention", "days"),
    "S3_ENDPOINT": ("s3", "endpoint"),
    "S3_ACCESS_KEY": ("s3", "access_key"),
    "S3_SECRET_KEY": ("s3", "secret_key"),
    "S3_BUCKET_NAME": ("s3", "bucket"),
    "S3_REGION": ("s3", "region"),
    "S3_STORAGE_CLASS": ("s3", "storage_class"),
    "CRON_VOLUMES": ("schedule", "volumes"),
    "CRON_PG": ("schedule", "pg"),
    "CRON_REDIS": ("schedule", "redis"),
    "CRON_CLEANUP": ("schedule", "cleanup"),
    "BACKUP_LOG_DIR": ("schedule", "log_dir"),
    "REPORT_DIR": ("report", "directory"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FILE": ("logging", "file"),
}


def split_patterns(value: Any) -> List[str]:
    """Normalise a comma separated string or list into a list of patterns."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [str(item).strip() for item in items if str(item).strip()]


class ConfigManager:
    """Loads configuration from an optional YAML file, a .env file and the environment.

    Precedence, lowest first: built-in defaults, the YAML file, values from
    ``.env`` for keys the environment leaves unset, the environment itself.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        env_file: Optional[str] = ".env",
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config_path = Path(config_path) if config_path else None
        self.env_file = Path(env_file) if env_file else None
        self._environ = environ
        self.environ: Dict[str, str] = {}
        self.config: Dict[str, Any] = {}

    def load(self) -> Dict[str, Any]:
        """Load and validate the configuration."""
        data: Dict[str, Any] = {}
        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigurationError(f"Configuration file not found: {self.config_path}")
            try:
                with self.config_path.open("r", encoding="utf-8") as fh:
                    data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:  # pragma: no cover - passthrough
                raise ConfigurationError(f"Failed to parse configuration: {exc}") from exc
            if not isinstance(data, dict):
                raise ValidationError("Configuration must be a mapping.")

        self.environ = self._read_environment()
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value is None or value == "":
                continue
            section_cfg = data.setdefault(section, {})
            if not isinstance(section_cfg, dict):
                raise ValidationError(f"Configuration section '{section}' must be a mapping.")
            section_cfg[key] = value

        self.config = data
        self.validate()
        return self.config

    def _read_environment(self) -> Dict[str, str]:
        values = dict(os.environ if self._environ is None else self._environ)
        if self.env_file is not None and self.env_file.is_file():
            for key, value in dotenv_values(self.env_file).items():
                # the process environment wins over .env
                if value is not None and not values.get(key):
                    values[key] = value
        return values

    def validate(self) -> bool:
        """Validate the loaded configuration contents."""
        if not isinstance(self.config, dict):
            raise ValidationError("Configuration must be a mapping.")

        for section in ("backup", "s3", "retention", "schedule", "redis", "restore", "report", "logging"):
            value = self.config.get(section, {})
            if value is not None and not isinstance(value, dict):
                raise ValidationError(f"Configuration section '{section}' must be a mapping.")

        validate_retention_days(self.get_retention_config()["days"])

        endpoint = self.get_s3_config()["endpoint"]
        if endpoint and not re.match(r"^https?://", str(endpoint)):
            raise ValidationError(f"S3_ENDPOINT must start with http:// or https:// (got: {endpoint})")

        schedule = self.get_schedule_config()
        for job in SCHEDULED_JOBS:
            expression = schedule[job]
            if not is_valid_cron(expression):
                raise ValidationError(
                    f"Invalid cron expression for CRON_{job.upper()}: '{expression}'. "
                    "Expected format: minute hour day month weekday (5 fields), e.g. '0 2 * * *'."
                )

        redis_cfg = self.get_redis_config()
        for key in ("bgsave_timeout", "bgsave_poll_interval"):
            value = redis_cfg[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValidationError(f"redis.{key} must be a positive number.")

        return True

    def require_password(self) -> str:
        """Return the backup password or raise if it is not configured."""
        password = self.get_backup_config()["password"]
        if not password:
            raise ConfigurationError("BACKUP_PASSWORD is not set.")
        return str(password)

    def require_s3(self) -> Dict[str, Any]:
        """Return the S3 section, raising if endpoint or credentials are missing."""
        s3_cfg = self.get_s3_config()
        missing = [
            env_name
            for env_name, key in (
                ("S3_ENDPOINT", "endpoint"),
                ("S3_ACCESS_KEY", "access_key"),
                ("S3_SECRET_KEY", "secret_key"),
            )
            if not s3_cfg.get(key)
        ]
        if missing:
            raise ConfigurationError(
                "S3 configuration incomplete. Required: " + ", ".join(missing)
            )
        return s3_cfg

    def _section(self, name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        section = self.config.get(name) or {}
        return {**defaults, **section}

    def get_backup_config(self) -> Dict[str, Any]:
        """Return backup-related configuration values with defaults."""
        merged = self._section(
            "backup",
            {
                "password": None,
                "temp_dir": "/tmp/lockbox-backups",
                "exclude_patterns": [],
                "label": "backup.strategy",
                "helper_image": "alpine",
            },
        )
        merged["exclude_patterns"] = split_patterns(merged["exclude_patterns"])
        return merged

    def get_s3_config(self) -> Dict[str, Any]:
        """Return S3 connection settings with defaults."""
        return self._section(
            "s3",
            {
                "endpoint": None,
                "access_key": None,
                "secret_key": None,
                "bucket": "lockbox",
                "region": "auto",
                "storage_class": "STANDARD",
            },
        )

    def get_retention_config(self) -> Dict[str, Any]:
        return self._section("retention", {"days": 30})

    def get_retention_days(self) -> int:
        """Return the configured retention in days."""
        return int(self.get_retention_config()["days"])

    def get_schedule_config(self) -> Dict[str, Any]:
        """Return cron schedules and scheduler settings with defaults."""
        return self._section(
            "schedule",
            {
                "volumes": "0 2 * * *",
                "pg": "15 2 * * *",
                "redis": "30 2 * * *",
                "cleanup": "45 2 * * *",
                "command": "lockbox",
                "log_dir": "/var/log/backups",
                "poll_interval": 30,
            },
        )

    def get_redis_config(self) -> Dict[str, Any]:
        return self._section(
            "redis",
            {"data_dir": "/data", "bgsave_timeout": 60, "bgsave_poll_interval": 1},
        )

    def get_restore_config(self) -> Dict[str, Any]:
        return self._section("restore", {"shutdown_wait": 2, "startup_wait": 3})

    def get_report_config(self) -> Dict[str, Any]:
        return self._section("report", {"directory": None})

    def get_logging_config(self) -> Dict[str, Any]:
        """Return logging configuration values with defaults."""
        return self._section(
            "logging",
            {
                "level": "INFO",
                "file": None,
                "console": True,
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        )
