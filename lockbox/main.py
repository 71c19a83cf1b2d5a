"""Core application entry point."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import boto3
import docker
from botocore.exceptions import BotoCoreError, ClientError
from docker.errors import DockerException

from . import __version__
from .archive import get_backup_type
from .config import ConfigManager
from .containers import STRATEGIES, ContainerStrategy
from .exceptions import ConfigurationError, DockerAccessError
from .jobs import (
    BackupResult,
    BackupRunner,
    BatchRestoreResult,
    CleanupResult,
    CleanupRunner,
    RestoreResult,
    RestoreRunner,
)
from .s3 import FileDownloader, S3FileCollector, S3Uploader
from .scheduler import Scheduler, generate_crontab
from .utils import ReportGenerator, configure_logging

LOGGER = logging.getLogger(__name__)


class Lockbox:
    """Wires configuration, S3, Docker and the jobs together."""

    def __init__(self, config_path: Optional[str] = None, env_file: Optional[str] = ".env"):
        self.config = ConfigManager(config_path, env_file=env_file)
        self.config.load()

        configure_logging(self.config.get_logging_config())

        s3_config = self.config.get_s3_config()
        self.session = self._create_session(s3_config)
        self.s3_client = self.session.client("s3", endpoint_url=s3_config["endpoint"] or None)

        bucket = s3_config["bucket"]
        self.uploader = S3Uploader(self.s3_client, bucket, s3_config["storage_class"])
        self.collector = S3FileCollector(self.s3_client, bucket)
        self.downloader = FileDownloader(self.s3_client)
        self.report_generator = ReportGenerator(self.config.get_report_config()["directory"])

        self.backup_runner = BackupRunner(self.config, self.uploader, self.collector, self.report_generator)
        self.cleanup_runner = CleanupRunner(self.config, self.collector, self.uploader, self.report_generator)
        self.restore_runner = RestoreRunner(
            self.config, self.get_strategy, self.downloader, self.collector, self.report_generator
        )
        self._docker_client = None

    @property
    def docker_client(self):
        """Docker client, created on first use."""
        if self._docker_client is None:
            try:
                self._docker_client = docker.from_env(environment=self.config.environ)
            except DockerException as exc:
                raise DockerAccessError(
                    f"Cannot access Docker socket ({exc}). Make sure to mount /var/run/docker.sock"
                ) from exc
        return self._docker_client

    def get_strategy(self, kind: str) -> ContainerStrategy:
        backup_type = get_backup_type(kind)
        return STRATEGIES[backup_type.kind](self.docker_client, self.config)

    def backup(self, kind: str) -> BackupResult:
        return self.backup_runner.run(self.get_strategy(kind))

    def backup_volumes(self) -> BackupResult:
        return self.backup("volume")

    def backup_pg(self) -> BackupResult:
        return self.backup("pg")

    def backup_redis(self) -> BackupResult:
        return self.backup("redis")

    def cleanup(self, days: Optional[int] = None, dry_run: bool = False) -> CleanupResult:
        return self.cleanup_runner.run(days, dry_run=dry_run)

    def restore(
        self,
        kind: str,
        name: str,
        source: str,
        confirm: Optional[Callable[[str], bool]] = None,
    ) -> RestoreResult:
        return self.restore_runner.restore(kind, name, source, confirm=confirm)

    def restore_all(self, kind: str) -> BatchRestoreResult:
        return self.restore_runner.restore_all(kind)

    def check(self) -> Dict[str, Any]:
        """Verify settings, Docker access and S3 connectivity."""
        self.config.require_password()
        s3_config = self.config.require_s3()
        retention_days = self.config.get_retention_days()
        LOGGER.info("Lockbox %s", __version__)
        LOGGER.info("Configuration:")
        LOGGER.info("  S3 Endpoint: %s", s3_config["endpoint"])
        LOGGER.info("  S3 Bucket: %s", s3_config["bucket"])
        LOGGER.info("  S3 Region: %s", s3_config["region"])
        LOGGER.info("  Backup Retention: %s days", retention_days)

        try:
            self.docker_client.ping()
        except DockerException as exc:
            raise DockerAccessError(
                f"Cannot access Docker socket ({exc}). Make sure to mount /var/run/docker.sock"
            ) from exc
        LOGGER.info("Docker socket: OK")

        LOGGER.info("Testing S3 connection...")
        bucket_ready = self.uploader.check_connection()
        LOGGER.info("  ✓ S3 connection successful")
        if bucket_ready:
            LOGGER.info("  ✓ Bucket '%s' is accessible", s3_config["bucket"])
        else:
            LOGGER.warning("  ⚠ Bucket '%s' not found or not accessible", s3_config["bucket"])
            LOGGER.warning("  Note: Bucket will be created automatically during first backup")
        return {"docker": True, "s3": True, "bucket": bucket_ready, "retention_days": retention_days}

    def crontab(self) -> str:
        return generate_crontab(self.config)

    def scheduler(self) -> Scheduler:
        schedule = self.config.get_schedule_config()
        jobs = {
            "volumes": self.backup_volumes,
            "pg": self.backup_pg,
            "redis": self.backup_redis,
            "cleanup": self.cleanup,
        }
        return Scheduler(
            jobs,
            schedule,
            poll_interval=float(schedule["poll_interval"]),
            log_dir=schedule["log_dir"],
        )

    @staticmethod
    def _create_session(s3_config: Dict[str, Any]) -> boto3.session.Session:
        try:
            return boto3.session.Session(
                aws_access_key_id=s3_config["access_key"],
                aws_secret_access_key=s3_config["secret_key"],
                region_name=s3_config["region"],
            )
        except (BotoCoreError, ClientError) as exc:  # pragma: no cover - depends on AWS
            raise ConfigurationError(f"Unable to create S3 session: {exc}") from exc
