"""Redis snapshots via ``BGSAVE`` and ``dump.rdb`` copies."""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from docker.errors import DockerException

from ..archive import REDIS
from ..exceptions import BackupError, ContainerCommandError, RestoreError
from .base import BackupTarget, ContainerStrategy

LOGGER = logging.getLogger(__name__)

DUMP_FILENAME = "dump.rdb"

START_HINT = (
    "\nTo restore, create the Redis container first:\n"
    "  docker run -d --name {name} --label backup.strategy=redis \\\n"
    "    -v redis-data:/data redis:7-alpine\n"
    "Then run this restore command again."
)


class RedisStrategy(ContainerStrategy):
    """Snapshots containers labelled ``backup.strategy=redis``."""

    backup_type = REDIS

    def __init__(self, docker_client, config):
        super().__init__(docker_client, config)
        redis_cfg = config.get_redis_config()
        self.default_data_dir = str(redis_cfg["data_dir"]).rstrip("/") or "/data"
        self.bgsave_timeout = float(redis_cfg["bgsave_timeout"])
        self.bgsave_poll_interval = float(redis_cfg["bgsave_poll_interval"])
        restore_cfg = config.get_restore_config()
        self.shutdown_wait = float(restore_cfg["shutdown_wait"])
        self.startup_wait = float(restore_cfg["startup_wait"])

    def discover(self) -> List[BackupTarget]:
        targets = []
        for container in self.labelled_containers():
            skip_reason = None
            if container.status != "running":
                skip_reason = f"container is {container.status}"
            targets.append(BackupTarget(name=container.name, container=container, skip_reason=skip_reason))
        return targets

    def get_data_dir(self, container) -> str:
        """Return the mounted data directory, falling back to the configured default."""
        for mount in container.attrs.get("Mounts") or []:
            if mount.get("Destination") == self.default_data_dir:
                return mount["Destination"]
        return self.default_data_dir

    def export(self, target: BackupTarget, workdir: Path, timestamp: str) -> Path:
        container = target.container
        data_dir = self.get_data_dir(container)
        LOGGER.info("  Redis data directory: %s", data_dir)

        LOGGER.info("  Triggering BGSAVE...")
        try:
            self.exec_output(container, ["redis-cli", "BGSAVE"])
        except ContainerCommandError as exc:
            raise BackupError(f"Failed to trigger BGSAVE for {target.name}: {exc}") from exc

        LOGGER.info("  Waiting for BGSAVE to complete...")
        self.wait_for_bgsave(container)
        LOGGER.info("  BGSAVE completed")

        rdb_path = workdir / f"{target.name}_{timestamp}.rdb"
        LOGGER.info("  Copying %s...", DUMP_FILENAME)
        try:
            self.copy_from_container(container, f"{data_dir}/{DUMP_FILENAME}", rdb_path)
        except ContainerCommandError as exc:
            rdb_path.unlink(missing_ok=True)
            raise BackupError(f"Failed to copy {DUMP_FILENAME} from {target.name}: {exc}") from exc
        return rdb_path

    def wait_for_bgsave(self, container) -> None:
        """Poll ``INFO persistence`` until no background save is in progress."""
        waited = 0.0
        while waited < self.bgsave_timeout:
            info = self.exec_output(container, ["redis-cli", "INFO", "persistence"])
            if "rdb_bgsave_in_progress:0" in info:
                status = self._last_bgsave_status(info)
                if status is not None and status != "ok":
                    raise BackupError(f"BGSAVE failed for {container.name} (status: {status})")
                return
            time.sleep(self.bgsave_poll_interval)
            waited += self.bgsave_poll_interval
        raise BackupError(f"BGSAVE timeout for {container.name}")

    @staticmethod
    def _last_bgsave_status(info: str) -> Optional[str]:
        match = re.search(r"rdb_last_bgsave_status:(\w+)", info)
        return match.group(1) if match else None

    def check_restore_target(self, name: str) -> BackupTarget:
        container = self.get_running_container(name, START_HINT.format(name=name))
        LOGGER.info("Redis data directory: %s", self.get_data_dir(container))
        return BackupTarget(name=name, container=container)

    def restore(self, target: BackupTarget, data_file: Path) -> Dict[str, Any]:
        container = target.container
        data_dir = self.get_data_dir(container)

        LOGGER.info("Stopping Redis to restore data...")
        try:
            container.exec_run(["redis-cli", "SHUTDOWN", "NOSAVE"])
        except DockerException:
            # the connection drops while the server exits
            LOGGER.debug("SHUTDOWN NOSAVE on %s ended with an error", target.name, exc_info=True)
        time.sleep(self.shutdown_wait)

        LOGGER.info("Copying %s to container...", DUMP_FILENAME)
        try:
            self.copy_to_container(container, data_dir, data_file, DUMP_FILENAME)
        except ContainerCommandError as exc:
            raise RestoreError(f"Failed to copy {DUMP_FILENAME} to {target.name}: {exc}") from exc

        LOGGER.info("Restarting Redis container...")
        try:
            container.restart()
        except DockerException as exc:
            raise RestoreError(f"Failed to restart container {target.name}: {exc}") from exc
        time.sleep(self.startup_wait)

        key_count = self.count_keys(container)
        if key_count is None:
            LOGGER.warning("Failed to verify restored data in %s", target.name)
        else:
            LOGGER.info("  Keys in database: %s", key_count)
        return {"keys": key_count}

    def count_keys(self, container) -> Optional[int]:
        try:
            output = self.exec_output(container, ["redis-cli", "DBSIZE"])
        except ContainerCommandError:
            return None
        match = re.search(r"\d+", output)
        return int(match.group(0)) if match else None
