"""PostgreSQL dumps via ``pg_dumpall`` and restores via ``psql``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from docker.errors import DockerException

from ..archive import POSTGRES
from ..exceptions import BackupError, ContainerCommandError, RestoreError
from .base import BackupTarget, ContainerStrategy

LOGGER = logging.getLogger(__name__)

DEFAULT_USER = "postgres"
RESTORE_PATH = "/tmp"
RESTORE_FILENAME = "lockbox-restore.sql"

START_HINT = (
    "\nTo restore, create the PostgreSQL container first:\n"
    "  docker run -d --name {name} --label backup.strategy=pg \\\n"
    "    -e POSTGRES_PASSWORD=<password> -e POSTGRES_USER=postgres -e POSTGRES_DB=<dbname> \\\n"
    "    -v pgdata:/var/lib/postgresql/data postgres:16-alpine\n"
    "Then run this restore command again."
)


class PostgresStrategy(ContainerStrategy):
    """Dumps every database of containers labelled ``backup.strategy=pg``."""

    backup_type = POSTGRES

    def discover(self) -> List[BackupTarget]:
        targets = []
        for container in self.labelled_containers():
            skip_reason = None
            if container.status != "running":
                skip_reason = f"container is {container.status}"
            targets.append(BackupTarget(name=container.name, container=container, skip_reason=skip_reason))
        return targets

    def get_user(self, container) -> str:
        return self.container_env(container, "POSTGRES_USER") or DEFAULT_USER

    def export(self, target: BackupTarget, workdir: Path, timestamp: str) -> Path:
        container = target.container
        user = self.get_user(container)
        LOGGER.info("  Database user: %s", user)
        LOGGER.info("  Database: %s", self.container_env(container, "POSTGRES_DB") or "all databases")

        sql_path = workdir / f"{target.name}_{timestamp}.sql"
        LOGGER.info("  Creating SQL dump...")
        try:
            self.exec_to_file(container, ["pg_dumpall", "-U", user], sql_path)
        except ContainerCommandError as exc:
            sql_path.unlink(missing_ok=True)
            raise BackupError(f"Failed to create SQL dump for {target.name}: {exc}") from exc
        return sql_path

    def check_restore_target(self, name: str) -> BackupTarget:
        container = self.get_running_container(name, START_HINT.format(name=name))
        LOGGER.info("PostgreSQL user: %s", self.get_user(container))
        return BackupTarget(name=name, container=container)

    def restore(self, target: BackupTarget, data_file: Path) -> Dict[str, Any]:
        container = target.container
        user = self.get_user(container)
        remote_path = f"{RESTORE_PATH}/{RESTORE_FILENAME}"
        LOGGER.info("Restoring database...")
        try:
            self.copy_to_container(container, RESTORE_PATH, data_file, RESTORE_FILENAME)
            self.exec_output(container, ["psql", "-U", user, "-d", "postgres", "-q", "-f", remote_path])
        except ContainerCommandError as exc:
            raise RestoreError(f"Failed to restore database {target.name}: {exc}") from exc
        finally:
            self._remove_remote_file(container, remote_path)
        return {"user": user}

    @staticmethod
    def _remove_remote_file(container, path: str) -> None:
        try:
            container.exec_run(["rm", "-f", path])
        except DockerException as exc:
            LOGGER.warning("Failed to remove %s from %s: %s", path, container.name, exc)
