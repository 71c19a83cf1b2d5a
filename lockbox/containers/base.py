"""Shared plumbing for the label-driven backup strategies."""

from __future__ import annotations

import logging
import shutil
import tarfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from ..archive import BackupType
from ..config import ConfigManager
from ..exceptions import (
    ContainerCommandError,
    ContainerNotFoundError,
    ContainerNotRunningError,
    DockerAccessError,
)

LOGGER = logging.getLogger(__name__)

EXEC_WAIT_ATTEMPTS = 50
EXEC_WAIT_INTERVAL = 0.1


@dataclass
class BackupTarget:
    """A single thing to back up: a named volume or a database container."""

    name: str
    container: Any = None
    skip_reason: Optional[str] = None


class ContainerStrategy:
    """Base class for the volume, PostgreSQL and Redis strategies."""

    backup_type: BackupType

    def __init__(self, docker_client, config: ConfigManager):
        self.docker_client = docker_client
        self.config = config
        backup_cfg = config.get_backup_config()
        self.label = backup_cfg["label"]
        self.helper_image = backup_cfg["helper_image"]

    # -- discovery ---------------------------------------------------------

    def labelled_containers(self) -> List[Any]:
        """Return every container, running or not, labelled for this strategy."""
        label_filter = f"{self.label}={self.backup_type.kind}"
        try:
            containers = self.docker_client.containers.list(all=True, filters={"label": label_filter})
        except DockerException as exc:
            raise DockerAccessError(f"Unable to list containers: {exc}") from exc
        return sorted(containers, key=lambda container: container.name)

    def discover(self) -> List[BackupTarget]:
        raise NotImplementedError

    def get_running_container(self, name: str, hint: str = "") -> Any:
        try:
            container = self.docker_client.containers.get(name)
        except NotFound as exc:
            raise ContainerNotFoundError(f"Container '{name}' does not exist.{hint}") from exc
        except DockerException as exc:
            raise DockerAccessError(f"Unable to inspect container '{name}': {exc}") from exc
        if container.status != "running":
            raise ContainerNotRunningError(f"Container '{name}' is not running.{hint}")
        return container

    # -- backup / restore hooks -----------------------------------------------

    def export(self, target: BackupTarget, workdir: Path, timestamp: str) -> Path:
        """Write the raw (uncompressed) data for ``target`` and return its path."""
        raise NotImplementedError

    def check_restore_target(self, name: str) -> BackupTarget:
        """Validate that ``name`` can be restored into; called before confirmation."""
        raise NotImplementedError

    def restore(self, target: BackupTarget, data_file: Path) -> Dict[str, Any]:
        raise NotImplementedError

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def container_env(container, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return an environment variable from the container's configuration."""
        for entry in container.attrs.get("Config", {}).get("Env") or []:
            name, _, value = entry.partition("=")
            if name == key:
                return value
        return default

    def exec_output(self, container, command: List[str]) -> str:
        """Run ``command`` in ``container`` and return its output; raise on non-zero exit."""
        try:
            result = container.exec_run(command)
        except DockerException as exc:
            raise ContainerCommandError(
                f"Failed to run '{' '.join(command)}' in {container.name}: {exc}"
            ) from exc
        output = (result.output or b"").decode("utf-8", errors="replace")
        if result.exit_code != 0:
            raise ContainerCommandError(
                f"'{' '.join(command)}' in {container.name} exited with {result.exit_code}: {output.strip()}"
            )
        return output

    def exec_to_file(self, container, command: List[str], destination: Path) -> None:
        """Stream the stdout of ``command`` into ``destination``."""
        api = self.docker_client.api
        try:
            exec_id = api.exec_create(container.id, command, stdout=True, stderr=False)["Id"]
            with destination.open("wb") as fh:
                for chunk in api.exec_start(exec_id, stream=True):
                    fh.write(chunk)
            exit_code = self._wait_exec(exec_id)
        except (DockerException, OSError) as exc:
            raise ContainerCommandError(
                f"Failed to run '{' '.join(command)}' in {container.name}: {exc}"
            ) from exc
        if exit_code != 0:
            raise ContainerCommandError(
                f"'{' '.join(command)}' in {container.name} exited with {exit_code}"
            )

    def _wait_exec(self, exec_id: str) -> Optional[int]:
        # The output stream can close before the daemon records the exit code.
        info = self.docker_client.api.exec_inspect(exec_id)
        for _ in range(EXEC_WAIT_ATTEMPTS):
            if not info.get("Running"):
                break
            time.sleep(EXEC_WAIT_INTERVAL)
            info = self.docker_client.api.exec_inspect(exec_id)
        return info.get("ExitCode")

    def copy_from_container(self, container, path: str, destination: Path) -> Path:
        """Copy a single file out of ``container`` to ``destination``."""
        stream_path = destination.with_name(destination.name + ".stream.tar")
        try:
            bits, _ = container.get_archive(path)
            with stream_path.open("wb") as fh:
                for chunk in bits:
                    fh.write(chunk)
            with tarfile.open(stream_path, "r") as archive:
                member = next((m for m in archive.getmembers() if m.isfile()), None)
                if member is None:
                    raise ContainerCommandError(f"{path} in {container.name} is not a regular file")
                source = archive.extractfile(member)
                with destination.open("wb") as fh:
                    shutil.copyfileobj(source, fh)
        except NotFound as exc:
            raise ContainerCommandError(f"{path} not found in {container.name}") from exc
        except (DockerException, tarfile.TarError, OSError) as exc:
            raise ContainerCommandError(
                f"Failed to copy {path} from {container.name}: {exc}"
            ) from exc
        finally:
            stream_path.unlink(missing_ok=True)
        return destination

    def copy_to_container(self, container, directory: str, source: Path, arcname: str) -> None:
        """Copy ``source`` into ``directory`` inside ``container`` as ``arcname``."""
        bundle = source.with_name(source.name + ".upload.tar")
        try:
            with tarfile.open(bundle, "w") as archive:
                archive.add(str(source), arcname=arcname)
            with bundle.open("rb") as fh:
                copied = container.put_archive(directory, fh)
        except (DockerException, tarfile.TarError, OSError) as exc:
            raise ContainerCommandError(
                f"Failed to copy {source.name} to {container.name}:{directory}: {exc}"
            ) from exc
        finally:
            bundle.unlink(missing_ok=True)
        if not copied:
            raise ContainerCommandError(f"Failed to copy {source.name} to {container.name}:{directory}")

    def ensure_helper_image(self) -> None:
        """Pull the helper image if it is not available locally."""
        try:
            self.docker_client.images.get(self.helper_image)
        except ImageNotFound:
            LOGGER.info("Pulling helper image %s", self.helper_image)
            try:
                self.docker_client.images.pull(self.helper_image)
            except APIError as exc:
                raise DockerAccessError(f"Unable to pull image {self.helper_image}: {exc}") from exc
        except DockerException as exc:
            raise DockerAccessError(f"Unable to inspect image {self.helper_image}: {exc}") from exc
