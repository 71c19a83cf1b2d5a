"""Backup and restore of Docker named volumes."""

from __future__ import annotations

import fnmatch
import logging
import tarfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from docker.errors import DockerException, NotFound

from ..archive import VOLUME
from ..exceptions import BackupError, DockerAccessError, RestoreError
from .base import BackupTarget, ContainerStrategy

LOGGER = logging.getLogger(__name__)

MOUNT_POINT = "/volume"
# Empties the mount point including dotfiles; globs that match nothing are harmless.
CLEAR_COMMAND = "rm -rf /volume/* /volume/..?* /volume/.[!.]* 2>/dev/null; true"


def relative_member_name(name: str, root: str = "volume") -> Optional[str]:
    """Map ``volume/a/b`` (as produced by the archive API) to ``./a/b``."""
    name = name.lstrip("/")
    if name == root:
        return "."
    if name.startswith(root + "/"):
        return "./" + name[len(root) + 1:]
    return None


def is_excluded(relative_name: str, patterns: List[str]) -> bool:
    """Return True if the path, its basename or any parent directory matches a pattern."""
    if not patterns:
        return False
    path = relative_name[2:] if relative_name.startswith("./") else relative_name
    if not path or path == ".":
        return False
    parts = path.split("/")
    for index in range(len(parts)):
        candidate = "/".join(parts[: index + 1])
        for pattern in patterns:
            if fnmatch.fnmatch(candidate, pattern) or fnmatch.fnmatch(parts[index], pattern):
                return True
    return False


class VolumeStrategy(ContainerStrategy):
    """Archives the named volumes of containers labelled ``backup.strategy=volume``."""

    backup_type = VOLUME

    def discover(self) -> List[BackupTarget]:
        targets: List[BackupTarget] = []
        seen = set()
        for container in self.labelled_containers():
            volumes = [
                mount.get("Name")
                for mount in container.attrs.get("Mounts") or []
                if mount.get("Type") == "volume" and mount.get("Name")
            ]
            if not volumes:
                LOGGER.info(
                    "Container %s has %s=volume but no named volumes", container.name, self.label
                )
                continue
            LOGGER.info("Backing up volumes for container: %s", container.name)
            for volume in volumes:
                if volume in seen:
                    LOGGER.debug("Volume %s already scheduled by another container", volume)
                    continue
                seen.add(volume)
                targets.append(BackupTarget(name=volume, container=container))
        return targets

    def export(self, target: BackupTarget, workdir: Path, timestamp: str) -> Path:
        stream_path = workdir / f"{target.name}_{timestamp}.stream.tar"
        tar_path = workdir / f"{target.name}_{timestamp}.tar"
        exclude_patterns = self.config.get_backup_config()["exclude_patterns"]

        self.ensure_helper_image()
        try:
            helper = self.docker_client.containers.create(
                self.helper_image,
                command="true",
                volumes={target.name: {"bind": MOUNT_POINT, "mode": "ro"}},
            )
        except DockerException as exc:
            raise BackupError(f"Failed to start helper container for {target.name}: {exc}") from exc

        try:
            bits, _ = helper.get_archive(MOUNT_POINT)
            with stream_path.open("wb") as fh:
                for chunk in bits:
                    fh.write(chunk)
            excluded = self._repack(stream_path, tar_path, exclude_patterns)
        except (DockerException, tarfile.TarError, OSError) as exc:
            tar_path.unlink(missing_ok=True)
            raise BackupError(f"Failed to create tar for {target.name}: {exc}") from exc
        finally:
            stream_path.unlink(missing_ok=True)
            self._remove_helper(helper)

        if excluded:
            LOGGER.info("    Excluded %s entries matching %s", excluded, ", ".join(exclude_patterns))
        return tar_path

    @staticmethod
    def _repack(stream_path: Path, tar_path: Path, exclude_patterns: List[str]) -> int:
        """Rewrite the archive with ``./``-relative names, dropping excluded entries."""
        excluded = 0
        with tarfile.open(stream_path, "r") as source, tarfile.open(
            tar_path, "w", format=tarfile.PAX_FORMAT
        ) as destination:
            for member in source:
                name = relative_member_name(member.name)
                if name is None:
                    continue
                if is_excluded(name, exclude_patterns):
                    excluded += 1
                    continue
                member.name = name
                if member.islnk():
                    link = relative_member_name(member.linkname)
                    if link is None or is_excluded(link, exclude_patterns):
                        excluded += 1
                        continue
                    member.linkname = link
                if member.isfile():
                    destination.addfile(member, source.extractfile(member))
                else:
                    destination.addfile(member)
        return excluded

    def check_restore_target(self, name: str) -> BackupTarget:
        return BackupTarget(name=name)

    def restore(self, target: BackupTarget, data_file: Path) -> Dict[str, Any]:
        if not tarfile.is_tarfile(data_file):
            raise RestoreError(f"{data_file.name} is not a tar archive")

        try:
            self.docker_client.volumes.get(target.name)
        except NotFound:
            LOGGER.info("Creating volume: %s", target.name)
            try:
                self.docker_client.volumes.create(name=target.name)
            except DockerException as exc:
                raise DockerAccessError(f"Unable to create volume {target.name}: {exc}") from exc
        except DockerException as exc:
            raise DockerAccessError(f"Unable to inspect volume {target.name}: {exc}") from exc

        self.ensure_helper_image()
        mounts = {target.name: {"bind": MOUNT_POINT, "mode": "rw"}}
        LOGGER.info("Restoring volume data...")
        try:
            self.docker_client.containers.run(
                self.helper_image,
                ["sh", "-c", CLEAR_COMMAND],
                volumes=mounts,
                remove=True,
            )
            helper = self.docker_client.containers.create(self.helper_image, command="true", volumes=mounts)
        except DockerException as exc:
            raise RestoreError(f"Failed to prepare volume {target.name}: {exc}") from exc

        try:
            with data_file.open("rb") as fh:
                copied = helper.put_archive(MOUNT_POINT, fh)
        except DockerException as exc:
            raise RestoreError(f"Failed to restore volume {target.name}: {exc}") from exc
        finally:
            self._remove_helper(helper)
        if not copied:
            raise RestoreError(f"Failed to restore volume {target.name}")
        return {"volume": target.name}

    @staticmethod
    def _remove_helper(helper) -> None:
        try:
            helper.remove(force=True)
        except DockerException as exc:
            LOGGER.warning("Failed to remove helper container %s: %s", getattr(helper, "name", "?"), exc)
