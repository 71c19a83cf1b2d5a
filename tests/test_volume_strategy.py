"""Tests for the named volume strategy (lockbox/containers/volume.py)."""

import io
import tarfile
from unittest.mock import MagicMock

import pytest
from docker.errors import NotFound

from lockbox.containers import VolumeStrategy
from lockbox.containers.base import BackupTarget
from lockbox.containers.volume import CLEAR_COMMAND, MOUNT_POINT, is_excluded, relative_member_name
from lockbox.exceptions import RestoreError

from .helpers import make_container


def volume_mount(name, destination="/data"):
    return {"Type": "volume", "Name": name, "Destination": destination}


def build_stream_tar(path):
    """Write a tar shaped like the archive API output for /volume."""
    with tarfile.open(path, "w") as archive:
        for name in ("volume", "volume/cache"):
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            archive.addfile(info)
        for name, data in (("volume/a.txt", b"hello"), ("volume/cache/blob", b"zzz")):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
        link = tarfile.TarInfo("volume/hard")
        link.type = tarfile.LNKTYPE
        link.linkname = "volume/a.txt"
        archive.addfile(link)
    return path


class TestMemberNames:
    """Test suite for relative_member_name and is_excluded."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("volume", "."),
            ("volume/a/b.txt", "./a/b.txt"),
            ("/volume/x", "./x"),
            ("volumes/x", None),
            ("other", None),
        ],
    )
    def test_relative_member_name(self, name, expected):
        """Test archive API names are rebased onto ./"""
        assert relative_member_name(name) == expected

    @pytest.mark.parametrize(
        "name,patterns,expected",
        [
            ("./app.log", ["*.log"], True),
            ("./logs/deep/file.txt", ["logs"], True),
            ("./nested/node_modules/pkg/index.js", ["node_modules"], True),
            ("./tmp/cache/file", ["tmp/*"], True),
            ("./keep/file.txt", ["*.log"], False),
            (".", ["*"], False),
            ("./anything", [], False),
        ],
    )
    def test_is_excluded(self, name, patterns, expected):
        """Test patterns match the path, any parent or a basename."""
        assert is_excluded(name, patterns) is expected


class TestVolumeDiscovery:
    """Test suite for VolumeStrategy.discover."""

    def test_discover_deduplicates_volumes(self, docker_client, config):
        """Test volumes shared by containers are backed up once."""
        docker_client.containers.list.return_value = [
            make_container("web", mounts=[volume_mount("shared"), volume_mount("web_uploads")]),
            make_container("worker", status="exited", mounts=[volume_mount("shared")]),
            make_container("proxy", mounts=[{"Type": "bind", "Source": "/etc/nginx", "Destination": "/etc/nginx"}]),
        ]

        targets = VolumeStrategy(docker_client, config).discover()

        assert [target.name for target in targets] == ["shared", "web_uploads"]
        docker_client.containers.list.assert_called_once_with(
            all=True, filters={"label": "backup.strategy=volume"}
        )


class TestVolumeExport:
    """Test suite for VolumeStrategy.export and _repack."""

    def test_repack_rewrites_names_and_excludes(self, tmp_path):
        """Test members become ./-relative and excluded paths are dropped."""
        stream = build_stream_tar(tmp_path / "stream.tar")
        output = tmp_path / "out.tar"

        excluded = VolumeStrategy._repack(stream, output, ["cache"])

        assert excluded == 2
        with tarfile.open(output) as archive:
            members = {member.name: member for member in archive.getmembers()}
            assert sorted(members) == [".", "./a.txt", "./hard"]
            assert members["./hard"].linkname == "./a.txt"
            assert archive.extractfile("./a.txt").read() == b"hello"

    def test_export_uses_read_only_helper(self, tmp_path, docker_client, make_config):
        """Test the volume is mounted read-only in a helper and the helper is removed."""
        config = make_config(BACKUP_EXCLUDE_PATTERNS="cache")
        stream = build_stream_tar(tmp_path / "fixture.tar")
        helper = MagicMock()
        helper.get_archive.return_value = (iter([stream.read_bytes()]), {})
        docker_client.containers.create.return_value = helper
        workdir = tmp_path / "work"
        workdir.mkdir()

        tar_path = VolumeStrategy(docker_client, config).export(
            BackupTarget("app_data"), workdir, "20240101_020000"
        )

        assert tar_path == workdir / "app_data_20240101_020000.tar"
        docker_client.containers.create.assert_called_once_with(
            "alpine", command="true", volumes={"app_data": {"bind": MOUNT_POINT, "mode": "ro"}}
        )
        helper.get_archive.assert_called_once_with(MOUNT_POINT)
        helper.remove.assert_called_once_with(force=True)
        assert not (workdir / "app_data_20240101_020000.stream.tar").exists()
        with tarfile.open(tar_path) as archive:
            assert "./cache/blob" not in archive.getnames()


class TestVolumeRestore:
    """Test suite for VolumeStrategy.restore."""

    def test_restore_creates_missing_volume_and_clears_it(self, tmp_path, docker_client, config):
        """Test a missing volume is created, emptied and filled from the tar."""
        data_file = tmp_path / "app_data_20240101_020000.tar"
        with tarfile.open(data_file, "w") as archive:
            info = tarfile.TarInfo("./a.txt")
            info.size = 1
            archive.addfile(info, io.BytesIO(b"x"))
        docker_client.volumes.get.side_effect = NotFound("no such volume")
        helper = MagicMock()
        helper.put_archive.return_value = True
        docker_client.containers.create.return_value = helper

        details = VolumeStrategy(docker_client, config).restore(BackupTarget("app_data"), data_file)

        assert details == {"volume": "app_data"}
        docker_client.volumes.create.assert_called_once_with(name="app_data")
        mounts = {"app_data": {"bind": MOUNT_POINT, "mode": "rw"}}
        docker_client.containers.run.assert_called_once_with(
            "alpine", ["sh", "-c", CLEAR_COMMAND], volumes=mounts, remove=True
        )
        assert helper.put_archive.call_args[0][0] == MOUNT_POINT
        helper.remove.assert_called_once_with(force=True)

    def test_restore_rejects_non_tar(self, tmp_path, docker_client, config):
        """Test a decrypted file that is not a tar archive is refused before touching Docker."""
        data_file = tmp_path / "broken.tar"
        data_file.write_bytes(b"not a tar")

        with pytest.raises(RestoreError, match="not a tar archive"):
            VolumeStrategy(docker_client, config).restore(BackupTarget("app_data"), data_file)
        docker_client.containers.run.assert_not_called()

    def test_restore_put_archive_refused(self, tmp_path, docker_client, config):
        """Test a refused upload raises RestoreError."""
        data_file = tmp_path / "v.tar"
        with tarfile.open(data_file, "w") as archive:
            info = tarfile.TarInfo("./a.txt")
            info.size = 1
            archive.addfile(info, io.BytesIO(b"x"))
        helper = MagicMock()
        helper.put_archive.return_value = False
        docker_client.containers.create.return_value = helper

        with pytest.raises(RestoreError):
            VolumeStrategy(docker_client, config).restore(BackupTarget("v"), data_file)
