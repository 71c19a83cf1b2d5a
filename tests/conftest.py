"""Shared fixtures for the Lockbox test suite."""

from unittest.mock import MagicMock

import pytest

from lockbox.config import ConfigManager

from .helpers import BASE_ENV


@pytest.fixture
def make_config(tmp_path):
    """Build a loaded ConfigManager from an explicit environment."""

    def _make(env=None, config_path=None, env_file=None, **overrides):
        environ = dict(BASE_ENV if env is None else env)
        environ.setdefault("BACKUP_TEMP_DIR", str(tmp_path / "work"))
        environ.update(overrides)
        manager = ConfigManager(config_path, env_file=env_file, environ=environ)
        manager.load()
        return manager

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def docker_client():
    return MagicMock(name="docker_client")

