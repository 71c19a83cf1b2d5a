"""Test settings and builders for docker-py shaped mocks."""

from unittest.mock import MagicMock

BASE_ENV = {
    "BACKUP_PASSWORD": "s3cret",
    "S3_ENDPOINT": "https://s3.example.com",
    "S3_ACCESS_KEY": "access",
    "S3_SECRET_KEY": "secret",
    "S3_BUCKET_NAME": "backups",
}


def make_container(name, status="running", env=None, mounts=None, container_id=None):
    """Return a MagicMock shaped like a docker-py Container."""
    container = MagicMock(name=f"container-{name}")
    container.name = name
    container.id = container_id or f"{name}-id"
    container.status = status
    container.attrs = {
        "Config": {"Env": [f"{key}={value}" for key, value in (env or {}).items()]},
        "Mounts": mounts or [],
    }
    return container


def exec_result(exit_code=0, output=b""):
    result = MagicMock()
    result.exit_code = exit_code
    result.output = output
    return result

