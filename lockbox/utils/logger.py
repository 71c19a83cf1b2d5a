"""Logging helpers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Client libraries that are chatty at INFO; only shown when running with DEBUG.
NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "docker")


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: Dict[str, Any]) -> None:
    """Set up the root logger from the ``logging`` config section.

    Console output goes to stderr.
    """
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(config.get("format") or DEFAULT_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if config.get("file"):
        root_logger.addHandler(_file_handler(Path(config["file"]), level, formatter))

    quiet_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    logging.captureWarnings(True)


@contextmanager
def job_log(log_dir: Optional[str], job: str) -> Iterator[Optional[Path]]:
    """Copy every record emitted inside the block to ``<log_dir>/<job>.log``."""
    if not log_dir:
        yield None
        return

    root_logger = logging.getLogger()
    path = Path(log_dir) / f"{job}.log"
    formatter = root_logger.handlers[0].formatter if root_logger.handlers else None
    try:
        handler = _file_handler(path, logging.NOTSET, formatter or logging.Formatter(DEFAULT_FORMAT))
    except OSError as exc:
        LOGGER.warning("Cannot write job log %s: %s", path, exc)
        yield None
        return
    root_logger.addHandler(handler)
    try:
        yield path
    finally:
        root_logger.removeHandler(handler)
        handler.close()
