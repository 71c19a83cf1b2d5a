"""Command line entry point for Lockbox."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .exceptions import LockboxError
from .main import Lockbox
from .utils import configure_logging

LOGGER = logging.getLogger(__name__)

RESTORE_TYPES = ["volume", "pg", "redis", "all-volumes", "all-pg", "all-redis"]
BATCH_RESTORE_KINDS = {"all-volumes": "volume", "all-pg": "pg", "all-redis": "redis"}


def _build(ctx: click.Context) -> Lockbox:
    """Create the application from the group options, honouring ``--log-level``."""
    options = ctx.obj or {}
    lockbox = Lockbox(options.get("config_path"), env_file=options.get("env_file"))
    log_level = options.get("log_level")
    if log_level is not None:
        lockbox.config.config.setdefault("logging", {})["level"] = log_level.upper()
        configure_logging(lockbox.config.get_logging_config())
    return lockbox


def _fail(exc: LockboxError) -> None:
    LOGGER.error("Execution failed: %s", exc)
    raise SystemExit(1) from exc


def _confirm(message: str) -> bool:
    answer = click.prompt(f"{message} (yes/no)", default="no", show_default=False)
    return answer.strip().lower() == "yes"


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False), help="Path to an optional YAML configuration file.")
@click.option("--env-file", default=".env", show_default=True, help="Dotenv file read for settings missing from the environment.")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False), help="Override logging level.")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], env_file: str, log_level: Optional[str]) -> None:
    """Back up Docker volumes, PostgreSQL and Redis to S3-compatible storage."""
    ctx.ensure_object(dict)
    ctx.obj.update({"config_path": config_path, "env_file": env_file, "log_level": log_level})


def _run_backup(ctx: click.Context, kind: str) -> None:
    try:
        result = _build(ctx).backup(kind)
    except LockboxError as exc:
        _fail(exc)
    if result.has_failures():
        raise SystemExit(1)


@main.command("backup-volumes")
@click.pass_context
def backup_volumes(ctx: click.Context) -> None:
    """Back up every named volume of containers labelled backup.strategy=volume."""
    _run_backup(ctx, "volume")


@main.command("backup-pg")
@click.pass_context
def backup_pg(ctx: click.Context) -> None:
    """Dump every PostgreSQL container labelled backup.strategy=pg."""
    _run_backup(ctx, "pg")


@main.command("backup-redis")
@click.pass_context
def backup_redis(ctx: click.Context) -> None:
    """Snapshot every Redis container labelled backup.strategy=redis."""
    _run_backup(ctx, "redis")


@main.command()
@click.argument("days", required=False)
@click.option("--dry-run", is_flag=True, help="List what would be deleted without deleting anything.")
@click.pass_context
def cleanup(ctx: click.Context, days: Optional[str], dry_run: bool) -> None:
    """Delete backups older than DAYS (default BACKUP_RETENTION_DAYS)."""
    try:
        result = _build(ctx).cleanup(days, dry_run=dry_run)
    except LockboxError as exc:
        _fail(exc)
    if result.has_failures():
        raise SystemExit(1)


@main.command()
@click.argument("restore_type", metavar="TYPE")
@click.argument("name", required=False)
@click.argument("backup_file", metavar="FILE", required=False)
@click.option("--yes", "-y", "assume_yes", is_flag=True, envvar="BATCH_MODE", help="Do not ask for confirmation.")
@click.pass_context
def restore(
    ctx: click.Context,
    restore_type: str,
    name: Optional[str],
    backup_file: Optional[str],
    assume_yes: bool,
) -> None:
    """Restore a backup.

    \b
    lockbox restore volume myapp_data s3://bucket/volumes/myapp_data/file.tar.xz.7z
    lockbox restore pg postgres ./postgres_20240101_020000.sql.xz.7z
    lockbox restore all-redis
    """
    if restore_type not in RESTORE_TYPES:
        LOGGER.error("Invalid type '%s'. Valid types: %s", restore_type, ", ".join(RESTORE_TYPES))
        raise SystemExit(1)
    batch_kind = BATCH_RESTORE_KINDS.get(restore_type)
    if batch_kind is None and (not name or not backup_file):
        LOGGER.error("restore %s requires NAME and FILE.", restore_type)
        raise SystemExit(1)

    try:
        lockbox = _build(ctx)
        if batch_kind is not None:
            batch = lockbox.restore_all(batch_kind)
            if batch.has_failures():
                raise SystemExit(1)
            return
        lockbox.restore(restore_type, name, backup_file, confirm=None if assume_yes else _confirm)
    except LockboxError as exc:
        _fail(exc)


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Validate configuration, Docker access and S3 connectivity."""
    try:
        _build(ctx).check()
    except LockboxError as exc:
        _fail(exc)
    click.echo("✓ Health check passed")


@main.command()
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False), help="Write the crontab to this file instead of stdout.")
@click.pass_context
def crontab(ctx: click.Context, output_path: Optional[str]) -> None:
    """Print the crontab generated from the CRON_* settings."""
    try:
        content = _build(ctx).crontab()
    except LockboxError as exc:
        _fail(exc)
    if output_path is None:
        click.echo(content, nl=False)
        return
    path = Path(output_path)
    path.write_text(content, encoding="utf-8")
    os.chmod(path, 0o644)
    LOGGER.info("Crontab written to %s", path)


@main.command()
@click.pass_context
def schedule(ctx: click.Context) -> None:
    """Run the backup jobs on their cron schedules in the foreground."""
    try:
        scheduler = _build(ctx).scheduler()
        scheduler.run_forever()
    except LockboxError as exc:
        _fail(exc)
    except KeyboardInterrupt:
        LOGGER.info("Scheduler stopped.")


if __name__ == "__main__":
    main()
