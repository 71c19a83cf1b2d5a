"""Crontab generation from the configured schedules."""

from __future__ import annotations

import shlex
from typing import List

from ..config import ConfigManager

# job -> (CLI verb, crontab comment)
JOBS = {
    "volumes": ("backup-volumes", "Backup volumes"),
    "pg": ("backup-pg", "Backup PostgreSQL databases"),
    "redis": ("backup-redis", "Backup Redis databases"),
    "cleanup": ("cleanup", "Cleanup old backups"),
}


def base_command(config: ConfigManager) -> str:
    """Return the command line cron uses to invoke Lockbox."""
    command = str(config.get_schedule_config()["command"])
    if config.config_path is not None:
        command += f" --config {shlex.quote(str(config.config_path.resolve()))}"
    return command


def generate_crontab(config: ConfigManager) -> str:
    """Render a crontab with one entry per scheduled job."""
    schedule = config.get_schedule_config()
    log_dir = str(schedule["log_dir"]).rstrip("/")
    command = base_command(config)

    lines: List[str] = [
        "# Backup schedules (generated from environment variables)",
        "# Format: minute hour day month weekday command",
        "",
    ]
    for job, (verb, comment) in JOBS.items():
        lines.append(f"# {comment} (CRON_{job.upper()})")
        lines.append(f"{schedule[job]} {command} {verb} >> {log_dir}/{job}.log 2>&1")
        lines.append("")
    lines.append("# Log rotation marker")
    lines.append(f'0 5 * * * echo "=== $(date) ===" >> {log_dir}/cron.log 2>&1')
    return "\n".join(lines) + "\n"
