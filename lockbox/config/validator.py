"""Additional validation helpers for configuration values."""

from __future__ import annotations

import re
from typing import Any

from croniter import croniter

from ..exceptions import ValidationError


def is_valid_cron(expression: str) -> bool:
    """Return True for a five-field cron expression croniter can parse."""
    if not isinstance(expression, str) or len(expression.split()) != 5:
        return False
    return croniter.is_valid(expression)


def validate_retention_days(value: Any) -> int:
    """Return the retention period as an int; raise unless it is a positive integer."""
    if isinstance(value, bool) or not re.fullmatch(r"[0-9]+", str(value).strip()) or int(value) < 1:
        raise ValidationError(f"BACKUP_RETENTION_DAYS must be a positive integer (got: {value})")
    return int(value)
