"""Run summaries and optional JSON reports."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

LOGGER = logging.getLogger(__name__)

_KB = 1024
_MB = 1024 * 1024
_GB = 1024 * 1024 * 1024


def format_size(size_bytes: int) -> str:
    """Render a byte count as B, KB, MB or GB with two decimals."""
    if size_bytes > _GB:
        return f"{size_bytes / _GB:.2f}GB"
    if size_bytes > _MB:
        return f"{size_bytes / _MB:.2f}MB"
    if size_bytes > _KB:
        return f"{size_bytes / _KB:.2f}KB"
    return f"{size_bytes}B"


class ReportGenerator:
    """Produces the end-of-run summary and, when configured, a JSON report file."""

    def __init__(self, output_dir: Optional[str] = None) -> None:
        self.output_dir = Path(output_dir).expanduser() if output_dir else None

    def generate(
        self,
        title: str,
        summary: Dict[str, object],
        details: Optional[List[str]] = None,
    ) -> str:
        text = self._build_text_report(title, summary, details or [])
        for line in text.splitlines():
            LOGGER.info(line)
        if self.output_dir is not None:
            try:
                self._write_json_report(title, summary, details or [])
            except OSError as exc:
                LOGGER.warning("Failed to write report: %s", exc)
        return text

    @staticmethod
    def _build_text_report(title: str, summary: Dict[str, object], details: List[str]) -> str:
        lines: List[str] = ["=" * 41, title, "=" * 41]
        for key, value in summary.items():
            lines.append(f"{key}: {value}")
        if details:
            lines.append("")
            lines.extend(details)
        return "\n".join(lines)

    def _write_json_report(self, title: str, summary: Dict[str, object], details: List[str]) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        slug = re.sub(r"[^a-z0-9]+", "_", title.lower()).strip("_")
        path = self.output_dir / f"report_{slug}_{timestamp}.json"
        payload = {
            "title": title,
            "generated_at": datetime.now(timezone.utc),
            "summary": summary,
            "details": details,
        }
        path.write_text(json.dumps(payload, default=self._json_serializer, indent=2), encoding="utf-8")
        LOGGER.info("Generated report: %s", path)
        return path

    @staticmethod
    def _json_serializer(value):
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc).isoformat()
            return value.isoformat()
        if isinstance(value, Path):
            return str(value)
        raise TypeError(f"Object of type {type(value)!r} is not JSON serialisable")
