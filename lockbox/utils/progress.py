"""Progress tracking utilities."""

from __future__ import annotations

from typing import Optional

from tqdm import tqdm


class ProgressTracker:
    """Counts processed targets and drives a tqdm bar on interactive terminals."""

    def __init__(self, description: str = "Backing up", unit: str = "target") -> None:
        self.description = description
        self.unit = unit
        self.total = 0
        self.completed = 0
        self.failed = 0
        self.skipped = 0
        self._bar: Optional[tqdm] = None

    def start(self, total: int) -> None:
        self.total = total
        self.completed = 0
        self.failed = 0
        self.skipped = 0
        # disable=None turns the bar off when stderr is not a TTY (cron logs)
        self._bar = tqdm(total=total, desc=self.description, unit=self.unit, disable=None, leave=False)

    def advance(self) -> None:
        self.completed += 1
        self._advance_bar()

    def skip(self) -> None:
        self.skipped += 1
        self._advance_bar()

    def fail(self) -> None:
        self.failed += 1
        self._advance_bar()

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def _advance_bar(self) -> None:
        if self._bar is not None:
            self._bar.update(1)
