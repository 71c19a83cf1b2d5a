"""In-process polling scheduler driven by cron expressions."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional

from croniter import croniter

from ..exceptions import LockboxError
from ..utils import job_log

LOGGER = logging.getLogger(__name__)


class Scheduler:
    """Runs each job when the wall clock passes its next cron fire time.

    Jobs run sequentially in registration order. A job that raises
    ``LockboxError`` is logged and rescheduled like any other. With
    ``log_dir`` set, each run is also logged to ``<log_dir>/<job>.log``.
    """

    def __init__(
        self,
        jobs: Dict[str, Callable[[], object]],
        schedules: Dict[str, str],
        poll_interval: float = 30,
        log_dir: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        missing = [name for name in jobs if name not in schedules]
        if missing:
            raise ValueError(f"No schedule configured for: {', '.join(missing)}")
        self.jobs = jobs
        self.schedules = {name: schedules[name] for name in jobs}
        self.poll_interval = poll_interval
        self.log_dir = log_dir
        self.clock = clock
        start = clock()
        self.next_runs: Dict[str, datetime] = {
            name: self._next_after(expression, start) for name, expression in self.schedules.items()
        }

    @staticmethod
    def _next_after(expression: str, moment: datetime) -> datetime:
        return croniter(expression, moment).get_next(datetime)

    def run_pending(self, now: Optional[datetime] = None) -> List[str]:
        """Run every job that is due at ``now``; return the names that ran."""
        now = now or self.clock()
        ran: List[str] = []
        for name, job in self.jobs.items():
            if self.next_runs[name] > now:
                continue
            LOGGER.info("Running scheduled job '%s'", name)
            with job_log(self.log_dir, name):
                try:
                    job()
                except LockboxError as exc:
                    LOGGER.error("Scheduled job '%s' failed: %s", name, exc)
                except Exception:
                    LOGGER.exception("Scheduled job '%s' crashed", name)
            ran.append(name)
            self.next_runs[name] = self._next_after(self.schedules[name], now)
            LOGGER.info("Next '%s' run at %s", name, self.next_runs[name].strftime("%Y-%m-%d %H:%M"))
        return ran

    def run_forever(self) -> None:
        for name, moment in self.next_runs.items():
            LOGGER.info("Job '%s' (%s) first run at %s", name, self.schedules[name], moment.strftime("%Y-%m-%d %H:%M"))
        while True:
            self.run_pending()
            time.sleep(self.poll_interval)
