"""Once-a-day trigger for task generation in the fixed civil timezone."""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from croniter import croniter

from bgi_panel.clock import CivilClock
from bgi_panel.tasks.models import GenerationSummary
from bgi_panel.tasks.repository import TaskRepository

logger = logging.getLogger(__name__)

DEFAULT_DAILY_CRON = "0 4 * * *"


class DailyTaskScheduler:
    """Runs ``generate_daily_tasks`` on a cron schedule evaluated in civil time.

    Waiting uses ``threading.Event.wait`` so ``stop()`` interrupts a sleeping loop
    immediately.
    """

    def __init__(
        self,
        *,
        repository: TaskRepository,
        clock: CivilClock,
        cron: str = DEFAULT_DAILY_CRON,
        run_on_start: bool = True,
    ) -> None:
        if not croniter.is_valid(cron):
            raise ValueError(f"Invalid cron expression: {cron!r}")
        self._repository = repository
        self._clock = clock
        self._cron = cron
        self._run_on_start = run_on_start
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def next_run_after(self, moment: datetime) -> datetime:
        """Next fire time strictly after ``moment``, as an aware civil-time datetime."""

        return croniter(self._cron, self._clock.localize(moment)).get_next(datetime)

    def run_once(self) -> GenerationSummary | None:
        """Generate today's tasks; failures are logged and reported as ``None``."""

        logger.info("Running daily task generation at %s", self._clock.local_now().isoformat())
        try:
            return self._repository.generate_daily_tasks()
        except Exception:
            logger.exception("Daily task generation failed; transaction rolled back")
            return None

    def run_forever(self) -> None:
        if self._run_on_start:
            self.run_once()
        while not self._stop.is_set():
            next_run = self.next_run_after(self._clock.now())
            delay = (next_run - self._clock.now()).total_seconds()
            logger.info(
                "Next daily task generation at %s (in %.0fs)",
                next_run.isoformat(),
                max(0.0, delay),
            )
            if self._stop.wait(timeout=max(0.0, delay)):
                break
            self.run_once()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            daemon=True,
            name="daily-task-scheduler",
        )
        self._thread.start()
        logger.info("Daily task scheduler started (cron=%r, tz=%s)", self._cron, self._clock.zone)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Daily task scheduler stopped")
