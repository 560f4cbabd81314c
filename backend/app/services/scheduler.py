from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import random
import threading
from typing import Callable

logger = logging.getLogger(__name__)

RUN_MINUTES = (0, 30)
JOB_NAME = "Timetable Update (every 30 minutes)"


class ImportAlreadyRunningError(RuntimeError):
    pass


@dataclass(frozen=True)
class SchedulerStatus:
    running: bool
    next_run: datetime | None = None
    job_name: str | None = None

    @property
    def status(self) -> str:
        return "running" if self.running else "stopped"


def next_run_after(now: datetime) -> datetime:
    """First instant at or after ``now`` that falls on minute 0 or 30, in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    if now.second == 0 and now.microsecond == 0 and now.minute in RUN_MINUTES:
        return now
    base = now.replace(second=0, microsecond=0)
    for minute in RUN_MINUTES:
        if minute > now.minute:
            return base.replace(minute=minute)
    return base.replace(minute=0) + timedelta(hours=1)


class TimetableScheduler:
    """Runs the timetable import at minute 0 and 30 of every hour.

    One instance is created at startup and kept on ``app.state``. Runs never
    overlap: a tick that finds the previous run still busy is skipped.
    """

    def __init__(
        self,
        job: Callable[[threading.Event], object],
        *,
        jitter_seconds: int = 0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._job = job
        self._jitter_seconds = max(0, jitter_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._timer_thread: threading.Thread | None = None
        self._workers: list[threading.Thread] = []
        self._running = False

    @property
    def running(self) -> bool:
        with self._state_lock:
            return self._running

    def start(self, run_immediately: bool = False) -> bool:
        """Start the timer; ``False`` when it was already running."""
        with self._state_lock:
            if self._running:
                logger.info("Scheduler is already running")
                return False
            self._stop_event = threading.Event()
            self._timer_thread = threading.Thread(
                target=self._timer_loop, args=(self._stop_event,), name="timetable-scheduler", daemon=True
            )
            self._running = True
            self._timer_thread.start()
            if run_immediately:
                logger.info("Running first timetable import immediately")
                self._spawn_run()
        logger.info("Scheduler started, running at minutes %s", ", ".join(f"{m:02d}" for m in RUN_MINUTES))
        return True

    def stop(self, timeout: float | None = None) -> bool:
        """Cancel the timer and wait for an in-flight run to finish."""
        with self._state_lock:
            if not self._running:
                logger.info("Scheduler is not running")
                return True
            self._stop_event.set()
            timer_thread = self._timer_thread
            workers = list(self._workers)

        if timer_thread is not None:
            timer_thread.join(timeout)
        for worker in workers:
            worker.join(timeout)

        with self._state_lock:
            self._running = False
            self._timer_thread = None
            self._workers = []
        logger.info("Scheduler stopped")
        return True

    def status(self) -> SchedulerStatus:
        with self._state_lock:
            if not self._running:
                return SchedulerStatus(running=False)
            return SchedulerStatus(running=True, next_run=next_run_after(self._clock()), job_name=JOB_NAME)

    def _job_stop_event(self) -> threading.Event:
        # A stopped scheduler keeps its set event until the next start.
        with self._state_lock:
            if self._running:
                return self._stop_event
        return threading.Event()

    def run_now(self) -> object:
        """Run the job in the calling thread and return its result.

        Raises :class:`ImportAlreadyRunningError` when another run holds the
        lock; job failures propagate to the caller.
        """
        if not self._run_lock.acquire(blocking=False):
            raise ImportAlreadyRunningError("Timetable import already in progress")
        try:
            logger.info("Timetable update started at %s", self._clock().isoformat())
            result = self._job(self._job_stop_event())
            logger.info("Timetable update completed")
            return result
        finally:
            self._run_lock.release()

    def run_once(self) -> object | None:
        """Timer variant of :meth:`run_now`; ``None`` when skipped or failed."""
        try:
            return self.run_now()
        except ImportAlreadyRunningError:
            logger.warning("Timetable import already in progress, skipping run")
            return None
        except Exception:
            logger.exception("Timetable update failed, retrying on next tick")
            return None

    def _spawn_run(self) -> None:
        worker = threading.Thread(target=self.run_once, name="timetable-import", daemon=True)
        self._workers = [thread for thread in self._workers if thread.is_alive()]
        self._workers.append(worker)
        worker.start()

    def _timer_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            now = self._clock()
            due = next_run_after(now + timedelta(seconds=1))
            if self._jitter_seconds:
                due += timedelta(seconds=random.uniform(0, self._jitter_seconds))
            if stop_event.wait(max(0.0, (due - now).total_seconds())):
                break
            with self._state_lock:
                if stop_event.is_set():
                    break
                self._spawn_run()
