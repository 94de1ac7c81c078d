"""Background scheduler that drives the monitoring cycle."""
from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]


class SchedulerStatus(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(slots=True)
class SchedulerState:
    """Current status of a ``PollingScheduler``.

    ``generation`` increases on every start and stop; a cycle only counts as
    current while the generation it was started under is unchanged.
    """

    status: SchedulerStatus = SchedulerStatus.IDLE
    timer: Optional[threading.Timer] = None
    generation: int = 0
    in_flight: Optional[int] = None
    """Generation of the run currently executing, if any."""
    first_run_pending: bool = False
    """An immediate first run is armed and has not started yet."""


class PollingScheduler:
    """Runs ``task`` periodically on a timer thread.

    ``start()`` and ``stop()`` are the only methods that change the status.
    The next run is scheduled ``interval_seconds`` after the previous one
    finishes, so runs never overlap.
    """

    def __init__(
        self,
        interval_seconds: float,
        task: Callable[[CancelCheck], None],
        run_immediately: bool = True,
    ) -> None:
        self._interval = interval_seconds
        self._task = task
        self._run_immediately = run_immediately
        self._state = SchedulerState()
        self._lock = threading.Lock()

    @property
    def status(self) -> SchedulerStatus:
        return self._state.status

    @property
    def is_running(self) -> bool:
        return self._state.status is SchedulerStatus.RUNNING

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def start(self) -> bool:
        """Start scheduling runs; returns ``False`` if already running."""

        with self._lock:
            if self._state.status is SchedulerStatus.RUNNING:
                return False
            self._state.generation += 1
            self._state.status = SchedulerStatus.RUNNING
            self._state.first_run_pending = self._run_immediately
            self._schedule_next(0 if self._run_immediately else self._interval)
            logger.info("Monitoring started (every %s seconds)", self._interval)
            return True

    def stop(self) -> bool:
        """Stop the scheduler; returns ``False`` if it was not running.

        A run already in progress is told to cancel but is not interrupted.
        """

        with self._lock:
            if self._state.status is SchedulerStatus.IDLE:
                return False
            self._state.generation += 1
            self._state.status = SchedulerStatus.IDLE
            self._state.first_run_pending = False
            if self._state.timer is not None:
                self._state.timer.cancel()
                self._state.timer = None
            logger.info("Monitoring stopped")
            return True

    def update_interval(self, interval_seconds: float) -> None:
        """Change the period; a pending timer is re-armed with the new value.

        An immediate first run that has not fired yet keeps its timer.
        """

        with self._lock:
            self._interval = interval_seconds
            state = self._state
            if (
                state.status is SchedulerStatus.RUNNING
                and not state.first_run_pending
                and state.in_flight != state.generation
            ):
                if self._state.timer is not None:
                    self._state.timer.cancel()
                self._schedule_next(self._interval)

    def _schedule_next(self, delay: float) -> None:
        timer = threading.Timer(delay, self._run_task, args=(self._state.generation,))
        timer.daemon = True
        self._state.timer = timer
        timer.start()

    def _is_cancelled(self, generation: int) -> bool:
        return self._state.generation != generation

    def _run_task(self, generation: int) -> None:
        with self._lock:
            if self._is_cancelled(generation):
                return
            self._state.in_flight = generation
            self._state.first_run_pending = False
        try:
            logger.debug("Running scheduled monitoring cycle")
            self._task(lambda: self._is_cancelled(generation))
        except Exception:
            logger.exception("Monitoring cycle failed")
        finally:
            with self._lock:
                if self._state.in_flight == generation:
                    self._state.in_flight = None
                if not self._is_cancelled(generation):
                    self._schedule_next(self._interval)
