"""
Delayed restore: a single cancellable countdown that restores a session once
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from PyQt6.QtCore import QObject, pyqtSignal

from .session_service import SessionService, SessionSnapshot

logger = logging.getLogger(__name__)

TIMER_OPTIONS: tuple[str, ...] = ("15 minutes", "30 minutes", "1 hour", "5 hours")

_OPTION_SECONDS = {
    "15 minutes": 15 * 60,
    "30 minutes": 30 * 60,
    "1 hour": 60 * 60,
    "5 hours": 5 * 60 * 60,
}

DEFAULT_DELAY_SECONDS = 10
DEFAULT_OPTION_LABEL = "10 seconds (default)"


def reopen_delay_seconds(option: str | None) -> int:
    """Seconds to wait for a named option; unknown or missing options get the short default"""
    return _OPTION_SECONDS.get(option, DEFAULT_DELAY_SECONDS) if option else DEFAULT_DELAY_SECONDS


def format_remaining(seconds: float) -> str:
    total = max(0, int(math.ceil(seconds)))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class TimerPhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    FIRING = "firing"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TimerState:
    phase: TimerPhase
    remaining_seconds: int
    snapshot: SessionSnapshot | None

    @property
    def is_running(self) -> bool:
        return self.phase is TimerPhase.RUNNING


class ReopenTimerService(QObject):
    """Owns at most one countdown; when it expires the session is restored once.

    Remaining time is derived from ``clock`` (monotonic seconds). With a
    ``tick_interval`` a daemon thread polls the countdown, independent of any
    UI event loop. With ``tick_interval=None`` nothing runs in the background
    and callers drive the countdown with ``poll()``.

    A pending countdown lives only in memory and is lost when the process exits.
    """

    started = pyqtSignal(int)  # delay in seconds
    tick = pyqtSignal(int)  # remaining seconds
    fired = pyqtSignal(object)  # RestoreResult
    cancelled = pyqtSignal()
    restore_failed = pyqtSignal(str)

    def __init__(
        self,
        session_service: SessionService,
        clock: Callable[[], float] = time.monotonic,
        tick_interval: float | None = 1.0,
    ):
        super().__init__()
        self.session_service = session_service
        self.clock = clock
        self.tick_interval = tick_interval
        self._lock = threading.Lock()
        self._phase = TimerPhase.IDLE
        self._deadline = 0.0
        self._snapshot: SessionSnapshot | None = None
        self._token: threading.Event | None = None
        self._generation = 0

    @property
    def state(self) -> TimerState:
        with self._lock:
            remaining = 0
            if self._phase is TimerPhase.RUNNING:
                remaining = max(0, int(math.ceil(self._deadline - self.clock())))
            return TimerState(self._phase, remaining, self._snapshot)

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def start(self, snapshot: SessionSnapshot, delay_seconds: float) -> None:
        """Start a countdown, superseding any countdown already running"""
        with self._lock:
            superseded = self._phase is TimerPhase.RUNNING
            if superseded:
                self._cancel_locked()
            self._generation += 1
            generation = self._generation
            token = threading.Event()
            self._token = token
            self._snapshot = snapshot
            self._deadline = self.clock() + max(0.0, float(delay_seconds))
            self._phase = TimerPhase.RUNNING

        if superseded:
            logger.info("Previous reopen timer superseded")
            self.cancelled.emit()
        logger.info("Reopen timer started: %s", format_remaining(delay_seconds))
        self.started.emit(int(math.ceil(delay_seconds)))

        if self.tick_interval is not None:
            thread = threading.Thread(
                target=self._run, args=(token, generation), name="later-reopen-timer", daemon=True
            )
            thread.start()

    def cancel(self) -> bool:
        """Cancel a running countdown; a no-op once the restore has begun"""
        with self._lock:
            if self._phase is not TimerPhase.RUNNING:
                return False
            self._cancel_locked()
        logger.info("Reopen timer cancelled")
        self.cancelled.emit()
        return True

    def _cancel_locked(self) -> None:
        if self._token is not None:
            self._token.set()
        self._phase = TimerPhase.CANCELLED
        self._generation += 1
        self._token = None
        self._snapshot = None
        self._phase = TimerPhase.IDLE

    def poll(self) -> bool:
        """Advance the current countdown; returns True while it is still running"""
        with self._lock:
            generation = self._generation
        return self._poll(generation)

    def _run(self, token: threading.Event, generation: int) -> None:
        while True:
            with self._lock:
                if generation != self._generation or self._phase is not TimerPhase.RUNNING:
                    return
                remaining = self._deadline - self.clock()
            if token.wait(min(self.tick_interval, max(0.0, remaining))):
                return
            if not self._poll(generation):
                return

    def _poll(self, generation: int) -> bool:
        with self._lock:
            if generation != self._generation or self._phase is not TimerPhase.RUNNING:
                return False
            remaining = self._deadline - self.clock()
            fire = remaining <= 0
            seconds = 0 if fire else int(math.ceil(remaining))
            snapshot = self._snapshot
            if fire:
                self._phase = TimerPhase.FIRING

        if not fire:
            self.tick.emit(seconds)
            return True
        self._fire(generation, snapshot)
        return False

    def _fire(self, generation: int, snapshot: SessionSnapshot) -> None:
        self.tick.emit(0)
        logger.info("Reopen timer expired, restoring %d apps", snapshot.app_count)
        result = None
        error = None
        try:
            result = self.session_service.restore(snapshot, blocking=True)
        except Exception as e:
            logger.exception("Delayed restore failed")
            error = str(e) or type(e).__name__
        finally:
            with self._lock:
                if generation == self._generation:
                    self._phase = TimerPhase.IDLE
                    self._snapshot = None
                    self._token = None
        # Emitted once the timer is idle again.
        if error is not None:
            self.restore_failed.emit(error)
        else:
            self.fired.emit(result)

    def shutdown(self) -> None:
        if self.cancel():
            logger.info("Pending delayed restore dropped at shutdown")
