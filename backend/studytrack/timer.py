"""Study timer state machine: a free-running stopwatch and a Pomodoro countdown.

One `SessionTimer` is owned per client session and handed to whatever
view needs it. It advances on `tick()` (driven once per second by a
`Ticker`) and persists finished runs through a `SessionGateway`.

Stopwatch: IDLE -> RUNNING <-> PAUSED, `reset` from anywhere to IDLE(0).
Pomodoro: READY -> RUNNING <-> PAUSED, RUNNING -> COMPLETED when the
countdown reaches zero, `reset` from anywhere to READY(M*60, 0).

Both share one persistence action guarded by a single save-in-flight
flag, so at most one save is outstanding per timer. A failed save keeps
the recorded seconds so the user can retry. When the Pomodoro auto-save
on completion fails (or is skipped because another save is in flight)
the COMPLETED state remembers it and accepts a manual `save_pomodoro`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Optional

from .config import settings
from .errors import StudyTrackerError, TransientStoreError, ValidationError
from .utils.aggregation import format_duration

logger = logging.getLogger("studytrack.timer")

DEFAULT_SUBJECT = "TYT Matematik"
MIN_POMODORO_MINUTES = 1
MAX_POMODORO_MINUTES = 180
DEFAULT_POMODORO_MINUTES = settings.DEFAULT_POMODORO_MINUTES


class StopwatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class PomodoroState(str, Enum):
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionPayload:
    subject: str
    duration_seconds: int
    date: str


class SessionGateway:
    """Persists a finished run.

    `submit` must eventually call exactly one of `on_success(saved)` or
    `on_failure(exc)`. It may do so before returning (synchronous
    gateways) or later from another thread.
    """

    def submit(self, payload: SessionPayload,
               on_success: Callable[[dict], None],
               on_failure: Callable[[Exception], None]) -> None:
        raise NotImplementedError


class ApiSessionGateway(SessionGateway):
    """Posts sessions through a `StudyTrackerClient`."""

    def __init__(self, client):
        self.client = client

    def submit(self, payload, on_success, on_failure):
        try:
            saved = self.client.create_timer_session(payload.subject, payload.duration_seconds, payload.date)
        except StudyTrackerError as exc:
            on_failure(exc)
            return
        on_success(saved)


class BackgroundSessionGateway(SessionGateway):
    """Runs another gateway on a daemon thread so ticking never waits on I/O."""

    def __init__(self, inner: SessionGateway):
        self.inner = inner

    def submit(self, payload, on_success, on_failure):
        def _work():
            try:
                self.inner.submit(payload, on_success, on_failure)
            except Exception as exc:  # the inner gateway broke its contract
                logger.exception("session gateway raised")
                on_failure(TransientStoreError(str(exc)))

        threading.Thread(target=_work, daemon=True, name="session-save").start()


class Notifier:
    """User-facing signals. The default implementation only logs."""

    def alert(self) -> None:
        logger.warning("pomodoro finished")

    def notify(self, title: str, message: str, error: bool = False) -> None:
        if error:
            logger.error("%s: %s", title, message)
        else:
            logger.info("%s: %s", title, message)


class Stopwatch:
    """Counts seconds while RUNNING."""

    def __init__(self):
        self.state = StopwatchState.IDLE
        self.elapsed = 0
        # bumped on every reset so late save callbacks leave a new run alone
        self.run_id = 0

    @property
    def running(self) -> bool:
        return self.state is StopwatchState.RUNNING

    def start(self) -> None:
        if self.state in (StopwatchState.IDLE, StopwatchState.PAUSED):
            self.state = StopwatchState.RUNNING

    def pause(self) -> None:
        if self.state is StopwatchState.RUNNING:
            self.state = StopwatchState.PAUSED

    def reset(self) -> None:
        self.state = StopwatchState.IDLE
        self.elapsed = 0
        self.run_id += 1

    def tick(self) -> None:
        if self.state is StopwatchState.RUNNING:
            self.elapsed += 1

    def can_save(self) -> bool:
        return self.state is not StopwatchState.RUNNING and self.elapsed > 0

    def deduct(self, seconds: int) -> None:
        """Remove seconds that were persisted; back to IDLE when nothing is left."""
        self.elapsed = max(0, self.elapsed - seconds)
        if self.elapsed == 0 and self.state is not StopwatchState.RUNNING:
            self.state = StopwatchState.IDLE


class Pomodoro:
    """Countdown of `minutes` that completes exactly once per run."""

    def __init__(self, minutes: int = DEFAULT_POMODORO_MINUTES):
        _check_minutes(minutes)
        self.minutes = minutes
        self.state = PomodoroState.READY
        self.remaining = minutes * 60
        self.elapsed = 0
        # set when a completed run still has to be persisted
        self.unsaved = False
        # bumped on every reset so late save callbacks leave a new run alone
        self.run_id = 0

    @property
    def running(self) -> bool:
        return self.state is PomodoroState.RUNNING

    @property
    def completed(self) -> bool:
        return self.state is PomodoroState.COMPLETED

    def start(self) -> None:
        if self.state in (PomodoroState.READY, PomodoroState.PAUSED) and self.remaining > 0:
            self.state = PomodoroState.RUNNING

    def pause(self) -> None:
        if self.state is PomodoroState.RUNNING:
            self.state = PomodoroState.PAUSED

    def reset(self) -> None:
        self.state = PomodoroState.READY
        self.remaining = self.minutes * 60
        self.elapsed = 0
        self.unsaved = False
        self.run_id += 1

    def set_minutes(self, minutes: int) -> None:
        _check_minutes(minutes)
        if self.state is PomodoroState.RUNNING:
            raise ValidationError("cannot change the pomodoro length while it is running")
        self.minutes = minutes
        self.reset()

    def tick(self) -> bool:
        """Advance one second. Returns True on the tick that completes the run."""
        if self.state is not PomodoroState.RUNNING:
            return False
        self.remaining -= 1
        self.elapsed += 1
        if self.remaining <= 0:
            self.remaining = 0
            self.state = PomodoroState.COMPLETED
            return True
        return False

    def can_save(self) -> bool:
        if self.elapsed <= 0:
            return False
        if self.state is PomodoroState.COMPLETED:
            return self.unsaved
        return self.state is not PomodoroState.RUNNING


def _check_minutes(minutes) -> None:
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise ValidationError("pomodoro minutes must be an integer")
    if not MIN_POMODORO_MINUTES <= minutes <= MAX_POMODORO_MINUTES:
        raise ValidationError(
            f"pomodoro minutes must be between {MIN_POMODORO_MINUTES} and {MAX_POMODORO_MINUTES}"
        )


def _today() -> str:
    return date.today().isoformat()


class SessionTimer:
    """Stopwatch and Pomodoro for one client session.

    All public methods are safe to call from the tick thread, the UI and
    gateway callbacks concurrently.
    """

    def __init__(self, gateway: SessionGateway, notifier: Optional[Notifier] = None,
                 pomodoro_minutes: int = DEFAULT_POMODORO_MINUTES,
                 subject: str = DEFAULT_SUBJECT,
                 today: Callable[[], str] = _today):
        self.gateway = gateway
        self.notifier = notifier or Notifier()
        self.stopwatch = Stopwatch()
        self.pomodoro = Pomodoro(pomodoro_minutes)
        self.subject = subject
        self.today = today
        self._saving = False
        self._lock = threading.RLock()

    @property
    def saving(self) -> bool:
        return self._saving

    def select_subject(self, subject: str) -> None:
        if not subject or not subject.strip():
            raise ValidationError("subject must not be empty")
        with self._lock:
            self.subject = subject.strip()

    # ---- stopwatch ----

    def start_stopwatch(self) -> None:
        with self._lock:
            self.stopwatch.start()

    def pause_stopwatch(self) -> None:
        with self._lock:
            self.stopwatch.pause()

    def reset_stopwatch(self) -> None:
        with self._lock:
            self.stopwatch.reset()

    def save_stopwatch(self) -> bool:
        """Persist the stopwatch time. Returns False when there was nothing to do."""
        with self._lock:
            if self._saving or not self.stopwatch.can_save():
                return False
            payload = self._payload(self.stopwatch.elapsed)
            stopwatch = self.stopwatch
            run_id = stopwatch.run_id

            def on_success(_saved):
                with self._lock:
                    if stopwatch.run_id == run_id:
                        stopwatch.deduct(payload.duration_seconds)
                self._saved(payload)

            return self._submit(payload, on_success)

    # ---- pomodoro ----

    def start_pomodoro(self) -> None:
        with self._lock:
            self.pomodoro.start()

    def pause_pomodoro(self) -> None:
        with self._lock:
            self.pomodoro.pause()

    def reset_pomodoro(self) -> None:
        with self._lock:
            self.pomodoro.reset()

    def set_pomodoro_minutes(self, minutes: int) -> None:
        with self._lock:
            self.pomodoro.set_minutes(minutes)

    def save_pomodoro(self) -> bool:
        """Persist the Pomodoro time manually; resets to READY once saved."""
        with self._lock:
            if self._saving or not self.pomodoro.can_save():
                return False
            return self._save_pomodoro_run(manual=True)

    def _save_pomodoro_run(self, manual: bool) -> bool:
        pomodoro = self.pomodoro
        payload = self._payload(pomodoro.elapsed)
        run_id = pomodoro.run_id
        if not manual:
            pomodoro.unsaved = True

        def on_success(_saved):
            with self._lock:
                if pomodoro.run_id == run_id:
                    if manual:
                        pomodoro.elapsed = max(0, pomodoro.elapsed - payload.duration_seconds)
                        if pomodoro.elapsed == 0:
                            pomodoro.unsaved = False
                            if not pomodoro.running:
                                pomodoro.reset()
                    else:
                        pomodoro.unsaved = False
            self._saved(payload)

        return self._submit(payload, on_success)

    # ---- clock ----

    def tick(self) -> None:
        """Advance every running sub-machine by one second."""
        with self._lock:
            self.stopwatch.tick()
            if not self.pomodoro.tick():
                return
            logger.info("pomodoro completed minutes=%s elapsed=%s", self.pomodoro.minutes, self.pomodoro.elapsed)
            self.notifier.alert()
            self.notifier.notify("Pomodoro completed", f"{self.pomodoro.minutes} minute study block finished.")
            if self._saving:
                logger.warning("auto-save skipped, another save is in flight")
                self.pomodoro.unsaved = True
            else:
                self._save_pomodoro_run(manual=False)

    # ---- persistence ----

    def _payload(self, seconds: int) -> SessionPayload:
        return SessionPayload(subject=self.subject, duration_seconds=seconds, date=self.today())

    def _submit(self, payload: SessionPayload, on_success: Callable[[dict], None]) -> bool:
        self._saving = True

        def success(saved):
            with self._lock:
                self._saving = False
            on_success(saved)

        def failure(exc):
            with self._lock:
                self._saving = False
            logger.error("session save failed subject=%s duration=%s: %s",
                         payload.subject, payload.duration_seconds, exc)
            self.notifier.notify("Save failed", "The study session could not be saved. Please try again.",
                                 error=True)

        try:
            self.gateway.submit(payload, success, failure)
        except Exception as exc:
            logger.exception("session gateway raised")
            failure(TransientStoreError(str(exc)))
        return True

    def _saved(self, payload: SessionPayload) -> None:
        self.notifier.notify("Session saved", f"{format_duration(payload.duration_seconds)} recorded.")


class Ticker:
    """Daemon thread calling `timer.tick()` every `interval` seconds until stopped."""

    def __init__(self, timer: SessionTimer, interval: float = 1.0):
        self.timer = timer
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.alive:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="session-ticker")
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.timer.tick()
