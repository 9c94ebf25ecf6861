"""Start/stop timer with persistence across restarts."""
from __future__ import annotations

import logging
import math
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from . import state
from .models import (
    DEFAULT_TIMER_DESCRIPTION,
    ActiveTimer,
    TimeEntry,
    ValidationError,
    new_entry_id,
    normalize_ticket_id,
)

MS_PER_MINUTE = 60_000
TICK_INTERVAL_SECONDS = 1.0

logger = logging.getLogger(__name__)


class TimerError(RuntimeError):
    """Raised for transitions the timer does not allow in its current state."""


def current_ms() -> int:
    return int(time.time() * 1000)


def duration_minutes(start_ms: int, stop_ms: int) -> int:
    # Half-minutes round up; a timer always yields at least one minute
    return max(1, math.floor((stop_ms - start_ms) / MS_PER_MINUTE + 0.5))


def elapsed_seconds_since(start_ms: int, now_ms: int) -> int:
    return max(0, (now_ms - start_ms) // 1000)


def format_clock(total_seconds: int) -> str:
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


class TimerSession:
    """Single-slot timer; either idle or running one ticket.

    The running record lives in the data directory so a later process can
    resume it. Elapsed time is always recomputed from the stored start time.
    """

    def __init__(self, home: Path, now_ms: Optional[Callable[[], int]] = None) -> None:
        self._home = home
        self._now_ms = now_ms or current_ms
        self._active: Optional[ActiveTimer] = None

    @property
    def active(self) -> Optional[ActiveTimer]:
        return self._active

    @property
    def is_running(self) -> bool:
        return self._active is not None

    def resume(self) -> Optional[int]:
        """Restore a persisted timer; return its elapsed seconds, or None when idle."""
        elapsed = self.refresh()
        if elapsed is not None:
            logger.debug("Resumed timer for %s started at %s", self._active.ticket_id, self._active.start_time)
        return elapsed

    def refresh(self) -> Optional[int]:
        # Another process may have stopped or replaced the timer since we last looked
        self._active = state.load_active_timer(self._home)
        if self._active is None:
            return None
        return self.elapsed_seconds()

    def elapsed_seconds(self) -> int:
        if self._active is None:
            return 0
        return elapsed_seconds_since(self._active.start_time, self._now_ms())

    def start(self, ticket_id: str, description: str = "") -> ActiveTimer:
        if self._active is not None:
            raise TimerError(f"A timer is already running for {self._active.ticket_id}.")
        ticket_id = normalize_ticket_id(ticket_id)
        if not ticket_id:
            raise ValidationError("Please enter a Ticket ID before starting.")
        timer = ActiveTimer(start_time=self._now_ms(), ticket_id=ticket_id, description=description or "")
        state.save_active_timer(self._home, timer)
        self._active = timer
        return timer

    def stop(self) -> TimeEntry:
        timer = self._require_active()
        entry = TimeEntry(
            id=new_entry_id(),
            ticket_id=timer.ticket_id,
            description=timer.description or DEFAULT_TIMER_DESCRIPTION,
            duration_minutes=duration_minutes(timer.start_time, self._now_ms()),
            timestamp=timer.start_time,
        )
        state.clear_active_timer(self._home)
        self._active = None
        return entry

    def cancel(self) -> ActiveTimer:
        """Drop the running timer without producing an entry."""
        timer = self._require_active()
        state.clear_active_timer(self._home)
        self._active = None
        return timer

    def _require_active(self) -> ActiveTimer:
        if self._active is None:
            raise TimerError("No timer is running.")
        return self._active


class Ticker:
    """Periodic task that reports a freshly computed elapsed time each interval."""

    def __init__(
        self,
        session: TimerSession,
        on_tick: Callable[[int], None],
        interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self._session = session
        self._on_tick = on_tick
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="ticketlog-ticker", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._interval * 2)
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            elapsed = self._session.refresh()
            if elapsed is None:
                break
            self._on_tick(elapsed)
