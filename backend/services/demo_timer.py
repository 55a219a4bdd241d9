"""Demo Timer - short countdown for the unauthenticated demo.

State is derived from a clock rather than a ticking interval: the deadline
is stored and time_remaining is computed on read.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from models import DemoTimerState

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 3 * 60 * 1000


def format_duration(ms: int) -> str:
    """Format milliseconds as M:SS."""
    total_seconds = max(0, int(ms)) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


class DemoTimer:

    def __init__(
        self,
        duration_ms: int = DEFAULT_DURATION_MS,
        on_expire: Optional[Callable[[], None]] = None,
        on_start: Optional[Callable[[], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.duration_ms = duration_ms
        self.on_expire = on_expire
        self.on_start = on_start
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = DemoTimerState.IDLE
        self._started_duration_ms = duration_ms
        self._remaining_ms = duration_ms
        self._deadline: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def _refresh(self) -> None:
        if self._state != DemoTimerState.RUNNING:
            return
        left = self._deadline - self._clock()
        self._remaining_ms = max(0, int(left / timedelta(milliseconds=1)))
        if self._remaining_ms <= 0:
            self._expire()

    @property
    def status(self) -> DemoTimerState:
        self._refresh()
        return self._state

    @property
    def is_active(self) -> bool:
        return self.status == DemoTimerState.RUNNING

    @property
    def time_remaining(self) -> int:
        self._refresh()
        return self._remaining_ms

    @property
    def percent_remaining(self) -> float:
        if self._started_duration_ms <= 0:
            return 0.0
        return max(0.0, min(1.0, self.time_remaining / self._started_duration_ms))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, duration_ms: Optional[int] = None) -> None:
        if self.status == DemoTimerState.RUNNING:
            return
        effective = self.duration_ms if duration_ms is None else duration_ms
        self._started_duration_ms = effective
        self._remaining_ms = effective
        self._deadline = self._clock() + timedelta(milliseconds=effective)
        self._state = DemoTimerState.RUNNING
        logger.info(f"Demo timer started: {format_duration(effective)}")
        if self.on_start:
            self.on_start()
        self._refresh()

    def stop(self) -> None:
        self._refresh()
        if self._state == DemoTimerState.RUNNING:
            self._state = DemoTimerState.IDLE
            self._deadline = None

    def expire_now(self) -> None:
        self._refresh()
        if self._state == DemoTimerState.EXPIRED:
            return
        self._expire()

    def extend(self, delta_ms: int) -> None:
        if delta_ms <= 0:
            return
        self._refresh()
        self._remaining_ms = max(0, self._remaining_ms) + delta_ms
        if self._state == DemoTimerState.EXPIRED:
            self._state = DemoTimerState.RUNNING
        if self._state == DemoTimerState.RUNNING:
            self._deadline = self._clock() + timedelta(milliseconds=self._remaining_ms)

    def reset(self) -> None:
        self._state = DemoTimerState.IDLE
        self._deadline = None
        self._started_duration_ms = self.duration_ms
        self._remaining_ms = self.duration_ms

    def _expire(self) -> None:
        self._remaining_ms = 0
        self._deadline = None
        self._state = DemoTimerState.EXPIRED
        logger.info("Demo timer expired")
        if self.on_expire:
            self.on_expire()
