"""
Demo timer state machine: idle -> running -> expired, with stop/extend/reset.
"""
from unittest.mock import MagicMock

from models import DemoTimerState
from services.demo_timer import DEFAULT_DURATION_MS, DemoTimer, format_duration


def _timer(clock, **kwargs):
    return DemoTimer(clock=clock, **kwargs)


class TestFormatDuration:

    def test_formats_minutes_and_seconds(self):
        assert format_duration(180000) == "3:00"
        assert format_duration(61000) == "1:01"
        assert format_duration(999) == "0:00"

    def test_negative_clamped(self):
        assert format_duration(-5000) == "0:00"


class TestDemoTimer:

    def test_starts_idle_with_full_duration(self, clock):
        timer = _timer(clock)
        assert timer.status == DemoTimerState.IDLE
        assert timer.time_remaining == DEFAULT_DURATION_MS
        assert timer.percent_remaining == 1.0
        assert timer.is_active is False

    def test_counts_down_while_running(self, clock):
        on_start = MagicMock()
        timer = _timer(clock, on_start=on_start)
        timer.start()
        clock.advance(seconds=60)
        assert timer.is_active is True
        assert timer.time_remaining == 120000
        assert abs(timer.percent_remaining - 2 / 3) < 1e-9
        on_start.assert_called_once()

    def test_start_is_idempotent_while_running(self, clock):
        on_start = MagicMock()
        timer = _timer(clock, on_start=on_start)
        timer.start()
        clock.advance(seconds=30)
        timer.start(10000)
        assert timer.time_remaining == 150000
        on_start.assert_called_once()

    def test_expires_once_and_never_goes_negative(self, clock):
        on_expire = MagicMock()
        timer = _timer(clock, duration_ms=5000, on_expire=on_expire)
        timer.start()
        clock.advance(seconds=10)
        assert timer.status == DemoTimerState.EXPIRED
        assert timer.time_remaining == 0
        assert timer.percent_remaining == 0.0
        clock.advance(seconds=10)
        timer.status
        on_expire.assert_called_once()

    def test_stop_keeps_remaining(self, clock):
        timer = _timer(clock)
        timer.start()
        clock.advance(seconds=20)
        timer.stop()
        clock.advance(seconds=100)
        assert timer.status == DemoTimerState.IDLE
        assert timer.time_remaining == 160000

    def test_stop_after_expiry_stays_expired(self, clock):
        timer = _timer(clock, duration_ms=1000)
        timer.start()
        clock.advance(seconds=2)
        timer.stop()
        assert timer.status == DemoTimerState.EXPIRED

    def test_expire_now(self, clock):
        on_expire = MagicMock()
        timer = _timer(clock, on_expire=on_expire)
        timer.start()
        timer.expire_now()
        timer.expire_now()
        assert timer.status == DemoTimerState.EXPIRED
        assert timer.time_remaining == 0
        on_expire.assert_called_once()

    def test_extend_running_timer(self, clock):
        timer = _timer(clock)
        timer.start()
        clock.advance(seconds=60)
        timer.extend(30000)
        assert timer.time_remaining == 150000

    def test_extend_resurrects_expired_timer(self, clock):
        timer = _timer(clock, duration_ms=1000)
        timer.start()
        clock.advance(seconds=5)
        timer.extend(60000)
        assert timer.status == DemoTimerState.RUNNING
        clock.advance(seconds=30)
        assert timer.time_remaining == 30000

    def test_extend_ignores_non_positive(self, clock):
        timer = _timer(clock)
        timer.start()
        timer.extend(0)
        timer.extend(-1000)
        assert timer.time_remaining == DEFAULT_DURATION_MS

    def test_reset(self, clock):
        timer = _timer(clock)
        timer.start(5000)
        clock.advance(seconds=10)
        timer.reset()
        assert timer.status == DemoTimerState.IDLE
        assert timer.time_remaining == DEFAULT_DURATION_MS
        assert timer.percent_remaining == 1.0

    def test_custom_start_duration(self, clock):
        timer = _timer(clock)
        timer.start(10000)
        clock.advance(seconds=5)
        assert timer.time_remaining == 5000
        assert timer.percent_remaining == 0.5
