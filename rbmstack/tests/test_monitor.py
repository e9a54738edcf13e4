"""Tests for the step monitor."""
import io
from unittest.mock import patch

import pytest

from rbmstack.src.monitor import StepMonitor


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    clock = FakeClock()
    with patch("tqdm.std.time", clock):
        yield clock


@pytest.fixture
def monitor():
    monitor = StepMonitor(interval=1.5, file=io.StringIO())
    yield monitor
    monitor.close()


class TestStepMonitor:
    """Tests for rate-limited progress reports."""

    def test_first_tick_starts_bar(self, clock, monitor):
        """The first tick only creates the bar."""
        assert monitor.tick(0, 100) is False
        assert monitor.bar is not None
        assert monitor.total == 100

    def test_reports_after_interval(self, clock, monitor):
        """A tick after the interval has elapsed asks for a report."""
        monitor.tick(0, 100)
        clock.now += 1.0
        assert monitor.tick(10, 100) is False
        clock.now += 1.0
        assert monitor.tick(20, 100) is True
        clock.now += 1.0
        assert monitor.tick(30, 100) is False

    def test_callable_tracks_step(self, clock, monitor):
        """The monitor can be passed straight to training as a progress callable."""
        assert monitor(0, 10) is False
        monitor(7, 10)
        assert monitor.step == 7 and monitor.total == 10

    def test_string_shows_progress(self, clock, monitor):
        """The rendering shows the step, the elapsed and the remaining time."""
        monitor.tick(0, 100)
        clock.now += 10.0
        monitor.tick(25, 100)
        text = str(monitor)
        assert "25%" in text
        assert "25/100" in text
        assert "00:10<00:30" in text

    def test_string_before_any_progress(self):
        """Rendering before the first tick doesn't need a bar."""
        assert str(StepMonitor()) == "Training: not started"

    def test_disabled_never_reports(self, clock):
        """A disabled bar never asks the caller to log."""
        with StepMonitor(disable=True) as monitor:
            monitor.tick(0, 100)
            clock.now += 10.0
            assert monitor.tick(50, 100) is False
