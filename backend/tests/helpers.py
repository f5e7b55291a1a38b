"""Test helpers: deterministic clocks and sample geometry."""
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

START = datetime(2026, 10, 18, 9, 0, 0, tzinfo=ZoneInfo("Asia/Taipei"))

SQUARE = [[0.0, 0.0], [0.0, 10.0], [10.0, 10.0], [10.0, 0.0], [0.0, 0.0]]


class TickingClock:
    """Clock that advances one second per call."""

    def __init__(self, start=START):
        self.current = start

    def __call__(self):
        moment = self.current
        self.current += timedelta(seconds=1)
        return moment


class FrozenClock:
    """Clock that always returns the same moment."""

    def __init__(self, moment=START):
        self.moment = moment

    def __call__(self):
        return self.moment
