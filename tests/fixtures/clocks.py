#!/usr/bin/env python3
"""Controllable clocks for guard windows, inactivity tracking and cursors."""

from datetime import datetime, timedelta, timezone


class FakeClock:
    """Monotonic clock in seconds, advanced by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """UTC wall clock, advanced by hand."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
