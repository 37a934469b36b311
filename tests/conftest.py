"""Shared fakes for watcher tests."""

from __future__ import annotations

import threading

import pytest


class RecordingNotifier:
    """Notifier that records messages instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self._lock = threading.Lock()

    def send(self, text: str) -> bool:
        with self._lock:
            self.sent.append(text)
        return True


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
