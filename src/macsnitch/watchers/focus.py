"""Frontmost application watcher."""

from __future__ import annotations

from ..notify import Notifier
from ..sources import FocusSource
from ..throttle import ThrottleGate
from .base import PollingWatcher

FOCUS_THROTTLE_SECONDS = 10


class FocusWatcher(PollingWatcher):
    name = "focus"

    def __init__(
        self,
        notifier: Notifier,
        gate: ThrottleGate,
        interval: float,
        source: FocusSource | None = None,
    ) -> None:
        super().__init__(notifier, gate, interval)
        self.source = source or FocusSource()
        self.last = ""

    def tick(self) -> None:
        current = self.source.sample()
        # an empty/failed read says nothing about focus; keep the last good name
        if not current or current == self.last:
            return
        if self.gate.allow(f"focus_{current}", FOCUS_THROTTLE_SECONDS):
            self.emit(f"🖥️ Focus → {current}")
        # updated even when throttled so flapping between two apps stays quiet
        self.last = current
