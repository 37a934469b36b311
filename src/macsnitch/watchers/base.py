"""Watcher loop infrastructure shared by every signal watcher."""

from __future__ import annotations

import threading

from ..log import get_logger
from ..notify import Notifier
from ..throttle import ThrottleGate

_log = get_logger("watchers")


class Watcher:
    """A long-running unit that turns one OS signal into notifications.

    `run()` blocks until `stop()` is called (from another thread) or the
    underlying signal ends. A watcher's observed state is touched only by
    its own `run()` loop.
    """

    name = "watcher"

    def __init__(self, notifier: Notifier, gate: ThrottleGate) -> None:
        self.notifier = notifier
        self.gate = gate
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def run(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        self._stopped.set()

    def emit(self, text: str) -> None:
        _log.info("%s: %s", self.name, text)
        self.notifier.send(text)


class PollingWatcher(Watcher):
    """Watcher that samples its signal every `interval` seconds."""

    def __init__(self, notifier: Notifier, gate: ThrottleGate, interval: float) -> None:
        super().__init__(notifier, gate)
        self.interval = interval

    def tick(self) -> None:
        """Sample once, diff against the previous sample, notify."""
        raise NotImplementedError

    def run(self) -> None:
        _log.info("%s watcher started (every %ss)", self.name, self.interval)
        while not self.stopped:
            try:
                self.tick()
            except Exception as e:
                _log.error("%s: error: %s", self.name, e, exc_info=True)
            # wait() instead of sleep() so stop() takes effect immediately
            self._stopped.wait(self.interval)
        _log.info("%s watcher stopped", self.name)
