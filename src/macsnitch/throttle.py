"""Per-key notification cooldowns shared by all watchers."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class ThrottleGate:
    """Keyed cooldown map.

    One gate is built by the supervisor and handed to every watcher. Entries
    are created on first use and live for the rest of the process; the key
    space is bounded by the distinct app names / filenames seen in a session.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last_fired: dict[str, int] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, window: int) -> bool:
        """Return True (and record now) if `key` last fired at least `window` seconds ago."""
        now = int(self._clock())
        with self._lock:
            last = self._last_fired.get(key)
            if last is not None and now - last < window:
                return False
            self._last_fired[key] = now
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_fired)
