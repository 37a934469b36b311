"""Watched-directory (Downloads) change watcher.

A directory's mtime moves when entries are added, removed or renamed, not
when a file's content changes. So a bump in the directory mtime triggers a
coarse scan for files modified in the last `recent_window` seconds rather
than precise per-file change detection. Files can be re-reported (throttled
per filename) or missed if they change without a directory-level change.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

from ..log import get_logger
from ..notify import Notifier
from ..sources import DirectoryStatSource
from ..throttle import ThrottleGate
from .base import PollingWatcher

_log = get_logger("watchers.directory")

FILE_THROTTLE_SECONDS = 30
DEFAULT_RECENT_WINDOW = 120


class DirectoryWatcher(PollingWatcher):
    name = "downloads"

    def __init__(
        self,
        notifier: Notifier,
        gate: ThrottleGate,
        interval: float,
        path: Path,
        recent_window: int = DEFAULT_RECENT_WINDOW,
        source: DirectoryStatSource | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(notifier, gate, interval)
        self.source = source or DirectoryStatSource(path)
        self.recent_window = recent_window
        self.clock = clock
        self.last_mtime = 0
        if interval > recent_window:
            _log.warning(
                "interval (%ss) is longer than recent_window (%ss); changes may be missed",
                interval,
                recent_window,
            )

    def tick(self) -> None:
        mtime = self.source.mtime()
        if mtime is None:
            return
        if mtime > self.last_mtime:
            for name in self.source.recent_files(self.recent_window, now=self.clock()):
                if self.gate.allow(f"dl_{name}", FILE_THROTTLE_SECONDS):
                    self.emit(f"⬇️ {name} updated")
        self.last_mtime = mtime
