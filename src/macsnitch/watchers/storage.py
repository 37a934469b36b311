"""USB / volume attach and detach watcher.

Unlike the other watchers this one is not polled: it follows `log stream`
for the IOUSB and DiskArbitration subsystems and reacts to each line.
"""

from __future__ import annotations

import re

from ..log import get_logger
from ..notify import Notifier
from ..sources import StorageEventStream
from ..throttle import ThrottleGate
from .base import Watcher

_log = get_logger("watchers.storage")

IO_EVENT_RE = re.compile(r"USB|attached|detached|mount|unmount|Volume", re.IGNORECASE)
_PREFIX_RE = re.compile(r"^[^:]*: ")

# one physical plug-in produces a burst of lines; they all share this key
IO_THROTTLE_KEY = "io_event"
IO_THROTTLE_SECONDS = 2


def is_storage_event(line: str) -> bool:
    return IO_EVENT_RE.search(line) is not None


def trim_log_prefix(line: str) -> str:
    """Drop the leading "<timestamp/host/process>: " part of a syslog-style line."""
    return _PREFIX_RE.sub("", line, count=1).strip()


class RemovableStorageWatcher(Watcher):
    name = "usb"

    def __init__(
        self,
        notifier: Notifier,
        gate: ThrottleGate,
        stream: StorageEventStream | None = None,
    ) -> None:
        super().__init__(notifier, gate)
        self.stream = stream or StorageEventStream()

    def handle_line(self, line: str) -> None:
        if not is_storage_event(line):
            return
        if self.gate.allow(IO_THROTTLE_KEY, IO_THROTTLE_SECONDS):
            self.emit(f"🔌 IO/Disks: {trim_log_prefix(line)}")

    def run(self) -> None:
        _log.info("usb watcher started")
        try:
            for line in self.stream.lines():
                if self.stopped:
                    break
                try:
                    self.handle_line(line)
                except Exception as e:
                    _log.error("usb: error handling %r: %s", line, e, exc_info=True)
        except OSError as e:
            _log.error("usb: cannot start log stream: %s", e)
        finally:
            self.stream.close()
        _log.info("usb watcher stopped")

    def stop(self) -> None:
        super().stop()
        # the stream read has no poll boundary; killing `log` ends it
        self.stream.close()
