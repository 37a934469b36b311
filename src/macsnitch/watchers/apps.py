"""Visible application launch/quit watcher."""

from __future__ import annotations

from ..log import get_logger
from ..notify import Notifier
from ..sources import VisibleAppsSource
from ..throttle import ThrottleGate
from .base import PollingWatcher

_log = get_logger("watchers.apps")


def diff_apps(previous: set[str], current: set[str]) -> tuple[list[str], list[str]]:
    """Return (launched, quit) app names, each sorted."""
    return sorted(current - previous), sorted(previous - current)


class VisibleAppsWatcher(PollingWatcher):
    """Reports apps appearing in / disappearing from the set of non-background apps.

    No throttling: each transition can only happen once per tick. The first
    sample after startup reports every visible app as launched.
    """

    name = "apps"

    def __init__(
        self,
        notifier: Notifier,
        gate: ThrottleGate,
        interval: float,
        source: VisibleAppsSource | None = None,
    ) -> None:
        super().__init__(notifier, gate, interval)
        self.source = source or VisibleAppsSource()
        self.previous: set[str] = set()

    def tick(self) -> None:
        current = self.source.sample()
        if current is None:
            # keep the previous set; replacing it with an empty sample would
            # report every app as quit now and relaunched on the next read
            _log.debug("app list unavailable, keeping %d known apps", len(self.previous))
            return

        launched, quit = diff_apps(self.previous, current)
        for name in launched:
            self.emit(f"🚀 App launched: {name}")
        for name in quit:
            self.emit(f"✅ App quit: {name}")
        self.previous = current
