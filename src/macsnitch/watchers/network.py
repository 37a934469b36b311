"""Wi-Fi network (SSID) watcher."""

from __future__ import annotations

from ..notify import Notifier
from ..sources import NetworkAssociationSource
from ..throttle import ThrottleGate
from .base import PollingWatcher

# never a real reading, so the first sample always produces one notification
START = "(start)"


class NetworkWatcher(PollingWatcher):
    name = "wifi"

    def __init__(
        self,
        notifier: Notifier,
        gate: ThrottleGate,
        interval: float,
        source: NetworkAssociationSource | None = None,
    ) -> None:
        super().__init__(notifier, gate, interval)
        self.source = source or NetworkAssociationSource()
        self.last = START

    def tick(self) -> None:
        ssid = self.source.sample()
        if ssid != self.last:
            self.emit(f"📡 SSID → {ssid}")
            self.last = ssid
