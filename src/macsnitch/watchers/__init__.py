"""Signal watchers: one long-running unit per OS activity signal."""

from __future__ import annotations

from ..config import WatcherConfig
from ..notify import Notifier
from ..sources import NetworkAssociationSource
from ..throttle import ThrottleGate
from .apps import VisibleAppsWatcher, diff_apps
from .base import PollingWatcher, Watcher
from .directory import DirectoryWatcher
from .focus import FocusWatcher
from .network import NetworkWatcher
from .storage import RemovableStorageWatcher, is_storage_event, trim_log_prefix


def build_watchers(config: WatcherConfig, notifier: Notifier, gate: ThrottleGate) -> list[Watcher]:
    """Create the enabled watchers, all sharing one notifier and throttle gate."""
    watchers: list[Watcher] = []
    if config.focus:
        watchers.append(FocusWatcher(notifier, gate, config.interval))
    if config.apps:
        watchers.append(VisibleAppsWatcher(notifier, gate, config.interval))
    if config.wifi:
        source = NetworkAssociationSource(interface=config.wifi_interface)
        watchers.append(NetworkWatcher(notifier, gate, config.interval, source=source))
    if config.usb:
        watchers.append(RemovableStorageWatcher(notifier, gate))
    if config.downloads:
        watchers.append(
            DirectoryWatcher(
                notifier,
                gate,
                config.interval,
                config.downloads_dir,
                recent_window=config.recent_window,
            )
        )
    return watchers


__all__ = [
    "DirectoryWatcher",
    "FocusWatcher",
    "NetworkWatcher",
    "PollingWatcher",
    "RemovableStorageWatcher",
    "VisibleAppsWatcher",
    "Watcher",
    "build_watchers",
    "diff_apps",
    "is_storage_event",
    "trim_log_prefix",
]
