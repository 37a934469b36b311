"""Tests for the signal watchers, driven by fake sources."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from macsnitch.sources import StorageEventStream
from macsnitch.throttle import ThrottleGate
from macsnitch.watchers import (
    DirectoryWatcher,
    FocusWatcher,
    NetworkWatcher,
    PollingWatcher,
    RemovableStorageWatcher,
    VisibleAppsWatcher,
    diff_apps,
    is_storage_event,
    trim_log_prefix,
)


class SequenceSource:
    """Returns queued samples in order (repeats the last one when exhausted)."""

    def __init__(self, *samples):
        self.samples = list(samples)

    def sample(self):
        if len(self.samples) > 1:
            return self.samples.pop(0)
        return self.samples[0]


# --- focus ---


def test_focus_reports_change(notifier, clock):
    watcher = FocusWatcher(notifier, ThrottleGate(clock), 2, source=SequenceSource("Safari", "Mail"))
    watcher.tick()
    watcher.tick()
    assert notifier.sent == ["🖥️ Focus → Safari", "🖥️ Focus → Mail"]


def test_focus_same_app_is_quiet(notifier, clock):
    watcher = FocusWatcher(notifier, ThrottleGate(clock), 2, source=SequenceSource("Safari"))
    watcher.tick()
    watcher.tick()
    assert notifier.sent == ["🖥️ Focus → Safari"]


def test_focus_empty_read_keeps_last(notifier, clock):
    source = SequenceSource("Safari", None, "", "Safari")
    watcher = FocusWatcher(notifier, ThrottleGate(clock), 2, source=source)
    for _ in range(4):
        watcher.tick()
    assert watcher.last == "Safari"
    assert notifier.sent == ["🖥️ Focus → Safari"]


def test_focus_flapping_is_throttled(notifier, clock):
    source = SequenceSource("Safari", "Mail", "Safari", "Mail")
    watcher = FocusWatcher(notifier, ThrottleGate(clock), 2, source=source)
    for _ in range(4):
        watcher.tick()
        clock.advance(2)
    assert notifier.sent == ["🖥️ Focus → Safari", "🖥️ Focus → Mail"]
    # last is still updated while throttled
    assert watcher.last == "Mail"


def test_focus_throttle_expires(notifier, clock):
    source = SequenceSource("Safari", "Mail", "Safari")
    watcher = FocusWatcher(notifier, ThrottleGate(clock), 2, source=source)
    for _ in range(3):
        watcher.tick()
        clock.advance(10)
    assert notifier.sent[-1] == "🖥️ Focus → Safari"
    assert len(notifier.sent) == 3


# --- visible apps ---


def test_diff_apps():
    assert diff_apps({"A", "B", "C"}, {"B", "C", "D"}) == (["D"], ["A"])
    assert diff_apps({"A", "B"}, {"A", "B"}) == ([], [])


def test_apps_launch_and_quit(notifier, clock):
    source = SequenceSource({"Finder", "Safari"}, {"Finder", "Mail"})
    watcher = VisibleAppsWatcher(notifier, ThrottleGate(clock), 2, source=source)
    watcher.tick()
    notifier.sent.clear()
    watcher.tick()
    assert notifier.sent == ["🚀 App launched: Mail", "✅ App quit: Safari"]


def test_apps_first_sample_reports_all(notifier, clock):
    watcher = VisibleAppsWatcher(
        notifier, ThrottleGate(clock), 2, source=SequenceSource({"Safari", "Finder"})
    )
    watcher.tick()
    assert notifier.sent == ["🚀 App launched: Finder", "🚀 App launched: Safari"]


def test_apps_not_throttled(notifier, clock):
    source = SequenceSource({"Mail"}, set(), {"Mail"}, set())
    watcher = VisibleAppsWatcher(notifier, ThrottleGate(clock), 2, source=source)
    for _ in range(4):
        watcher.tick()
    assert notifier.sent == [
        "🚀 App launched: Mail",
        "✅ App quit: Mail",
        "🚀 App launched: Mail",
        "✅ App quit: Mail",
    ]


def test_apps_failed_sample_keeps_previous(notifier, clock):
    source = SequenceSource({"Finder", "Safari"}, None, {"Finder", "Safari"})
    watcher = VisibleAppsWatcher(notifier, ThrottleGate(clock), 2, source=source)
    watcher.tick()
    notifier.sent.clear()
    watcher.tick()
    watcher.tick()
    assert notifier.sent == []
    assert watcher.previous == {"Finder", "Safari"}


# --- network ---


def test_network_transitions(notifier, clock):
    source = SequenceSource("HomeWifi", "HomeWifi", "(disconnected)", "CafeWifi")
    watcher = NetworkWatcher(notifier, ThrottleGate(clock), 2, source=source)
    for _ in range(4):
        watcher.tick()
    assert notifier.sent == [
        "📡 SSID → HomeWifi",
        "📡 SSID → (disconnected)",
        "📡 SSID → CafeWifi",
    ]


def test_network_first_reading_fires_once_even_for_sentinel(notifier, clock):
    watcher = NetworkWatcher(notifier, ThrottleGate(clock), 2, source=SequenceSource("(unknown)"))
    watcher.tick()
    watcher.tick()
    assert notifier.sent == ["📡 SSID → (unknown)"]


# --- removable storage ---


def test_storage_line_filter():
    assert is_storage_event("kernel: USB device attached")
    assert is_storage_event("diskarbitrationd: disk4s1 mount request")
    assert is_storage_event("something about a volume")
    assert not is_storage_event("airportd: scan finished")


def test_trim_log_prefix():
    line = "host kernel[0]: (IOUSBHostFamily) USB device attached"
    assert trim_log_prefix(line) == "(IOUSBHostFamily) USB device attached"
    assert trim_log_prefix("no prefix here") == "no prefix here"


class FakeStream:
    def __init__(self, lines):
        self._lines = lines
        self.closed = False

    def lines(self):
        yield from self._lines

    def close(self):
        self.closed = True


def test_storage_coalesces_bursts(notifier, clock):
    watcher = RemovableStorageWatcher(notifier, ThrottleGate(clock), stream=FakeStream([]))
    watcher.handle_line("kernel: USB device attached")
    clock.advance(1)
    watcher.handle_line("diskarbitrationd: disk4s1 mount")
    assert notifier.sent == ["🔌 IO/Disks: USB device attached"]

    clock.advance(2)
    watcher.handle_line("diskarbitrationd: disk4s1 unmount")
    assert notifier.sent[-1] == "🔌 IO/Disks: disk4s1 unmount"


def test_storage_drops_unrelated_lines(notifier, clock):
    watcher = RemovableStorageWatcher(notifier, ThrottleGate(clock), stream=FakeStream([]))
    watcher.handle_line("bluetoothd: connection idle")
    assert notifier.sent == []


def test_storage_run_ends_with_stream(notifier, clock):
    stream = FakeStream(["kernel: USB device attached", "kernel: noise"])
    watcher = RemovableStorageWatcher(notifier, ThrottleGate(clock), stream=stream)
    watcher.run()
    assert notifier.sent == ["🔌 IO/Disks: USB device attached"]
    assert stream.closed


def test_storage_run_survives_missing_log_binary(notifier, clock):
    class BrokenStream(FakeStream):
        def lines(self):
            raise FileNotFoundError("log")

    stream = BrokenStream([])
    watcher = RemovableStorageWatcher(notifier, ThrottleGate(clock), stream=stream)
    watcher.run()
    assert notifier.sent == []
    assert stream.closed


def test_storage_stop_kills_blocked_stream(notifier, clock, monkeypatch):
    stream = StorageEventStream()
    # a child that never prints, like `log stream` on a quiet machine
    monkeypatch.setattr(stream, "command", lambda: ["sleep", "30"])
    watcher = RemovableStorageWatcher(notifier, ThrottleGate(clock), stream=stream)
    thread = threading.Thread(target=watcher.run)
    thread.start()

    deadline = time.monotonic() + 5
    while stream._proc is None and time.monotonic() < deadline:
        time.sleep(0.01)
    assert stream._proc is not None

    watcher.stop()
    thread.join(3)
    assert not thread.is_alive()
    assert stream._proc.poll() is not None
    assert notifier.sent == []


# --- directory ---


class FakeDirectory:
    def __init__(self, mtimes, files):
        self.mtimes = list(mtimes)
        self.files = files
        self.scans = 0

    def mtime(self):
        if len(self.mtimes) > 1:
            return self.mtimes.pop(0)
        return self.mtimes[0]

    def recent_files(self, window, now=None):
        self.scans += 1
        return list(self.files)


def _directory_watcher(notifier, clock, source):
    return DirectoryWatcher(
        notifier, ThrottleGate(clock), 2, Path("/unused"), source=source, clock=clock
    )


def test_directory_unchanged_mtime_skips_scan(notifier, clock):
    source = FakeDirectory([100, 100, 100], ["a.pdf"])
    watcher = _directory_watcher(notifier, clock, source)
    for _ in range(3):
        watcher.tick()
    assert source.scans == 1
    assert notifier.sent == ["⬇️ a.pdf updated"]


def test_directory_change_scans_and_throttles_per_file(notifier, clock):
    source = FakeDirectory([100, 105, 110], ["a.pdf", "b.zip"])
    watcher = _directory_watcher(notifier, clock, source)
    watcher.tick()
    clock.advance(5)
    watcher.tick()
    assert source.scans == 2
    assert notifier.sent == ["⬇️ a.pdf updated", "⬇️ b.zip updated"]

    clock.advance(30)
    watcher.tick()
    assert len(notifier.sent) == 4


def test_directory_unavailable_keeps_state(notifier, clock):
    source = FakeDirectory([None], ["a.pdf"])
    watcher = _directory_watcher(notifier, clock, source)
    watcher.tick()
    assert source.scans == 0
    assert watcher.last_mtime == 0


def test_directory_real_files(notifier, clock, tmp_path):
    import os

    now = clock()
    recent = tmp_path / "report.pdf"
    old = tmp_path / "old.dmg"
    recent.write_text("x")
    old.write_text("x")
    os.utime(recent, (now - 90, now - 90))
    os.utime(old, (now - 150, now - 150))
    os.utime(tmp_path, (now, now))

    watcher = DirectoryWatcher(notifier, ThrottleGate(clock), 2, tmp_path, clock=clock)
    watcher.tick()
    assert notifier.sent == ["⬇️ report.pdf updated"]


# --- polling loop ---


class ExplodingWatcher(PollingWatcher):
    name = "boom"

    def __init__(self, notifier, gate):
        super().__init__(notifier, gate, interval=0.01)
        self.ticks = 0

    def tick(self):
        self.ticks += 1
        if self.ticks >= 3:
            self.stop()
        raise RuntimeError("transient")


def test_polling_loop_survives_tick_errors(notifier, clock):
    watcher = ExplodingWatcher(notifier, ThrottleGate(clock))
    thread = threading.Thread(target=watcher.run)
    thread.start()
    thread.join(5)
    assert not thread.is_alive()
    assert watcher.ticks == 3


def test_polling_loop_stops_promptly(notifier, clock):
    watcher = NetworkWatcher(notifier, ThrottleGate(clock), 60, source=SequenceSource("HomeWifi"))
    thread = threading.Thread(target=watcher.run)
    thread.start()
    watcher.stop()
    thread.join(2)
    assert not thread.is_alive()
