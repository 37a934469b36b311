"""System signal sources.

Each source wraps one fragile bit of OS output scraping and hands back a
typed sample, or None when the query could not be answered this time.
Watchers only ever see the typed values.
"""

from __future__ import annotations

import shutil
import subprocess
import time
from collections.abc import Iterator
from pathlib import Path

from .log import get_logger

_log = get_logger("sources")

AIRPORT = Path(
    "/System/Library/PrivateFrameworks/Apple80211.framework/Versions/Current/Resources/airport"
)

DISCONNECTED = "(disconnected)"
UNKNOWN = "(unknown)"


def run_command(args: list[str], timeout: float = 5) -> str | None:
    """Run a command and return its stripped stdout, or None on failure."""
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except (subprocess.TimeoutExpired, OSError) as e:
        _log.warning("%s failed: %s", args[0], e)
        return None
    if result.returncode != 0:
        _log.debug("%s exited %d: %s", args[0], result.returncode, result.stderr.strip())
        return None
    return result.stdout.strip()


def osascript(script: str) -> str | None:
    return run_command(["osascript", "-e", script])


# --- applications ---


class FocusSource:
    """Name of the frontmost application, via System Events."""

    SCRIPT = 'tell application "System Events" to get name of first process whose frontmost is true'

    def sample(self) -> str | None:
        return osascript(self.SCRIPT) or None


def parse_app_list(output: str) -> set[str]:
    """Parse an AppleScript list ("Finder, Safari, Mail") into a set of names."""
    return {name.strip() for name in output.split(",") if name.strip()}


class VisibleAppsSource:
    """Names of all non-background applications."""

    SCRIPT = (
        'tell application "System Events" to get name of '
        "(every process where background only is false)"
    )

    def sample(self) -> set[str] | None:
        output = osascript(self.SCRIPT)
        if output is None:
            return None
        return parse_app_list(output)


# --- network ---


def parse_airport_ssid(output: str) -> str | None:
    """Pull the SSID out of `airport -I` output (None if not associated)."""
    for line in output.splitlines():
        key, sep, value = line.strip().partition(": ")
        if sep and key == "SSID":
            return value.strip() or None
    return None


_NETWORKSETUP_PREFIX = "Current Wi-Fi Network: "


def parse_networksetup_ssid(output: str) -> str:
    """Map `networksetup -getairportnetwork` output to an SSID or a sentinel.

    Associated:     "Current Wi-Fi Network: HomeWifi"     -> "HomeWifi"
    Not associated: "You are not associated with an AirPort network." -> DISCONNECTED
    Anything else (e.g. "** Error: Error obtaining wireless information.",
    printed with exit code 0) -> UNKNOWN
    """
    for line in output.splitlines():
        line = line.strip()
        if line.startswith(_NETWORKSETUP_PREFIX):
            return line[len(_NETWORKSETUP_PREFIX) :].strip() or DISCONNECTED
        if "not associated" in line:
            return DISCONNECTED
    if output.strip():
        _log.debug("unrecognized networksetup output: %s", output.strip())
    return UNKNOWN


class NetworkAssociationSource:
    """Current Wi-Fi network name.

    Prefers the private `airport` tool and falls back to `networksetup` when it
    is missing (it was removed in recent macOS releases). Always returns a
    string: the SSID, DISCONNECTED, or UNKNOWN when nothing could be queried.
    """

    def __init__(self, interface: str = "en0", airport: Path = AIRPORT) -> None:
        self.interface = interface
        self.airport = airport

    def has_airport(self) -> bool:
        return self.airport.is_file()

    def sample(self) -> str:
        if self.has_airport():
            output = run_command([str(self.airport), "-I"])
            if output is None:
                return UNKNOWN
            return parse_airport_ssid(output) or DISCONNECTED

        output = run_command(["networksetup", "-getairportnetwork", self.interface])
        if output is None:
            return UNKNOWN
        return parse_networksetup_ssid(output)


# --- removable storage ---


class StorageEventStream:
    """Live `log stream` for the USB and disk arbitration subsystems.

    `lines()` blocks for as long as the child process runs; `close()` kills it
    from another thread, which ends the iteration.
    """

    PREDICATE = 'subsystem == "com.apple.iokit.IOUSB" || subsystem == "com.apple.diskarbitration"'

    def __init__(self) -> None:
        self._proc: subprocess.Popen[str] | None = None
        self._closed = False

    def command(self) -> list[str]:
        return ["log", "stream", "--style", "syslog", "--level", "info", "--predicate", self.PREDICATE]

    def lines(self) -> Iterator[str]:
        if self._closed:
            return
        self._proc = subprocess.Popen(
            self.command(),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            bufsize=1,
        )
        if self._closed:
            # close() raced with startup
            self._proc.terminate()
        stdout = self._proc.stdout
        if stdout is None:
            raise OSError("log stream started without a stdout pipe")
        for line in stdout:
            # the banner echoes the predicate, which would match the USB filter
            if line.startswith("Filtering the log data"):
                continue
            yield line.rstrip("\n")
        returncode = self._proc.wait()
        _log.info("log stream exited with code %s", returncode)

    def close(self, grace: float = 2.0) -> None:
        self._closed = True
        proc = self._proc
        if proc is None or proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()


# --- directories ---


class DirectoryStatSource:
    """Modification times for one directory and the files directly inside it."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def mtime(self) -> int | None:
        try:
            return int(self.path.stat().st_mtime)
        except OSError as e:
            _log.debug("cannot stat %s: %s", self.path, e)
            return None

    def recent_files(self, window: float, now: float | None = None) -> list[str]:
        """Names of regular files (non-recursive) modified less than `window` seconds ago."""
        if now is None:
            now = time.time()
        names = []
        try:
            entries = list(self.path.iterdir())
        except OSError as e:
            _log.debug("cannot list %s: %s", self.path, e)
            return []
        for entry in entries:
            try:
                if entry.is_symlink() or not entry.is_file():
                    continue
                if now - entry.stat().st_mtime < window:
                    names.append(entry.name)
            except OSError:
                # removed between listing and stat
                continue
        return sorted(names)


def command_available(name: str) -> bool:
    """True if `name` is on PATH (used by `macsnitch doctor`)."""
    return shutil.which(name) is not None
