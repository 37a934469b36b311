"""Watcher lifecycle: startup checks, threads, signals, start/stop notifications."""

from __future__ import annotations

import signal
import socket
import threading
import time
from datetime import datetime
from types import FrameType

from .config import Config, require_credentials
from .log import get_logger
from .notify import Notifier, TelegramNotifier
from .throttle import ThrottleGate
from .watchers import Watcher, build_watchers

_log = get_logger("supervisor")

DEFAULT_GRACE_SECONDS = 5.0


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class Supervisor:
    """Runs the enabled watchers until a signal arrives or one of them dies.

    Exactly one "started" notification goes out before any watcher runs and
    exactly one "stopped" notification goes out on the way down, whatever
    the reason for stopping.
    """

    def __init__(
        self,
        config: Config,
        notifier: Notifier | None = None,
        gate: ThrottleGate | None = None,
        watchers: list[Watcher] | None = None,
        grace: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        # missing credentials are fatal, before any watcher exists
        require_credentials(config)
        self.config = config
        self.notifier = notifier or TelegramNotifier(config.telegram)
        self.gate = gate or ThrottleGate()
        self.watchers = (
            watchers
            if watchers is not None
            else build_watchers(config.watchers, self.notifier, self.gate)
        )
        self.grace = grace
        self.hostname = socket.gethostname()

        self._stop_requested = threading.Event()
        self._wake = threading.Event()
        self._failed: str | None = None
        self._stopped_sent = False
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    def request_stop(self) -> None:
        """Ask the supervisor to shut down (safe from signal handlers and other threads)."""
        self._stop_requested.set()
        self._wake.set()

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        _log.info("received %s, shutting down", signal.Signals(signum).name)
        self.request_stop()

    def _install_signal_handlers(self) -> dict[int, object]:
        if threading.current_thread() is not threading.main_thread():
            return {}
        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, self._handle_signal)
        return previous

    def _run_unit(self, watcher: Watcher) -> None:
        try:
            watcher.run()
        except Exception as e:
            _log.error("%s watcher crashed: %s", watcher.name, e, exc_info=True)
        finally:
            with self._lock:
                unexpected = not self._stop_requested.is_set()
                if unexpected and self._failed is None:
                    self._failed = watcher.name
            if unexpected:
                _log.warning("%s watcher exited unexpectedly", watcher.name)
                self._wake.set()

    def start(self) -> None:
        """Send the startup notification, then start one thread per watcher."""
        names = ", ".join(w.name for w in self.watchers) or "none"
        _log.info("starting watchers: %s", names)
        self.notifier.send(f"✅ MacSnitch started on {self.hostname} at {_now()}.")
        for watcher in self.watchers:
            thread = threading.Thread(
                target=self._run_unit,
                args=(watcher,),
                name=f"macsnitch-{watcher.name}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

    def wait(self) -> None:
        """Block until stop is requested or any watcher exits."""
        # short timeout keeps the main thread responsive to signals
        while not self._wake.wait(0.5):
            pass

    def shutdown(self) -> None:
        """Send the stop notification once, stop every watcher, join within the grace period."""
        with self._lock:
            if self._stopped_sent:
                return
            self._stopped_sent = True
            # no unit can record a failure after this point
            self._stop_requested.set()
            failed = self._failed

        reason = f" ({failed} watcher exited)" if failed else ""
        self.notifier.send(f"🛑 MacSnitch stopped on {self.hostname} at {_now()}{reason}.")

        for watcher in self.watchers:
            try:
                watcher.stop()
            except Exception as e:
                _log.error("error stopping %s: %s", watcher.name, e, exc_info=True)

        deadline = time.monotonic() + self.grace
        for thread in self._threads:
            thread.join(max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                _log.warning("%s did not exit within %ss", thread.name, self.grace)

    def run(self) -> int:
        """Run until interrupted. Returns 0 on a requested stop, 1 if a watcher died."""
        previous = self._install_signal_handlers()
        try:
            self.start()
            self.wait()
        finally:
            self.shutdown()
            for signum, handler in previous.items():
                signal.signal(signum, handler)
        with self._lock:
            return 1 if self._failed else 0
