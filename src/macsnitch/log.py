"""Shared logging for macsnitch.

All components log to /tmp/macsnitch.log via Python's logging module.
Filter with grep: grep 'macsnitch.watchers.focus' /tmp/macsnitch.log
"""

import logging
import sys
from pathlib import Path

LOG_PATH = Path("/tmp/macsnitch.log")
_FORMAT = "%(asctime)s %(name)s %(message)s"

_handler = logging.FileHandler(LOG_PATH)
_handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))

_root = logging.getLogger("macsnitch")
_root.addHandler(_handler)
_root.setLevel(logging.DEBUG)
# don't propagate to root logger (avoids duplicate output if someone
# configures the root logger elsewhere)
_root.propagate = False

_console: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    return _root.getChild(name)


def enable_console_logging(verbose: bool = False) -> None:
    """Mirror log output to stderr (used by `macsnitch run`).

    Under launchd, stderr is what ends up in the agent's log files.
    """
    global _console

    if _console is None:
        _console = logging.StreamHandler(sys.stderr)
        _console.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        _root.addHandler(_console)
    _console.setLevel(logging.DEBUG if verbose else logging.INFO)
