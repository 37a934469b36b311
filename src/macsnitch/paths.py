"""Path utilities for macsnitch."""

from pathlib import Path


def get_state_dir() -> Path:
    """Get the macsnitch state directory (~/.local/state/macsnitch/)."""
    state_dir = Path.home() / ".local" / "state" / "macsnitch"
    state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir


def get_log_dir() -> Path:
    """Get the directory for macsnitch logs.

    Uses XDG state directory: ~/.local/state/macsnitch/logs/
    """
    log_dir = get_state_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_path(name: str) -> Path:
    """Get the path to a specific log file.

    Args:
        name: Log file name (e.g., "agent")

    Returns:
        Path to ~/.local/state/macsnitch/logs/{name}.log
    """
    return get_log_dir() / f"{name}.log"
