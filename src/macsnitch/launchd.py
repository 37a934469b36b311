"""LaunchAgent management: run `macsnitch run` at login."""

import contextlib
import os
import plistlib
import re
import subprocess
import sys
from collections import deque
from dataclasses import dataclass
from pathlib import Path

from .log import LOG_PATH

LABEL = "com.macsnitch.agent"
PLIST_NAME = f"{LABEL}.plist"
# seconds launchd waits before restarting an agent that exited
THROTTLE_INTERVAL = 30


def _get_launch_agents_dir() -> Path:
    """Get the user's LaunchAgents directory."""
    return Path.home() / "Library" / "LaunchAgents"


def _get_plist_path() -> Path:
    """Get the path to our LaunchAgent plist."""
    return _get_launch_agents_dir() / PLIST_NAME


def _get_log_dir() -> Path:
    """Get the directory for agent logs."""
    from .paths import get_log_dir

    return get_log_dir()


def _generate_plist(run_args: list[str] | None = None) -> dict:
    """Generate the LaunchAgent plist configuration.

    Args:
        run_args: Extra `macsnitch run` arguments (e.g. ["--no-focus"])
    """
    from .paths import get_log_path

    # Run with the same interpreter that has macsnitch installed
    program = [sys.executable, "-m", "macsnitch", "run", *(run_args or [])]

    return {
        "Label": LABEL,
        "ProgramArguments": program,
        "RunAtLoad": True,
        # the supervisor exits when a watcher dies; launchd brings it back
        "KeepAlive": True,
        "ThrottleInterval": THROTTLE_INTERVAL,
        "StandardOutPath": str(get_log_path("agent")),
        "StandardErrorPath": str(_get_log_dir() / "agent.err"),
        "EnvironmentVariables": {
            # osascript, networksetup and log live on the default PATH
            "PATH": os.environ.get("PATH", "/usr/local/bin:/usr/bin:/bin:/usr/sbin:/sbin"),
        },
    }


def install_agent(run_args: list[str] | None = None, start: bool = True) -> None:
    """Install macsnitch as a LaunchAgent.

    Credentials are read from the config file at startup; environment
    variables from this shell are not carried over.

    Args:
        run_args: Extra `macsnitch run` arguments
        start: Whether to start the agent after installing
    """
    plist_path = _get_plist_path()
    launch_agents_dir = _get_launch_agents_dir()

    launch_agents_dir.mkdir(parents=True, exist_ok=True)

    # Stop existing agent if running
    if plist_path.exists():
        print("Stopping existing agent...")
        subprocess.run(["launchctl", "unload", str(plist_path)], capture_output=True)

    plist_data = _generate_plist(run_args)
    with open(plist_path, "wb") as f:
        plistlib.dump(plist_data, f)
    print(f"Installed LaunchAgent: {plist_path}")

    log_dir = _get_log_dir()
    print(f"Logs will be written to: {log_dir}")

    if start:
        result = subprocess.run(["launchctl", "load", str(plist_path)], capture_output=True)
        if result.returncode == 0:
            print("Agent started successfully")
            _print_permission_instructions()
        else:
            print(f"Failed to start agent: {result.stderr.decode()}", file=sys.stderr)
            sys.exit(1)
    else:
        print("Agent installed but not started. Run 'launchctl load' to start:")
        print(f"  launchctl load {plist_path}")


def _print_permission_instructions() -> None:
    """Print instructions for the privacy permissions the watchers rely on."""
    python_path = sys.executable

    print()
    print("=" * 60)
    print("PERMISSIONS")
    print("=" * 60)
    print()
    print("Focus and app watchers query System Events, which needs Accessibility")
    print("(and Automation) permission. Watching ~/Downloads may need Full Disk Access.")
    print()
    print("1. Open System Settings > Privacy & Security > Accessibility")
    print("2. Click the '+' button")
    print(f"3. Navigate to and add: {python_path}")
    print("4. Repeat under Full Disk Access if Downloads events never show up")
    print()
    print("To verify it is working:")
    print("  macsnitch agent logs -f")
    print("=" * 60)


_LAUNCHCTL_FIELD_RE = re.compile(r'^\s*"(?P<key>\w+)"\s*=\s*(?P<value>.*?);\s*$')


@dataclass
class AgentState:
    """What launchd knows about the agent."""

    installed: bool
    loaded: bool = False
    pid: int | None = None
    last_exit: int | None = None

    @property
    def crash_looping(self) -> bool:
        """Loaded, not running, and the last run failed.

        `macsnitch run` exits 1 when a watcher dies or credentials are missing;
        KeepAlive then restarts it every ThrottleInterval seconds.
        """
        return self.loaded and self.pid is None and bool(self.last_exit)


def parse_launchctl_list(output: str) -> dict[str, str]:
    """Parse the top-level `"Key" = value;` lines of `launchctl list <label>`."""
    fields = {}
    for line in output.splitlines():
        match = _LAUNCHCTL_FIELD_RE.match(line)
        if match:
            fields[match["key"]] = match["value"].strip('"')
    return fields


def _exit_code(raw: str | None) -> int | None:
    """Turn launchd's LastExitStatus (a wait status) into an exit code."""
    if raw is None:
        return None
    try:
        return os.waitstatus_to_exitcode(int(raw))
    except ValueError:
        return None


def query_agent() -> AgentState:
    """Ask launchd about the agent."""
    if not _get_plist_path().exists():
        return AgentState(installed=False)

    result = subprocess.run(["launchctl", "list", LABEL], capture_output=True, text=True)
    if result.returncode != 0:
        return AgentState(installed=True)

    fields = parse_launchctl_list(result.stdout)
    pid = fields.get("PID")
    return AgentState(
        installed=True,
        loaded=True,
        pid=int(pid) if pid and pid.isdigit() else None,
        last_exit=_exit_code(fields.get("LastExitStatus")),
    )


def _tail(path: Path, lines: int) -> list[str]:
    try:
        with open(path, errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=lines)]
    except OSError:
        return []


def uninstall_agent() -> None:
    """Stop and uninstall the agent.

    Unloading sends SIGTERM, so a running agent posts its stop message first.
    """
    state = query_agent()
    if not state.installed:
        print("Agent is not installed")
        return

    plist_path = _get_plist_path()
    if state.loaded:
        result = subprocess.run(["launchctl", "unload", str(plist_path)], capture_output=True)
        if result.returncode != 0:
            print(f"Warning: Failed to stop agent: {result.stderr.decode()}", file=sys.stderr)
        elif state.pid is not None:
            print(f"Stopped agent (pid {state.pid})")

    plist_path.unlink()
    print(f"Removed LaunchAgent: {plist_path}")


def agent_status() -> AgentState:
    """Print the agent's state and, for a crash loop, its last errors."""
    state = query_agent()
    plist_path = _get_plist_path()

    if not state.installed:
        print("Agent is not installed")
        print("Run 'macsnitch agent install' to install")
        return state

    if not state.loaded:
        print(f"Agent is installed but not loaded: {plist_path}")
        print(f"Start with: launchctl load {plist_path}")
    elif state.pid is not None:
        print(f"Agent is running (pid {state.pid})")
        if state.last_exit:
            print(f"Previous run exited with code {state.last_exit}")
    elif state.crash_looping:
        print(f"Agent is crash-looping: last run exited with code {state.last_exit}")
        print("A watcher stopped or the Telegram credentials are missing;")
        print(f"launchd restarts it every {THROTTLE_INTERVAL} seconds. Last errors:")
        for line in _tail(_get_log_dir() / "agent.err", 5):
            print(f"  {line}")
    else:
        print("Agent is loaded but not running")

    print(f"\nLogs: {_get_log_dir()}")
    return state


def agent_logs(lines: int = 20, follow: bool = False, debug: bool = False) -> None:
    """Show recent output of `macsnitch run` under launchd.

    Args:
        lines: Number of lines to show
        follow: Whether to follow the log (like tail -f)
        debug: Also show the debug log shared by every macsnitch process
    """
    log_dir = _get_log_dir()
    # stdout stays mostly empty; the run log goes to stderr
    files = [log_dir / "agent.err", log_dir / "agent.log"]
    if debug:
        files.append(LOG_PATH)
    files = [path for path in files if path.exists() and path.stat().st_size > 0]

    if not files:
        print("No logs found. Is the agent running?")
        print(f"Expected logs at: {log_dir}")
        return

    if follow:
        # -F survives log rotation
        with contextlib.suppress(KeyboardInterrupt):
            subprocess.run(["tail", "-F", *map(str, files)])
        return

    for i, path in enumerate(files):
        if i:
            print()
        print(f"=== {path} ===")
        for line in _tail(path, lines):
            print(line)
