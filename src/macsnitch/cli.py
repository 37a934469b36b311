"""CLI entry point for macsnitch.

macsnitch pushes macOS activity events to a Telegram chat:
- run: start all enabled watchers in the foreground
- agent: install macsnitch as a LaunchAgent so it runs at login
"""

import argparse
import sys
from pathlib import Path

from .config import (
    Config,
    ConfigError,
    apply_overrides,
    ensure_config_exists,
    get_config_path,
    load_config,
    require_credentials,
)

WATCHER_FLAGS = ("focus", "apps", "wifi", "usb", "downloads")


def _load(args: argparse.Namespace) -> Config:
    config = load_config(getattr(args, "config", None))
    return apply_overrides(config, **_watcher_overrides(args))


def _watcher_overrides(args: argparse.Namespace) -> dict:
    """Translate `run` flags into WatcherConfig overrides (None = keep configured value)."""
    overrides: dict = {}
    for name in WATCHER_FLAGS:
        if getattr(args, f"no_{name}", False):
            overrides[name] = False
    overrides["interval"] = getattr(args, "interval", None)
    overrides["downloads_dir"] = getattr(args, "downloads_dir", None)
    overrides["recent_window"] = getattr(args, "recent_window", None)
    return overrides


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def cmd_run(args: argparse.Namespace) -> None:
    """Run the watchers until interrupted."""
    from .log import enable_console_logging
    from .supervisor import Supervisor

    enable_console_logging(verbose=args.verbose)
    try:
        supervisor = Supervisor(_load(args))
    except ConfigError as e:
        _fail(str(e))
    sys.exit(supervisor.run())


def cmd_test(args: argparse.Namespace) -> None:
    """Send a single test message."""
    from .notify import TelegramNotifier

    try:
        config = _load(args)
        require_credentials(config)
    except ConfigError as e:
        _fail(str(e))

    if TelegramNotifier(config.telegram).send(args.message):
        print("Sent.")
    else:
        _fail("message was not delivered (see /tmp/macsnitch.log)")


def cmd_doctor(args: argparse.Namespace) -> None:
    """Show which signal sources and credentials are available."""
    from rich.console import Console
    from rich.table import Table

    from .sources import NetworkAssociationSource, command_available

    try:
        config = _load(args)
    except ConfigError as e:
        _fail(str(e))
    watchers = config.watchers
    network = NetworkAssociationSource(interface=watchers.wifi_interface)

    def ok(flag: bool) -> str:
        return "[green]ok[/green]" if flag else "[red]missing[/red]"

    table = Table(title="macsnitch doctor")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    table.add_row("bot token", ok(bool(config.telegram.bot_token)), str(get_config_path()))
    table.add_row("chat id", ok(bool(config.telegram.chat_id)), str(get_config_path()))
    table.add_row("osascript", ok(command_available("osascript")), "focus, apps")
    if network.has_airport():
        table.add_row("airport", ok(True), str(network.airport))
    else:
        table.add_row(
            "networksetup",
            ok(command_available("networksetup")),
            f"wifi (airport not found), interface {network.interface}",
        )
    table.add_row("log", ok(command_available("log")), "usb")
    table.add_row("downloads dir", ok(watchers.downloads_dir.is_dir()), str(watchers.downloads_dir))
    table.add_row(
        "enabled",
        "",
        f"{', '.join(watchers.enabled()) or 'none'} every {watchers.interval}s",
    )

    Console().print(table)


def cmd_config_init(args: argparse.Namespace) -> None:
    """Initialize config file with defaults."""
    config_path = ensure_config_exists()
    print(f"Config file at: {config_path}")


def cmd_config_path(args: argparse.Namespace) -> None:
    """Print config file path."""
    print(get_config_path())


def cmd_config_show(args: argparse.Namespace) -> None:
    """Show current config."""
    config_path = get_config_path()
    if config_path.exists():
        print(config_path.read_text())
    else:
        print(f"No config file at {config_path}")
        print("Run 'macsnitch config init' to create one.")


def cmd_agent_install(args: argparse.Namespace) -> None:
    """Install and start the LaunchAgent."""
    from .launchd import install_agent

    install_agent(run_args=_run_args_for_agent(args), start=not args.no_start)


def _run_args_for_agent(args: argparse.Namespace) -> list[str]:
    """Rebuild the `macsnitch run` flags given to `agent install`."""
    run_args = [f"--no-{name}" for name in WATCHER_FLAGS if getattr(args, f"no_{name}", False)]
    if args.interval is not None:
        run_args += ["--interval", str(args.interval)]
    if args.downloads_dir is not None:
        run_args += ["--downloads-dir", str(Path(args.downloads_dir).expanduser())]
    if args.recent_window is not None:
        run_args += ["--recent-window", str(args.recent_window)]
    if args.config is not None:
        run_args += ["--config", str(args.config.expanduser().resolve())]
    return run_args


def cmd_agent_uninstall(args: argparse.Namespace) -> None:
    """Stop and uninstall the LaunchAgent."""
    from .launchd import uninstall_agent

    uninstall_agent()


def cmd_agent_status(args: argparse.Namespace) -> None:
    """Check status of the LaunchAgent."""
    from .launchd import agent_status

    state = agent_status()
    if not state.installed or state.pid is None:
        sys.exit(1)


def cmd_agent_logs(args: argparse.Namespace) -> None:
    """Show recent agent logs."""
    from .launchd import agent_logs

    agent_logs(lines=args.lines, follow=args.follow, debug=args.debug)


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0 (got {value})")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0 (got {value})")
    return number


def add_watcher_arguments(parser: argparse.ArgumentParser) -> None:
    """Flags shared by `run`, `doctor` and `agent install`."""
    parser.add_argument("--no-focus", action="store_true", help="Disable frontmost app notifications")
    parser.add_argument("--no-apps", action="store_true", help="Disable app launch/quit notifications")
    parser.add_argument("--no-wifi", action="store_true", help="Disable Wi-Fi SSID notifications")
    parser.add_argument("--no-usb", action="store_true", help="Disable USB/volume notifications")
    parser.add_argument(
        "--no-downloads", action="store_true", help="Disable downloads folder notifications"
    )
    parser.add_argument(
        "--interval",
        type=_positive_float,
        help="Polling interval in seconds (default: 2)",
    )
    parser.add_argument(
        "--downloads-dir",
        type=Path,
        help="Directory to watch for new files (default: ~/Downloads)",
    )
    parser.add_argument(
        "--recent-window",
        type=_positive_int,
        help="Report files modified within this many seconds (default: 120)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=f"Config file (default: {get_config_path()})",
    )


def setup_config_parser(subparsers: argparse._SubParsersAction) -> None:
    """Set up the config subcommand."""
    config_parser = subparsers.add_parser(
        "config",
        help="Manage macsnitch configuration",
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    init_parser = config_subparsers.add_parser("init", help="Create default config file")
    init_parser.set_defaults(func=cmd_config_init)

    path_parser = config_subparsers.add_parser("path", help="Print config file path")
    path_parser.set_defaults(func=cmd_config_path)

    show_parser = config_subparsers.add_parser("show", help="Show current config")
    show_parser.set_defaults(func=cmd_config_show)

    config_parser.set_defaults(func=cmd_config_show, config_command=None)


def setup_agent_parser(subparsers: argparse._SubParsersAction) -> None:
    """Set up the agent subcommand."""
    agent_parser = subparsers.add_parser(
        "agent",
        help="Run macsnitch at login (LaunchAgent)",
    )
    agent_subparsers = agent_parser.add_subparsers(dest="agent_command")

    install_parser = agent_subparsers.add_parser(
        "install",
        help="Install the LaunchAgent (accepts the same watcher flags as 'run')",
    )
    add_watcher_arguments(install_parser)
    install_parser.add_argument(
        "--no-start",
        action="store_true",
        help="Install but don't start the agent",
    )
    install_parser.set_defaults(func=cmd_agent_install)

    uninstall_parser = agent_subparsers.add_parser(
        "uninstall",
        help="Stop and uninstall the LaunchAgent",
    )
    uninstall_parser.set_defaults(func=cmd_agent_uninstall)

    status_parser = agent_subparsers.add_parser("status", help="Check agent status")
    status_parser.set_defaults(func=cmd_agent_status)

    logs_parser = agent_subparsers.add_parser("logs", help="Show agent logs")
    logs_parser.add_argument(
        "-n",
        "--lines",
        type=int,
        default=20,
        help="Number of lines to show (default: 20)",
    )
    logs_parser.add_argument(
        "-f",
        "--follow",
        action="store_true",
        help="Follow log output (like tail -f)",
    )
    logs_parser.add_argument(
        "--debug",
        action="store_true",
        help="Also show the debug log (/tmp/macsnitch.log)",
    )
    logs_parser.set_defaults(func=cmd_agent_logs)

    agent_parser.set_defaults(func=lambda a: agent_parser.print_help())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="macsnitch",
        description="Push macOS activity events to a Telegram chat",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Watch for activity (foreground)")
    add_watcher_arguments(run_parser)
    run_parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    run_parser.set_defaults(func=cmd_run)

    test_parser = subparsers.add_parser("test", help="Send a test message")
    test_parser.add_argument("message", nargs="?", default="🧪 macsnitch test message")
    test_parser.add_argument("--config", type=Path, help="Config file")
    test_parser.set_defaults(func=cmd_test)

    doctor_parser = subparsers.add_parser("doctor", help="Check credentials and signal sources")
    add_watcher_arguments(doctor_parser)
    doctor_parser.set_defaults(func=cmd_doctor)

    setup_config_parser(subparsers)
    setup_agent_parser(subparsers)
    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
    elif hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
