"""Configuration management for macsnitch."""

import dataclasses
import os
import sys
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class ConfigError(Exception):
    """Configuration that makes it impossible to start (missing credentials, bad values)."""


def get_config_path() -> Path:
    """Get the path to the macsnitch config file."""
    xdg_config = Path.home() / ".config"
    return xdg_config / "macsnitch" / "config.toml"


def get_default_config() -> str:
    """Return the default config file contents."""
    return """\
# macsnitch configuration
#
# Keep this file out of git: it holds your bot token.
# TELEGRAM_BOT_TOKEN and CHAT_ID environment variables override these values.

[telegram]
bot_token = ""
chat_id = ""

[watchers]
# Polling interval in seconds
interval = 2
downloads_dir = "~/Downloads"
# Files modified within this many seconds are reported after a directory change
recent_window = 120
wifi_interface = "en0"

# Set any of these to false to disable that watcher
focus = true
apps = true
wifi = true
usb = true
downloads = true
"""


@dataclass(frozen=True)
class TelegramConfig:
    """Where notifications are delivered."""

    bot_token: str = ""
    chat_id: str = ""
    api_base: str = "https://api.telegram.org"
    timeout: float = 10.0


@dataclass(frozen=True)
class WatcherConfig:
    """Which watchers run and how often they poll."""

    focus: bool = True
    apps: bool = True
    wifi: bool = True
    usb: bool = True
    downloads: bool = True
    interval: float = 2.0
    downloads_dir: Path = field(default_factory=lambda: Path.home() / "Downloads")
    recent_window: int = 120
    wifi_interface: str = "en0"

    def enabled(self) -> list[str]:
        """Names of the enabled watchers, in startup order."""
        return [
            name for name in ("focus", "apps", "wifi", "usb", "downloads") if getattr(self, name)
        ]


@dataclass(frozen=True)
class Config:
    """macsnitch configuration."""

    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    watchers: WatcherConfig = field(default_factory=WatcherConfig)


def load_config(
    config_path: Path | None = None, environ: Mapping[str, str] | None = None
) -> Config:
    """Load configuration from file and environment, or return defaults."""
    if config_path is None:
        config_path = get_config_path()
    if environ is None:
        environ = os.environ

    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            # Warn but carry on; missing credentials are caught at startup
            print(f"Warning: Could not load config from {config_path}: {e}", file=sys.stderr)

    return _parse_config(data, environ)


_BOOL_FIELDS = ("focus", "apps", "wifi", "usb", "downloads")


def _get_bool(section: str, data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"[{section}] {key} must be true or false (got {value!r})")
    return value


def _get_number(section: str, data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    # bool is an int subclass; `interval = true` is a mistake, not 1 second
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"[{section}] {key} must be a number (got {value!r})")
    return value


def _get_str(section: str, data: dict[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"[{section}] {key} must be a string (got {value!r})")
    return value


def _parse_config(data: dict[str, Any], environ: Mapping[str, str] | None = None) -> Config:
    """Parse config dict (plus environment overrides) into a Config object."""
    environ = environ or {}

    telegram_data = data.get("telegram", {})
    defaults = TelegramConfig()
    chat_id = telegram_data.get("chat_id", "")
    # chat ids are often written as bare integers in TOML
    if isinstance(chat_id, int) and not isinstance(chat_id, bool):
        telegram_data = {**telegram_data, "chat_id": str(chat_id)}
    telegram = TelegramConfig(
        bot_token=environ.get("TELEGRAM_BOT_TOKEN")
        or _get_str("telegram", telegram_data, "bot_token", ""),
        chat_id=environ.get("CHAT_ID") or _get_str("telegram", telegram_data, "chat_id", ""),
        api_base=_get_str("telegram", telegram_data, "api_base", defaults.api_base).rstrip("/"),
        timeout=float(_get_number("telegram", telegram_data, "timeout", defaults.timeout)),
    )
    if telegram.timeout <= 0:
        raise ConfigError(f"[telegram] timeout must be > 0 (got {telegram.timeout})")

    watchers_data = data.get("watchers", {})
    known = {f.name for f in dataclasses.fields(WatcherConfig)}
    unknown = set(watchers_data) - known
    if unknown:
        raise ConfigError(f"unknown [watchers] settings: {', '.join(sorted(unknown))}")

    w = WatcherConfig()
    recent_window = _get_number("watchers", watchers_data, "recent_window", w.recent_window)
    if not isinstance(recent_window, int):
        raise ConfigError(f"[watchers] recent_window must be whole seconds (got {recent_window!r})")
    downloads_dir = watchers_data.get("downloads_dir")
    watchers = WatcherConfig(
        **{name: _get_bool("watchers", watchers_data, name, True) for name in _BOOL_FIELDS},
        interval=_get_number("watchers", watchers_data, "interval", w.interval),
        downloads_dir=(
            Path(_get_str("watchers", watchers_data, "downloads_dir", "")).expanduser()
            if downloads_dir is not None
            else w.downloads_dir
        ),
        recent_window=recent_window,
        wifi_interface=_get_str("watchers", watchers_data, "wifi_interface", w.wifi_interface),
    )
    _validate_watchers(watchers)

    return Config(telegram=telegram, watchers=watchers)


def _validate_watchers(watchers: WatcherConfig) -> None:
    if watchers.interval <= 0:
        raise ConfigError(f"interval must be > 0 (got {watchers.interval})")
    if watchers.recent_window <= 0:
        raise ConfigError(f"recent_window must be > 0 (got {watchers.recent_window})")


def apply_overrides(config: Config, **overrides: Any) -> Config:
    """Return a copy of config with watcher settings replaced.

    None values are ignored so argparse defaults can be passed straight through.
    """
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return config
    if "downloads_dir" in changes:
        changes["downloads_dir"] = Path(changes["downloads_dir"]).expanduser()
    watchers = dataclasses.replace(config.watchers, **changes)
    _validate_watchers(watchers)
    return dataclasses.replace(config, watchers=watchers)


def require_credentials(config: Config) -> None:
    """Raise ConfigError unless both the bot token and chat id are set."""
    if not config.telegram.bot_token:
        raise ConfigError(
            "TELEGRAM_BOT_TOKEN is not set (environment or [telegram] bot_token in "
            f"{get_config_path()})"
        )
    if not config.telegram.chat_id:
        raise ConfigError(
            f"CHAT_ID is not set (environment or [telegram] chat_id in {get_config_path()})"
        )


def ensure_config_exists() -> Path:
    """Ensure the config file exists, creating with defaults if needed."""
    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(get_default_config())
        config_path.chmod(0o600)

    return config_path
