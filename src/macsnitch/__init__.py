"""macsnitch: push macOS activity events to a Telegram chat.

Watched signals:
- frontmost application changes
- visible application launch/quit
- Wi-Fi network (SSID) changes
- USB / volume attach and detach
- new or updated files in a watched directory (default ~/Downloads)
"""

__version__ = "0.1.0"
