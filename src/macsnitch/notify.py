"""Telegram delivery for macsnitch notifications.

Delivery is best effort: a failed send is logged and dropped. Watchers must
never stall or crash because the Bot API is unreachable.
"""

from __future__ import annotations

from typing import Protocol

import requests

from .config import TelegramConfig
from .log import get_logger

_log = get_logger("notify")


class Notifier(Protocol):
    """Anything that can deliver a text message."""

    def send(self, text: str) -> bool:
        """Send text; return True if it was (as far as we know) delivered."""
        ...


class TelegramNotifier:
    """Sends messages to one chat through the Bot API `sendMessage` method."""

    def __init__(self, config: TelegramConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.config.api_base}/bot{self.config.bot_token}/sendMessage"

    def send(self, text: str) -> bool:
        # Form encoding escapes spaces/specials in filenames and app names
        payload = {
            "chat_id": self.config.chat_id,
            "text": text,
            "disable_web_page_preview": "true",
        }
        try:
            response = self._session.post(self.url, data=payload, timeout=self.config.timeout)
        except requests.RequestException as e:
            # the exception text can include the URL, which carries the token
            _log.warning("telegram send failed: %s", type(e).__name__)
            return False

        if not response.ok:
            _log.warning("telegram send failed: HTTP %s %s", response.status_code, response.text[:200])
            return False

        _log.debug("sent: %s", text)
        return True

    def close(self) -> None:
        self._session.close()
