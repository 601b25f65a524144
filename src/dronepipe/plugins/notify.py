# plugins/notify.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import List, Optional, Protocol
from urllib.parse import urljoin

from .. import settings
from ..errors import NotifyError


@dataclass(frozen=True)
class Message:
    channel: str   # e.g. "telegram"
    to: str
    text: str
    format: str = "markdown"


class Notifier(Protocol):
    def send(self, token: str, message: Message) -> None:
        ...


class RecordingNotifier:
    """Keeps messages in memory instead of delivering them (dry runs, tests)."""

    def __init__(self):
        self.sent: List[Message] = []

    def send(self, token: str, message: Message) -> None:
        self.sent.append(message)


class TelegramNotifier:
    """Delivers messages through the Telegram Bot API `sendMessage` call."""

    PARSE_MODES = {"markdown": "Markdown", "html": "HTML", "markdownv2": "MarkdownV2"}

    def __init__(self, base_url: str = settings.TELEGRAM_API, timeout: float = 10.0):
        # Ensure base_url doesn't end with /
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, token: str, method: str, data: dict) -> dict:
        url = urljoin(self.base_url + "/", f"bot{token}/{method}")
        req = urllib.request.Request(
            url,
            data=json.dumps(data).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
                return json.loads(body) if body else {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise NotifyError(f"Telegram API request failed: {e.code} {e.reason}. {error_body}")
        except urllib.error.URLError as e:
            raise NotifyError(f"Network error: {e.reason}")
        except json.JSONDecodeError as e:
            raise NotifyError(f"Invalid JSON response: {e}")

    def send(self, token: str, message: Message) -> None:
        data = {"chat_id": message.to, "text": message.text}
        parse_mode: Optional[str] = self.PARSE_MODES.get(message.format.lower())
        if parse_mode:
            data["parse_mode"] = parse_mode
        result = self._request(token, "sendMessage", data)
        if result and not result.get("ok", False):
            raise NotifyError(f"Telegram rejected message: {result.get('description', 'unknown error')}")
