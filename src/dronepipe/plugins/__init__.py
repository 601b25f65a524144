# plugins/__init__.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from ..secrets import SecretProvider, resolve_value
from .notify import Message, Notifier, RecordingNotifier, TelegramNotifier
from .telegram import TelegramPlugin

# Images whose job is to report the build outcome.
NOTIFIER_IMAGES = (
    "appleboy/drone-telegram",
    "appleboy/drone-discord",
    "plugins/slack",
    "plugins/webhook",
    "drillster/drone-email",
)

NATIVE_PLUGINS = {
    "appleboy/drone-telegram": TelegramPlugin,
}


def image_repository(image: str) -> str:
    """
    Strip tag and digest from an image reference.

    'appleboy/drone-telegram:1.3' -> 'appleboy/drone-telegram'
    'registry:5000/team/app@sha256:..' -> 'registry:5000/team/app'
    """
    name = image.split("@", 1)[0]
    slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > slash:
        name = name[:colon]
    return name


def is_notifier(image: str, extra: tuple = ()) -> bool:
    return image_repository(image) in set(NOTIFIER_IMAGES) | set(extra)


def native_plugin_for(image: str) -> Optional[TelegramPlugin]:
    cls = NATIVE_PLUGINS.get(image_repository(image))
    return cls() if cls else None


def _plugin_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        if all(not isinstance(v, (dict, list)) for v in value):
            return ",".join(_plugin_value(v) for v in value)
        return json.dumps(value)
    if isinstance(value, dict):
        return json.dumps(value)
    return "" if value is None else str(value)


def plugin_environment(
    settings: Mapping[str, Any],
    provider: SecretProvider,
    used: Optional[List[str]] = None,
) -> Dict[str, str]:
    """Render plugin settings as the PLUGIN_* variables plugin images read."""
    resolved = resolve_value(dict(settings), provider, used)
    return {f"PLUGIN_{k.upper()}": _plugin_value(v) for k, v in resolved.items()}


__all__ = [
    "Message",
    "Notifier",
    "RecordingNotifier",
    "TelegramNotifier",
    "TelegramPlugin",
    "NOTIFIER_IMAGES",
    "image_repository",
    "is_notifier",
    "native_plugin_for",
    "plugin_environment",
]
