# plugins/telegram.py
from __future__ import annotations

from typing import Any, Dict, List

from ..backends.base import StepOutcome
from ..context import BuildContext
from ..errors import NotifyError
from ..model import Step
from ..templating import render
from .notify import Message, Notifier

DEFAULT_TEMPLATE = (
    "{{repo.full_name}} build #{{build.number}} {{build.status}}\n"
    "{{commit.author}} on {{commit.branch}}: {{truncate commit.sha 8}}\n"
    "{{build.link}}"
)


def _recipients(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        items = value
    else:
        items = str(value).split(",")
    return [str(i).strip() for i in items if str(i).strip()]


class TelegramPlugin:
    """
    In-process rendition of the `appleboy/drone-telegram` plugin.

    Settings:
      token    bot token (normally from_secret)
      to       chat id, list of chat ids, or comma separated ids
      message  Handlebars template rendered against the build context
      format   markdown | html
    """

    channel = "telegram"

    def run(self, step: Step, ctx: BuildContext, settings: Dict[str, Any], notifier: Notifier) -> StepOutcome:
        token = settings.get("token")
        if not token:
            raise NotifyError(f"step '{step.name}': missing 'token' setting")
        recipients = _recipients(settings.get("to"))
        if not recipients:
            raise NotifyError(f"step '{step.name}': missing 'to' setting")

        template = settings.get("message") or DEFAULT_TEMPLATE
        text = render(str(template), ctx.template_data()).strip()
        fmt = str(settings.get("format") or "markdown")

        for chat in recipients:
            notifier.send(str(token), Message(channel=self.channel, to=chat, text=text, format=fmt))

        return StepOutcome(exit_code=0, output=f"sent {self.channel} message to {len(recipients)} chat(s)")
