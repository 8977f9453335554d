from __future__ import annotations

from .base import BaseAction


class SayAction(BaseAction):
    """Send one chat line; completes as soon as it starts."""

    name = "say"

    @property
    def description(self) -> str:
        return "Saying something"

    def on_start(self) -> None:
        message = self.task.get_str("message").strip()
        if not message:
            self.fail("Nothing to say", replan=False)
            return
        self.context.say(message)
        self.succeed(f"Said: {message}")
