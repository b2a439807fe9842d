"""Slack integration: event handlers and redelivery de-duplication."""

from boardbot.slack.dedupe import EventDeduplicator
from boardbot.slack.handlers import dispatch_event, register_handlers

__all__ = [
    "EventDeduplicator",
    "dispatch_event",
    "register_handlers",
]
