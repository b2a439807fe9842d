"""Slack event handlers for boardbot.

Handles:
- App mentions (@boardbot)
- Direct messages

Every accepted message goes through ``ActionRouter.handle_message`` and
the reply is posted in the message's thread.
"""

from __future__ import annotations

from typing import Any

import structlog
from slack_bolt.async_app import AsyncApp, AsyncBoltContext, AsyncSay

from boardbot.agent.router import ActionRouter
from boardbot.slack.dedupe import EventDeduplicator

logger = structlog.get_logger()

_IGNORED_SUBTYPES = frozenset({
    "message_changed", "message_deleted",
    "channel_join", "channel_leave",
    "bot_message",
})


def _event_key(event: dict[str, Any]) -> str | None:
    return event.get("client_msg_id") or event.get("event_ts") or event.get("ts")


async def dispatch_event(
    event: dict[str, Any],
    say: AsyncSay,
    context: AsyncBoltContext | dict[str, Any],
    router: ActionRouter,
    dedupe: EventDeduplicator,
) -> bool:
    """Route one Slack message event; returns True when a reply was sent."""
    if event.get("bot_id") or event.get("subtype") in _IGNORED_SUBTYPES:
        return False

    user_id = event.get("user")
    channel_id = event.get("channel")
    team_id = event.get("team") or context.get("team_id")
    text = event.get("text") or ""
    if not user_id or not channel_id or not team_id or not text.strip():
        return False

    key = _event_key(event)
    if key and dedupe.is_duplicate(key):
        return False

    logger.info(
        "slack_message_received",
        channel=channel_id,
        user=user_id,
        team=team_id,
        text=text[:200],
    )
    reply = await router.handle_message(text, user_id, channel_id, team_id)
    await say(text=reply, thread_ts=event.get("thread_ts") or event.get("ts"))
    return True


def register_handlers(
    app: AsyncApp,
    router: ActionRouter,
    dedupe: EventDeduplicator | None = None,
) -> None:
    """Register boardbot's Slack event handlers with the Bolt app."""
    if dedupe is None:
        dedupe = EventDeduplicator()

    # ═══ APP MENTION ════════════════════════════════════════════════════

    @app.event("app_mention")
    async def handle_app_mention(
        event: dict[str, Any],
        say: AsyncSay,
        context: AsyncBoltContext,
    ) -> None:
        await dispatch_event(event, say, context, router, dedupe)

    # ═══ DIRECT MESSAGES ════════════════════════════════════════════════

    @app.event("message")
    async def handle_message(
        event: dict[str, Any],
        say: AsyncSay,
        context: AsyncBoltContext,
    ) -> None:
        if event.get("user") == context.get("bot_user_id"):
            return
        # Channel messages only reach us through app_mention.
        if event.get("channel_type") != "im":
            return
        await dispatch_event(event, say, context, router, dedupe)
