"""Tests for Slack event dispatch and redelivery dedup."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from boardbot.slack.dedupe import EventDeduplicator
from boardbot.slack.handlers import dispatch_event, register_handlers


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def mention(**overrides) -> dict:
    event = {
        "type": "app_mention",
        "user": "U0001",
        "channel": "C0001",
        "team": "T0001",
        "text": "<@UBOT> list my tasks",
        "ts": "1700000000.000100",
        "client_msg_id": "msg-1",
    }
    event.update(overrides)
    return event


@pytest.fixture
def fake_router() -> MagicMock:
    router = MagicMock()
    router.handle_message = AsyncMock(return_value="📋 your tasks")
    return router


# ─────────────────────────────────────────────────────────────────────────────
# EventDeduplicator
# ─────────────────────────────────────────────────────────────────────────────

class TestEventDeduplicator:
    def test_second_sighting_is_duplicate(self):
        dedupe = EventDeduplicator(ttl_s=300, max_entries=10, clock=FakeMonotonic())
        assert dedupe.is_duplicate("e1") is False
        assert dedupe.is_duplicate("e1") is True
        assert dedupe.is_duplicate("e2") is False

    def test_expires_after_ttl(self):
        clock = FakeMonotonic()
        dedupe = EventDeduplicator(ttl_s=300, max_entries=10, clock=clock)
        dedupe.is_duplicate("e1")
        clock.now += 301
        assert dedupe.is_duplicate("e1") is False

    def test_stale_entries_purged_when_full(self):
        clock = FakeMonotonic()
        dedupe = EventDeduplicator(ttl_s=300, max_entries=3, clock=clock)
        for key in ("a", "b", "c"):
            dedupe.is_duplicate(key)
        clock.now += 400
        dedupe.is_duplicate("d")
        assert len(dedupe) == 1

    def test_live_entries_survive_purge(self):
        clock = FakeMonotonic()
        dedupe = EventDeduplicator(ttl_s=300, max_entries=2, clock=clock)
        dedupe.is_duplicate("a")
        dedupe.is_duplicate("b")
        dedupe.is_duplicate("c")
        assert len(dedupe) == 3
        assert dedupe.is_duplicate("a") is True


# ─────────────────────────────────────────────────────────────────────────────
# dispatch_event
# ─────────────────────────────────────────────────────────────────────────────

class TestDispatchEvent:
    @pytest.mark.asyncio
    async def test_routes_and_replies_in_thread(self, fake_router):
        say = AsyncMock()

        sent = await dispatch_event(mention(), say, {}, fake_router, EventDeduplicator())

        assert sent is True
        fake_router.handle_message.assert_awaited_once_with(
            "<@UBOT> list my tasks", "U0001", "C0001", "T0001",
        )
        say.assert_awaited_once_with(text="📋 your tasks", thread_ts="1700000000.000100")

    @pytest.mark.asyncio
    async def test_keeps_existing_thread(self, fake_router):
        say = AsyncMock()
        await dispatch_event(mention(thread_ts="1699.1"), say, {}, fake_router, EventDeduplicator())
        assert say.await_args.kwargs["thread_ts"] == "1699.1"

    @pytest.mark.asyncio
    async def test_team_from_context(self, fake_router):
        event = mention()
        del event["team"]

        await dispatch_event(event, AsyncMock(), {"team_id": "T0009"}, fake_router, EventDeduplicator())

        assert fake_router.handle_message.await_args.args[3] == "T0009"

    @pytest.mark.asyncio
    async def test_redelivery_dropped(self, fake_router):
        dedupe = EventDeduplicator()
        say = AsyncMock()

        assert await dispatch_event(mention(), say, {}, fake_router, dedupe) is True
        assert await dispatch_event(mention(), say, {}, fake_router, dedupe) is False
        assert fake_router.handle_message.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"bot_id": "B1"},
        {"subtype": "message_changed"},
        {"subtype": "channel_join"},
        {"user": None},
        {"text": "   "},
    ])
    async def test_ignored_events(self, fake_router, overrides):
        say = AsyncMock()

        sent = await dispatch_event(mention(**overrides), say, {}, fake_router, EventDeduplicator())

        assert sent is False
        fake_router.handle_message.assert_not_awaited()
        say.assert_not_awaited()


# ─────────────────────────────────────────────────────────────────────────────
# register_handlers
# ─────────────────────────────────────────────────────────────────────────────

class TestRegisterHandlers:
    def _register(self, router) -> dict:
        registered: dict = {}

        def event(name):
            def decorator(fn):
                registered[name] = fn
                return fn
            return decorator

        app = MagicMock()
        app.event.side_effect = event
        register_handlers(app, router, EventDeduplicator())
        return registered

    def test_registers_mentions_and_messages(self, fake_router):
        assert set(self._register(fake_router)) == {"app_mention", "message"}

    @pytest.mark.asyncio
    async def test_direct_message_handled(self, fake_router):
        handlers = self._register(fake_router)
        say = AsyncMock()

        await handlers["message"](
            event=mention(type="message", channel_type="im", text="help"),
            say=say,
            context={"bot_user_id": "UBOT"},
        )

        fake_router.handle_message.assert_awaited_once()
        say.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_channel_message_without_mention_ignored(self, fake_router):
        handlers = self._register(fake_router)
        say = AsyncMock()

        await handlers["message"](
            event=mention(type="message", channel_type="channel", text="list"),
            say=say,
            context={"bot_user_id": "UBOT"},
        )

        say.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_own_messages_ignored(self, fake_router):
        handlers = self._register(fake_router)
        say = AsyncMock()

        await handlers["message"](
            event=mention(type="message", channel_type="im", user="UBOT"),
            say=say,
            context={"bot_user_id": "UBOT"},
        )

        say.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_app_mention_handled(self, fake_router):
        handlers = self._register(fake_router)
        say = AsyncMock()

        await handlers["app_mention"](event=mention(), say=say, context={})

        say.assert_awaited_once()
