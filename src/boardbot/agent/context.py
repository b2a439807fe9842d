"""Short-lived conversational memory per (user, channel).

Remembers the last action and the last task list shown to a user in a
channel so that "complete task 2" or "delete that" can be resolved on the
next message. Contexts expire ``context_ttl_minutes`` after their last
write; expiry is checked lazily on read and expired rows are not deleted.

The store is best-effort: storage failures are logged and absorbed, never
raised. Losing context only degrades reference resolution.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from boardbot.agent.ports import ContextBackend
from boardbot.agent.types import ContextUpdate, ConversationContext, TaskSnapshot
from boardbot.config import settings

logger = structlog.get_logger()

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryContextBackend:
    """Process-local backend: a dict keyed by (user_id, channel_id)."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], ConversationContext] = {}

    async def load(self, user_id: str, channel_id: str) -> ConversationContext | None:
        row = self._rows.get((user_id, channel_id))
        return copy.deepcopy(row) if row is not None else None

    async def upsert(
        self,
        user_id: str,
        channel_id: str,
        organization_id: str,
        changes: ContextUpdate,
        expires_at: datetime,
        now: datetime,
    ) -> None:
        existing = self._rows.get((user_id, channel_id))
        if existing is None or existing.expires_at <= now:
            last_action: str | None = None
            last_tasks: list[TaskSnapshot] = []
        else:
            last_action = existing.last_action
            last_tasks = existing.last_tasks

        self._rows[(user_id, channel_id)] = ConversationContext(
            user_id=user_id,
            channel_id=channel_id,
            organization_id=organization_id,
            expires_at=expires_at,
            last_action=changes.last_action if changes.last_action is not None else last_action,
            last_tasks=list(changes.last_tasks) if changes.last_tasks is not None else list(last_tasks),
        )

    def __len__(self) -> int:
        return len(self._rows)


class ConversationStore:
    """Sole owner of ConversationContext rows."""

    def __init__(
        self,
        backend: ContextBackend | None = None,
        ttl: timedelta | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.backend: ContextBackend = backend if backend is not None else InMemoryContextBackend()
        self.ttl = ttl if ttl is not None else timedelta(minutes=settings.context_ttl_minutes)
        self._clock = clock

    async def get(self, user_id: str, channel_id: str) -> ConversationContext | None:
        """Return the live context, or None when absent, expired or unreadable."""
        try:
            context = await self.backend.load(user_id, channel_id)
        except Exception as e:
            logger.warning(
                "context_load_failed",
                user_id=user_id,
                channel_id=channel_id,
                error=str(e),
            )
            return None

        if context is None or context.expires_at <= self._clock():
            return None
        return context

    async def update(
        self,
        user_id: str,
        channel_id: str,
        organization_id: str,
        changes: ContextUpdate,
    ) -> None:
        """Upsert the context, merging *changes*, and push expiry to now + TTL."""
        now = self._clock()
        try:
            await self.backend.upsert(
                user_id,
                channel_id,
                organization_id,
                changes,
                expires_at=now + self.ttl,
                now=now,
            )
        except Exception as e:
            logger.warning(
                "context_update_failed",
                user_id=user_id,
                channel_id=channel_id,
                error=str(e),
            )

    async def set_last_tasks(
        self,
        user_id: str,
        channel_id: str,
        organization_id: str,
        tasks: list[TaskSnapshot],
    ) -> None:
        await self.update(
            user_id,
            channel_id,
            organization_id,
            ContextUpdate(last_action="list", last_tasks=list(tasks)),
        )
