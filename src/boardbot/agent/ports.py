"""Collaborator interfaces the agent depends on.

The agent owns none of the board data. Workspace lookup, task persistence,
context storage and the AI completion provider are injected behind these
protocols; ``boardbot.db.stores`` provides the SQLAlchemy implementations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from boardbot.agent.types import (
    ContextUpdate,
    ConversationContext,
    CreatedTask,
    TaskRecord,
)


class WorkspaceDirectory(Protocol):
    async def lookup_organization(self, workspace_id: str) -> str | None:
        """Map a chat workspace id to an organization id."""
        ...


class TaskStore(Protocol):
    async def list_user_tasks(self, user_id: str, organization_id: str) -> list[TaskRecord]:
        ...

    async def create_task(
        self,
        organization_id: str,
        user_id: str,
        content: str,
        board_name: str | None = None,
    ) -> CreatedTask:
        """Add to the named board when it exists, else to the default board."""
        ...

    async def get_task(self, task_id: str) -> TaskRecord | None:
        ...

    async def set_checked(self, task_id: str, checked: bool) -> TaskRecord | None:
        ...

    async def delete_task(self, task_id: str) -> TaskRecord | None:
        ...

    async def update_content(self, task_id: str, new_content: str) -> TaskRecord | None:
        ...


class CompletionProvider(Protocol):
    async def complete(self, system_prompt: str, user_text: str) -> str:
        ...


class ContextBackend(Protocol):
    """Key-value storage for conversation contexts, keyed by (user, channel)."""

    async def load(self, user_id: str, channel_id: str) -> ConversationContext | None:
        ...

    async def upsert(
        self,
        user_id: str,
        channel_id: str,
        organization_id: str,
        changes: ContextUpdate,
        expires_at: datetime,
        now: datetime,
    ) -> None:
        """Atomically create or merge the row for (user, channel).

        Fields left unset in *changes* keep their stored value unless the
        stored row had already expired at *now*, in which case they reset.
        """
        ...
