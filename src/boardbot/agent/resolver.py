"""Resolve "task 2", "that" or "the pricing one" to a task id.

Resolution is deliberately plain: ordinals index into the last list shown,
pronouns pick its final entry, anything else is a case-insensitive
substring match in list order. No similarity scoring.
"""

from __future__ import annotations

import structlog

from boardbot.agent.context import ConversationStore

logger = structlog.get_logger()


class ReferenceResolver:
    def __init__(self, store: ConversationStore) -> None:
        self._store = store

    async def resolve(self, user_id: str, channel_id: str, reference: str | int) -> str | None:
        context = await self._store.get(user_id, channel_id)
        if context is None or not context.last_tasks:
            return None
        tasks = context.last_tasks

        if isinstance(reference, int) and not isinstance(reference, bool):
            if 1 <= reference <= len(tasks):
                return tasks[reference - 1].task_id
            return None

        if isinstance(reference, str):
            lowered = reference.lower()
            if "that" in lowered or "it" in lowered or lowered == "last":
                return tasks[-1].task_id

            for task in tasks:
                if lowered in task.content.lower():
                    return task.task_id
            return None

        logger.debug("unsupported_task_reference", reference_type=type(reference).__name__)
        return None
