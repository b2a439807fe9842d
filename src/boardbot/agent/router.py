"""Routes a parsed Intent to the matching task operation.

``ActionRouter.handle_message`` is the entry point used by chat adapters:
it resolves the workspace, parses the message, runs one action handler and
returns the reply text. It never raises; every path ends in a string.

Each action handler takes ``(intent, user_id, channel_id, organization_id)``
and returns an ``ActionOutcome`` (reply plus the context change to record),
so handlers can be exercised without the top-level error boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog

from boardbot.agent import replies
from boardbot.agent.context import ConversationStore
from boardbot.agent.intent import IntentParser
from boardbot.agent.ports import TaskStore, WorkspaceDirectory
from boardbot.agent.resolver import ReferenceResolver
from boardbot.agent.types import (
    ContextUpdate,
    Intent,
    IntentAction,
    TaskSnapshot,
)
from boardbot.core.errors import TaskNotFound

logger = structlog.get_logger()


@dataclass
class ActionOutcome:
    reply: str
    context: ContextUpdate | None = None


Handler = Callable[[Intent, str, str, str], Awaitable[ActionOutcome]]


class ActionRouter:
    """Dispatches intents to task mutations and renders the replies."""

    def __init__(
        self,
        directory: WorkspaceDirectory,
        tasks: TaskStore,
        parser: IntentParser | None = None,
        store: ConversationStore | None = None,
    ) -> None:
        self.directory = directory
        self.tasks = tasks
        self.parser = parser or IntentParser()
        self.store = store or ConversationStore()
        self.resolver = ReferenceResolver(self.store)
        self._handlers: dict[IntentAction, Handler] = {
            IntentAction.LIST: self.handle_list,
            IntentAction.ADD: self.handle_add,
            IntentAction.COMPLETE: self.handle_complete,
            IntentAction.REMOVE: self.handle_remove,
            IntentAction.EDIT: self.handle_edit,
            IntentAction.HELP: self.handle_help,
            IntentAction.UNKNOWN: self.handle_unknown,
        }

    async def handle_message(
        self,
        text: str,
        user_id: str,
        channel_id: str,
        workspace_id: str,
    ) -> str:
        try:
            organization_id = await self.directory.lookup_organization(workspace_id)
            if not organization_id:
                logger.info("workspace_not_connected", workspace_id=workspace_id)
                return replies.WORKSPACE_NOT_CONNECTED

            intent = await self.parser.parse_intent(text)
            outcome = await self.route(intent, user_id, channel_id, organization_id)

            if outcome.context is not None:
                await self._remember(user_id, channel_id, organization_id, outcome.context)
            return outcome.reply
        except Exception as e:
            logger.error(
                "handle_message_failed",
                user_id=user_id,
                channel_id=channel_id,
                workspace_id=workspace_id,
                error=str(e),
            )
            return replies.GENERIC_APOLOGY

    async def route(
        self,
        intent: Intent,
        user_id: str,
        channel_id: str,
        organization_id: str,
    ) -> ActionOutcome:
        handler = self._handlers.get(intent.action, self.handle_unknown)
        return await handler(intent, user_id, channel_id, organization_id)

    async def _remember(
        self,
        user_id: str,
        channel_id: str,
        organization_id: str,
        update: ContextUpdate,
    ) -> None:
        if update.last_tasks is not None:
            await self.store.set_last_tasks(user_id, channel_id, organization_id, update.last_tasks)
        else:
            await self.store.update(user_id, channel_id, organization_id, update)

    async def _resolve_target(self, intent: Intent, user_id: str, channel_id: str) -> str | None:
        """Index first, then free text."""
        entities = intent.entities
        if entities.task_index is not None:
            return await self.resolver.resolve(user_id, channel_id, entities.task_index)
        if entities.task_text:
            return await self.resolver.resolve(user_id, channel_id, entities.task_text)
        return None

    # ═══ ACTION HANDLERS ════════════════════════════════════════════════

    async def handle_list(
        self, intent: Intent, user_id: str, channel_id: str, organization_id: str,
    ) -> ActionOutcome:
        tasks = await self.tasks.list_user_tasks(user_id, organization_id)
        if not tasks:
            return ActionOutcome(replies.EMPTY_LIST)

        snapshot = [
            TaskSnapshot(task_id=task.id, content=task.content, ordinal=i)
            for i, task in enumerate(tasks, start=1)
        ]
        logger.info("tasks_listed", user_id=user_id, count=len(tasks))
        return ActionOutcome(
            replies.task_list(tasks),
            ContextUpdate(last_action=IntentAction.LIST.value, last_tasks=snapshot),
        )

    async def handle_add(
        self, intent: Intent, user_id: str, channel_id: str, organization_id: str,
    ) -> ActionOutcome:
        task_text = intent.entities.task_text
        if not task_text:
            return ActionOutcome(replies.ADD_NEEDS_TEXT)

        try:
            created = await self.tasks.create_task(
                organization_id, user_id, task_text, board_name=intent.entities.board_name,
            )
        except Exception as e:
            logger.error("add_task_failed", user_id=user_id, error=str(e))
            return ActionOutcome(replies.ADD_FAILED)

        logger.info("task_added", task_id=created.id, board=created.board_name)
        return ActionOutcome(
            replies.added(task_text, created.board_name),
            ContextUpdate(last_action=IntentAction.ADD.value),
        )

    async def handle_complete(
        self, intent: Intent, user_id: str, channel_id: str, organization_id: str,
    ) -> ActionOutcome:
        task_id = await self._resolve_target(intent, user_id, channel_id)
        if not task_id:
            return ActionOutcome(replies.TASK_NOT_FOUND)

        try:
            task = await self.tasks.set_checked(task_id, True)
        except TaskNotFound:
            task = None
        except Exception as e:
            logger.error("complete_task_failed", task_id=task_id, error=str(e))
            return ActionOutcome(replies.COMPLETE_FAILED)

        if task is None:
            return ActionOutcome(replies.TASK_GONE)

        logger.info("task_completed", task_id=task_id)
        return ActionOutcome(
            replies.completed(task.content),
            ContextUpdate(last_action=IntentAction.COMPLETE.value),
        )

    async def handle_remove(
        self, intent: Intent, user_id: str, channel_id: str, organization_id: str,
    ) -> ActionOutcome:
        task_id = await self._resolve_target(intent, user_id, channel_id)
        if not task_id:
            return ActionOutcome(replies.TASK_NOT_FOUND)

        try:
            task = await self.tasks.delete_task(task_id)
        except TaskNotFound:
            task = None
        except Exception as e:
            logger.error("remove_task_failed", task_id=task_id, error=str(e))
            return ActionOutcome(replies.REMOVE_FAILED)

        if task is None:
            return ActionOutcome(replies.TASK_GONE)

        logger.info("task_removed", task_id=task_id)
        return ActionOutcome(
            replies.removed(task.content),
            ContextUpdate(last_action=IntentAction.REMOVE.value),
        )

    async def handle_edit(
        self, intent: Intent, user_id: str, channel_id: str, organization_id: str,
    ) -> ActionOutcome:
        new_text = intent.entities.new_text
        if not new_text:
            return ActionOutcome(replies.EDIT_NEEDS_TEXT)

        # Free-text targets are too ambiguous to rename safely.
        task_id = None
        if intent.entities.task_index is not None:
            task_id = await self.resolver.resolve(user_id, channel_id, intent.entities.task_index)
        if not task_id:
            return ActionOutcome(replies.EDIT_NEEDS_NUMBER)

        try:
            old_task = await self.tasks.get_task(task_id)
            if old_task is None:
                return ActionOutcome(replies.TASK_GONE)
            updated = await self.tasks.update_content(task_id, new_text)
        except TaskNotFound:
            return ActionOutcome(replies.TASK_GONE)
        except Exception as e:
            logger.error("edit_task_failed", task_id=task_id, error=str(e))
            return ActionOutcome(replies.EDIT_FAILED)

        if updated is None:
            return ActionOutcome(replies.TASK_GONE)

        logger.info("task_edited", task_id=task_id)
        return ActionOutcome(
            replies.edited(old_task.content, updated.content),
            ContextUpdate(last_action=IntentAction.EDIT.value),
        )

    async def handle_help(
        self, intent: Intent, user_id: str, channel_id: str, organization_id: str,
    ) -> ActionOutcome:
        return ActionOutcome(replies.HELP)

    async def handle_unknown(
        self, intent: Intent, user_id: str, channel_id: str, organization_id: str,
    ) -> ActionOutcome:
        return ActionOutcome(replies.unknown(intent.confidence))
