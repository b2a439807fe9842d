"""Shared types for the conversational task agent.

Kept in a separate file to avoid circular imports between the parser,
the conversation store and the router.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class IntentAction(str, Enum):
    """What the user wants done with their tasks."""
    LIST = "list"
    ADD = "add"
    COMPLETE = "complete"
    REMOVE = "remove"
    EDIT = "edit"
    HELP = "help"
    UNKNOWN = "unknown"


@dataclass
class IntentEntities:
    """Values extracted from the message; unset fields were not found."""

    task_text: str | None = None
    task_index: int | None = None
    board_name: str | None = None
    new_text: str | None = None


@dataclass
class Intent:
    """Structured interpretation of one chat message."""

    action: IntentAction
    confidence: float
    entities: IntentEntities = field(default_factory=IntentEntities)
    original_text: str = ""


@dataclass(frozen=True)
class TaskSnapshot:
    """One line of the task list most recently shown to the user."""

    task_id: str
    content: str
    ordinal: int


@dataclass
class ConversationContext:
    """Short-lived memory for one (user, channel) pair."""

    user_id: str
    channel_id: str
    organization_id: str
    expires_at: datetime
    last_action: str | None = None
    last_tasks: list[TaskSnapshot] = field(default_factory=list)


@dataclass
class TaskRecord:
    """A checklist item as seen through the task store."""

    id: str
    content: str
    checked: bool = False
    board_name: str = ""
    created_at: datetime | None = None


@dataclass
class CreatedTask:
    """Result of adding a task: the new id and the board it landed on."""

    id: str
    board_name: str


@dataclass
class ContextUpdate:
    """Partial write to a conversation context; None means "leave as is"."""

    last_action: str | None = None
    last_tasks: list[TaskSnapshot] | None = None
