"""Exception hierarchy for boardbot."""

from __future__ import annotations


class BoardbotError(Exception):
    """Root exception for all boardbot domain errors."""


class LLMError(BoardbotError):
    """LLM API error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TaskNotFound(BoardbotError):
    """A task vanished between resolution and mutation."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id
