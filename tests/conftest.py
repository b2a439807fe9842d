"""Pytest configuration and shared fixtures.

Run with:
    pytest tests/                          # Run all tests
    pytest tests/test_intent_parser.py -v  # Run specific test file

The unit tests run against in-memory collaborators. Postgres-backed tests
live under tests/integration and skip when no test database is reachable.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from boardbot.agent.context import ConversationStore, InMemoryContextBackend
from boardbot.agent.intent import IntentParser
from boardbot.agent.router import ActionRouter
from boardbot.agent.types import CreatedTask, TaskRecord

ORG_ID = "org-1"
TEAM_ID = "T0001"
USER_ID = "U0001"
CHANNEL_ID = "C0001"


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(minutes=minutes, seconds=seconds)


class FakeDirectory:
    def __init__(self, mapping: dict[str, str] | None = None) -> None:
        self.mapping = mapping if mapping is not None else {TEAM_ID: ORG_ID}

    async def lookup_organization(self, workspace_id: str) -> str | None:
        return self.mapping.get(workspace_id)


class FakeTaskStore:
    """In-memory TaskStore; list order is insertion order.

    Method names listed in ``fail_on`` raise RuntimeError when called.
    """

    def __init__(self, board_names: tuple[str, ...] = ("Personal", "Default")) -> None:
        self.board_names = board_names
        self.boards: dict[str, list[str]] = {}
        self.tasks: dict[str, TaskRecord] = {}
        self.owners: dict[str, tuple[str, str]] = {}
        self.fail_on: set[str] = set()
        self._ids = itertools.count(1)

    def _check(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"{name} unavailable")

    def seed(
        self,
        content: str,
        checked: bool = False,
        board_name: str = "Work",
        user_id: str = USER_ID,
        organization_id: str = ORG_ID,
    ) -> TaskRecord:
        task_id = f"task-{next(self._ids)}"
        record = TaskRecord(id=task_id, content=content, checked=checked, board_name=board_name)
        self.tasks[task_id] = record
        self.owners[task_id] = (organization_id, user_id)
        self.boards.setdefault(organization_id, [])
        if board_name not in self.boards[organization_id]:
            self.boards[organization_id].append(board_name)
        return record

    async def list_user_tasks(self, user_id: str, organization_id: str) -> list[TaskRecord]:
        self._check("list_user_tasks")
        return [
            TaskRecord(**vars(task))
            for task_id, task in self.tasks.items()
            if self.owners[task_id] == (organization_id, user_id)
        ]

    async def create_task(
        self,
        organization_id: str,
        user_id: str,
        content: str,
        board_name: str | None = None,
    ) -> CreatedTask:
        self._check("create_task")
        boards = self.boards.setdefault(organization_id, [])
        board = None
        if board_name:
            board = next((name for name in boards if name.lower() == board_name.strip().lower()), None)
        if board is None:
            board = next((name for name in self.board_names if name in boards), None)
        if board is None:
            board = self.board_names[0]
            boards.append(board)
        record = self.seed(content, board_name=board, user_id=user_id, organization_id=organization_id)
        return CreatedTask(id=record.id, board_name=board)

    async def get_task(self, task_id: str) -> TaskRecord | None:
        self._check("get_task")
        task = self.tasks.get(task_id)
        return TaskRecord(**vars(task)) if task else None

    async def set_checked(self, task_id: str, checked: bool) -> TaskRecord | None:
        self._check("set_checked")
        task = self.tasks.get(task_id)
        if task is None:
            return None
        task.checked = checked
        return TaskRecord(**vars(task))

    async def delete_task(self, task_id: str) -> TaskRecord | None:
        self._check("delete_task")
        task = self.tasks.pop(task_id, None)
        self.owners.pop(task_id, None)
        return task

    async def update_content(self, task_id: str, new_content: str) -> TaskRecord | None:
        self._check("update_content")
        task = self.tasks.get(task_id)
        if task is None:
            return None
        task.content = new_content
        return TaskRecord(**vars(task))


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def context_store(clock: FakeClock) -> ConversationStore:
    return ConversationStore(InMemoryContextBackend(), ttl=timedelta(minutes=30), clock=clock)


@pytest.fixture
def task_store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def router(directory: FakeDirectory, task_store: FakeTaskStore, context_store: ConversationStore) -> ActionRouter:
    """Router with rule-based parsing only."""
    return ActionRouter(
        directory=directory,
        tasks=task_store,
        parser=IntentParser(),
        store=context_store,
    )
