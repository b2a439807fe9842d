"""SQLAlchemy implementations of the agent's collaborator interfaces.

- ``SqlWorkspaceDirectory``: Slack team id -> organization id
- ``SqlTaskStore``: checklist items across an organization's boards
- ``SqlContextBackend``: conversation context rows in ``slack_sessions``

Usage:
    router = ActionRouter(
        directory=SqlWorkspaceDirectory(),
        tasks=SqlTaskStore(),
        store=ConversationStore(SqlContextBackend()),
    )
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import case, func, literal_column, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boardbot.agent.types import (
    ContextUpdate,
    ConversationContext,
    CreatedTask,
    TaskRecord,
    TaskSnapshot,
)
from boardbot.config import settings
from boardbot.db.models import Board, ChecklistItem, Note, Organization, SlackSession
from boardbot.db.session import AsyncSessionLocal

logger = structlog.get_logger()


def _as_uuid(value: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class SqlWorkspaceDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or AsyncSessionLocal

    async def lookup_organization(self, workspace_id: str) -> str | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Organization.id).where(Organization.slack_team_id == workspace_id)
            )
            org_id = result.scalar_one_or_none()
        return str(org_id) if org_id is not None else None


class SqlTaskStore:
    """Tasks are checklist items on notes created by the user."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        default_board_name: str | None = None,
        board_names: list[str] | None = None,
    ) -> None:
        self._session_factory = session_factory or AsyncSessionLocal
        self.default_board_name = default_board_name or settings.default_board_name
        self.board_names = board_names or list(settings.fallback_board_names)

    async def list_user_tasks(self, user_id: str, organization_id: str) -> list[TaskRecord]:
        org_id = _as_uuid(organization_id)
        if org_id is None:
            return []

        stmt = (
            select(ChecklistItem, Board.name)
            .join(Note, ChecklistItem.note_id == Note.id)
            .join(Board, Note.board_id == Board.id)
            .where(
                Note.created_by == user_id,
                Note.deleted_at.is_(None),
                Board.organization_id == org_id,
            )
            .order_by(Note.created_at.desc(), ChecklistItem.order.asc())
        )
        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()
        return [self._record(item, board_name) for item, board_name in rows]

    async def create_task(
        self,
        organization_id: str,
        user_id: str,
        content: str,
        board_name: str | None = None,
    ) -> CreatedTask:
        """Add a task to *board_name* if the organization has it, else the default board."""
        org_id = _as_uuid(organization_id)
        if org_id is None:
            raise ValueError(f"Invalid organization id: {organization_id!r}")

        preference = case(
            {name: rank for rank, name in enumerate(self.board_names)},
            value=Board.name,
        )
        async with self._session_factory() as db:
            try:
                board = None
                if board_name:
                    result = await db.execute(
                        select(Board)
                        .where(
                            Board.organization_id == org_id,
                            func.lower(Board.name) == board_name.strip().lower(),
                        )
                        .order_by(Board.created_at)
                        .limit(1)
                    )
                    board = result.scalar_one_or_none()
                    if board is None:
                        logger.info(
                            "named_board_not_found",
                            organization_id=organization_id,
                            board_name=board_name,
                        )

                if board is None:
                    result = await db.execute(
                        select(Board)
                        .where(Board.organization_id == org_id, Board.name.in_(self.board_names))
                        .order_by(preference, Board.created_at)
                        .limit(1)
                    )
                    board = result.scalar_one_or_none()
                if board is None:
                    board = Board(
                        organization_id=org_id,
                        name=self.default_board_name,
                        created_by=user_id,
                    )
                    db.add(board)
                    await db.flush()
                    logger.info("default_board_created", organization_id=organization_id, name=board.name)

                note = Note(board_id=board.id, created_by=user_id)
                db.add(note)
                await db.flush()

                item = ChecklistItem(
                    note_id=note.id,
                    content=content,
                    slack_user_id=user_id,
                    order=0,
                )
                db.add(item)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return CreatedTask(id=str(item.id), board_name=board.name)

    async def get_task(self, task_id: str) -> TaskRecord | None:
        async with self._session_factory() as db:
            loaded = await self._load(db, task_id)
        return self._record(*loaded) if loaded else None

    async def set_checked(self, task_id: str, checked: bool) -> TaskRecord | None:
        return await self._mutate(task_id, checked=checked)

    async def update_content(self, task_id: str, new_content: str) -> TaskRecord | None:
        return await self._mutate(task_id, content=new_content)

    async def delete_task(self, task_id: str) -> TaskRecord | None:
        async with self._session_factory() as db:
            loaded = await self._load(db, task_id)
            if loaded is None:
                return None
            item, board_name = loaded
            record = self._record(item, board_name)
            try:
                await db.delete(item)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return record

    async def _mutate(self, task_id: str, **changes: Any) -> TaskRecord | None:
        async with self._session_factory() as db:
            loaded = await self._load(db, task_id)
            if loaded is None:
                return None
            item, board_name = loaded
            for key, value in changes.items():
                setattr(item, key, value)
            try:
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return self._record(item, board_name)

    @staticmethod
    async def _load(db: AsyncSession, task_id: str) -> tuple[ChecklistItem, str] | None:
        item_id = _as_uuid(task_id)
        if item_id is None:
            return None
        result = await db.execute(
            select(ChecklistItem, Board.name)
            .join(Note, ChecklistItem.note_id == Note.id)
            .join(Board, Note.board_id == Board.id)
            .where(ChecklistItem.id == item_id)
        )
        row = result.one_or_none()
        return (row[0], row[1]) if row is not None else None

    @staticmethod
    def _record(item: ChecklistItem, board_name: str) -> TaskRecord:
        return TaskRecord(
            id=str(item.id),
            content=item.content,
            checked=item.checked,
            board_name=board_name,
            created_at=item.created_at,
        )


class SqlContextBackend:
    """Conversation contexts in ``slack_sessions``; one atomic upsert per write."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or AsyncSessionLocal

    async def load(self, user_id: str, channel_id: str) -> ConversationContext | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(SlackSession).where(
                    SlackSession.user_id == user_id,
                    SlackSession.channel_id == channel_id,
                )
            )
            row = result.scalar_one_or_none()
        if row is None:
            return None
        return ConversationContext(
            user_id=row.user_id,
            channel_id=row.channel_id,
            organization_id=str(row.organization_id),
            expires_at=row.expires_at,
            last_action=row.last_action,
            last_tasks=[
                TaskSnapshot(
                    task_id=str(t["task_id"]),
                    content=str(t.get("content", "")),
                    ordinal=int(t.get("ordinal", i)),
                )
                for i, t in enumerate(row.last_tasks or [], start=1)
            ],
        )

    async def upsert(
        self,
        user_id: str,
        channel_id: str,
        organization_id: str,
        changes: ContextUpdate,
        expires_at: datetime,
        now: datetime,
    ) -> None:
        org_id = _as_uuid(organization_id)
        if org_id is None:
            raise ValueError(f"Invalid organization id: {organization_id!r}")

        tasks_json = (
            [
                {"task_id": t.task_id, "content": t.content, "ordinal": t.ordinal}
                for t in changes.last_tasks
            ]
            if changes.last_tasks is not None
            else []
        )
        stmt = pg_insert(SlackSession).values(
            id=uuid.uuid4(),
            user_id=user_id,
            channel_id=channel_id,
            organization_id=org_id,
            last_action=changes.last_action,
            last_tasks=tasks_json,
            expires_at=expires_at,
        )

        # Unset fields survive only while the stored row is still live.
        table = SlackSession.__table__
        live = table.c.expires_at > now
        set_: dict[str, Any] = {
            "organization_id": stmt.excluded.organization_id,
            "expires_at": stmt.excluded.expires_at,
            "updated_at": now,
            "last_action": (
                stmt.excluded.last_action
                if changes.last_action is not None
                else case((live, table.c.last_action), else_=None)
            ),
            "last_tasks": (
                stmt.excluded.last_tasks
                if changes.last_tasks is not None
                else case((live, table.c.last_tasks), else_=literal_column("'[]'::jsonb"))
            ),
        }
        stmt = stmt.on_conflict_do_update(
            index_elements=[SlackSession.user_id, SlackSession.channel_id],
            set_=set_,
        )

        async with self._session_factory() as db:
            try:
                await db.execute(stmt)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
