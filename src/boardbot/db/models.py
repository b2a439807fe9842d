"""Boardbot database models.

Only the slice of the board schema the task agent touches:
organizations own boards, boards hold notes, notes hold checklist items
(the "tasks"). ``SlackSession`` stores conversation context per
(user, channel).
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB as _JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class JSONB(TypeDecorator):
    """Custom JSONB type that handles UUID, datetime, and Enum serialization."""

    impl = _JSONB
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        return json.loads(json.dumps(value, default=self._json_default))

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return value

    @staticmethod
    def _json_default(obj: Any) -> Any:
        if isinstance(obj, uuid.UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class Base(DeclarativeBase):
    """Base class with common utilities."""

    type_annotation_map = {
        dict[str, Any]: JSONB,
        list[dict[str, Any]]: JSONB,
        datetime: DateTime(timezone=True),
    }

    def to_dict(self) -> dict[str, Any]:
        return {
            c.name: getattr(self, c.name)
            for c in self.__table__.columns
        }


# ═══════════════════════════════════════════════════════════════════════════════
# TENANT & BOARDS
# ═══════════════════════════════════════════════════════════════════════════════

class Organization(Base):
    """Tenant; optionally linked to one Slack workspace."""

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slack_team_id: Mapped[str | None] = mapped_column(
        String(32), unique=True, nullable=True,
        comment="Slack workspace/team ID (T1234567890)"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    boards: Mapped[list["Board"]] = relationship(back_populates="organization")


class Board(Base):
    __tablename__ = "boards"
    __table_args__ = (
        Index("ix_boards_org_name", "organization_id", "name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    organization: Mapped[Organization] = relationship(back_populates="boards")
    notes: Mapped[list["Note"]] = relationship(back_populates="board")


class Note(Base):
    """Sticky note on a board; its checklist items are the tasks."""

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_board_creator", "board_id", "created_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    board_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("boards.id", ondelete="CASCADE"), nullable=False
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
        comment="Soft delete timestamp"
    )

    board: Mapped[Board] = relationship(back_populates="notes")
    items: Mapped[list["ChecklistItem"]] = relationship(
        back_populates="note", cascade="all, delete-orphan"
    )


class ChecklistItem(Base):
    __tablename__ = "checklist_items"
    __table_args__ = (
        Index("ix_checklist_items_note_order", "note_id", "order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    note_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    checked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    slack_user_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="Set when created from Slack"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    note: Mapped[Note] = relationship(back_populates="items")


# ═══════════════════════════════════════════════════════════════════════════════
# CONVERSATION CONTEXT
# ═══════════════════════════════════════════════════════════════════════════════

class SlackSession(Base):
    """Conversation context for one (user, channel); read lazily against expires_at."""

    __tablename__ = "slack_sessions"
    __table_args__ = (
        UniqueConstraint("user_id", "channel_id", name="uix_slack_session_user_channel"),
        {"comment": "Short-lived agent memory"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    last_action: Mapped[str | None] = mapped_column(String(32), nullable=True)
    last_tasks: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, default=list, nullable=False,
        comment="[{task_id, content, ordinal}] as last shown"
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
