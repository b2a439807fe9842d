"""Database module for boardbot.

Exports:
- Base: SQLAlchemy declarative base
- models: Organization, Board, Note, ChecklistItem, SlackSession
- session: Async session management
"""

from boardbot.db.models import Base
from boardbot.db.session import AsyncSessionLocal, db_session

__all__ = ["Base", "AsyncSessionLocal", "db_session"]
