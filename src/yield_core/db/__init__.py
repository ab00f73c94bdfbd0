"""Database layer — engine, session, ORM base."""

from yield_core.db.base import Base
from yield_core.db.engine import get_engine, get_session, init_engine, session_scope

__all__ = ["Base", "get_engine", "get_session", "init_engine", "session_scope"]
