"""
Database package: async engine lifecycle, request-scoped sessions and the
generation session ORM model.
"""
from app.database.base import Base
from app.database.session import build_engine, close_db, create_tables, get_session_factory, init_db
from app.database.dependencies import get_db

__all__ = [
    "Base",
    "build_engine",
    "close_db",
    "create_tables",
    "get_db",
    "get_session_factory",
    "init_db",
]
