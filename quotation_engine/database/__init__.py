"""
Database module for the Quotation Engine.

Provides async database connections, session management,
and the declarative base class.
"""

from quotation_engine.database.base import (
    Base,
    engine,
    async_session_factory,
    build_engine,
    build_session_factory,
    get_db_session,
    get_session,
    init_db,
    close_db,
)

__all__ = [
    "Base",
    "engine",
    "async_session_factory",
    "build_engine",
    "build_session_factory",
    "get_db_session",
    "get_session",
    "init_db",
    "close_db",
]
