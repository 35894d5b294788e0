"""Database engine, sessions and ORM models."""

from tables_app.db.base import (
    Base,
    async_session_maker,
    create_db_engine,
    create_session_maker,
    create_tables,
    engine,
    get_db,
    init_db,
)

__all__ = [
    "Base",
    "async_session_maker",
    "create_db_engine",
    "create_session_maker",
    "create_tables",
    "engine",
    "get_db",
    "init_db",
]
