"""Database connection management."""

from claimflow.db.connection import (
    check_db_connection,
    close_db_connection,
    get_engine,
    get_session,
    get_session_maker,
)

__all__ = [
    "check_db_connection",
    "close_db_connection",
    "get_engine",
    "get_session",
    "get_session_maker",
]
