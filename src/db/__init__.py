"""
Database module for the Claims Reporting Service.

Exports database connection utilities.
"""

from src.db.connection import (
    build_engine,
    build_session_maker,
    check_db_connection,
    close_db_connection,
    get_engine,
    get_session_maker,
)

__all__ = [
    "build_engine",
    "build_session_maker",
    "get_engine",
    "get_session_maker",
    "close_db_connection",
    "check_db_connection",
]
