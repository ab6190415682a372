"""Database package for the lead tracking and marketing automation core."""
from db.connection import (
    dispose_engine,
    get_db,
    get_engine,
    get_session_factory,
    session_scope,
)

__all__ = ["get_engine", "get_session_factory", "get_db", "session_scope", "dispose_engine"]
