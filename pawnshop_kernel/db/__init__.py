"""Database infrastructure: declarative base, engine and session scope."""

from pawnshop_kernel.db.base import Base, TrackedBase, UTCDateTime
from pawnshop_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "build_engine",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
