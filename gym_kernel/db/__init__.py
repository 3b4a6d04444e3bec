"""Database layer - engine, base classes and column types."""

from gym_kernel.db.base import UUID, Base, TimestampedBase
from gym_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from gym_kernel.db.types import Money, UTCDateTime, UUIDString

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UTCDateTime",
    "UUID",
    "Money",
]
