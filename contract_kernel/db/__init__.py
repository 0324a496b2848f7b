"""Database layer - engine, base classes, portable types, and immutability."""

from contract_kernel.db.base import UUID, Base, UTCDateTime, UUIDString
from contract_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "UUIDString",
    "UTCDateTime",
    "UUID",
]
