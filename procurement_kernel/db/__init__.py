"""Database layer - engine, base classes, types, and immutability listeners."""

from procurement_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from procurement_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from procurement_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from procurement_kernel.db.types import Currency, Money, UTCDateTime

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Currency",
    "UTCDateTime",
]
