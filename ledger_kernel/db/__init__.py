"""Database layer - engine, base classes, types, and immutability."""

from ledger_kernel.db.base import UUID, Base, MinorUnits, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from ledger_kernel.db.types import ZERO, round_money, to_money, validate_currency

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "MinorUnits",
    "UUID",
    "ZERO",
    "round_money",
    "to_money",
    "validate_currency",
]
