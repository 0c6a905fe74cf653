"""
Session Store Repositories

Keyed persistence of conversation Sessions behind one interface, so the
orchestrator never depends on where sessions live.

Public API:
- get_session_store(): Factory to get the configured store instance
- SessionStoreInterface: Abstract interface (load/save/delete/sweep_expired)
- InMemorySessionStore, JsonFileSessionStore, MongoSessionStore: implementations
- SweepResult: Result dataclass for expiry sweeps

Usage:
    from src.common.repositories import get_session_store

    store = get_session_store()
    session = store.load(identity)
    store.save(session)
    store.sweep_expired(timedelta(hours=24))
"""

from .base import SessionStoreInterface, SweepResult, is_session_expired
from .memory_store import InMemorySessionStore
from .file_store import JsonFileSessionStore
from .config import (
    get_session_store,
    reset_session_store,
    create_session_store,
    SessionStoreConfig,
    StoreBackend,
)

__all__ = [
    "get_session_store",
    "reset_session_store",
    "create_session_store",
    "SessionStoreInterface",
    "SessionStoreConfig",
    "StoreBackend",
    "SweepResult",
    "is_session_expired",
    "InMemorySessionStore",
    "JsonFileSessionStore",
]
