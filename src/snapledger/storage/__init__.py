"""Storage layer for snapledger application."""

from snapledger.storage.base import KeyValueStore
from snapledger.storage.factories import create_sqlite_store
from snapledger.storage.memory import InMemoryKeyValueStore
from snapledger.storage.persistence import LedgerPersistence, LAYOUTS

__all__ = [
    "KeyValueStore",
    "create_sqlite_store",
    "InMemoryKeyValueStore",
    "LedgerPersistence",
    "LAYOUTS",
]
