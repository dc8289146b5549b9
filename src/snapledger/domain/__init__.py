"""Domain layer for snapledger application."""

from snapledger.domain.engine import LedgerEngine
from snapledger.domain.store import LedgerStore, LedgerSnapshot
from snapledger.domain.entities import AccountKind, TransactionType, UserIdentity

__all__ = [
    "LedgerEngine",
    "LedgerStore",
    "LedgerSnapshot",
    "AccountKind",
    "TransactionType",
    "UserIdentity",
]
