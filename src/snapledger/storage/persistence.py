"""Persistence adapter between the ledger store and a key-value store.

Each collection is stored as one JSON array under its own key. Which keys
are used depends on the account kind; see ``LAYOUTS``.
"""

import json
import logging
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Callable, Optional, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from snapledger.domain.entities import (
    Account,
    AccountKind,
    DepositEvent,
    LoanEvent,
    TransactionEvent,
    TransactionType,
)
from snapledger.domain.errors import ErrorKind, PersistenceError
from snapledger.domain.store import LedgerSnapshot
from snapledger.storage import mappers
from snapledger.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class KeyLayout:
    """Storage keys for the four ledger collections."""

    accounts: str
    deposits: str
    transactions: str
    loans: str

    def as_tuple(self) -> tuple[str, str, str, str]:
        return (self.accounts, self.deposits, self.transactions, self.loans)


@dataclass(frozen=True)
class LedgerLayout:
    """Current key layout plus an optional legacy layout to migrate from."""

    current: KeyLayout
    legacy: Optional[KeyLayout] = None


LAYOUTS: dict[AccountKind, LedgerLayout] = {
    AccountKind.POOL: LedgerLayout(
        current=KeyLayout(
            accounts="snapSolPay_pools",
            deposits="snapSolPay_pool_contributions",
            transactions="snapSolPay_pool_transactions",
            loans="snapSolPay_pool_loans",
        ),
    ),
    AccountKind.COLLATERAL: LedgerLayout(
        current=KeyLayout(
            accounts="snapSolPay_collaterals",
            deposits="snapSolPay_collateral_deposits",
            transactions="snapSolPay_collateral_transactions",
            loans="snapSolPay_collateral_loans",
        ),
        legacy=KeyLayout(
            accounts="solSNAP_pools",
            deposits="solSNAP_pool_contributions",
            transactions="solSNAP_pool_transactions",
            loans="solSNAP_pool_loans",
        ),
    ),
}

# Errors a key-value backend may raise on read or write
STORE_ERRORS = (SQLAlchemyError, OSError)

# Older collateral ledgers wrote a repayment's deposit row without a loan
# reference, stamped separately from its repayment entry
RESTORE_MATCH_WINDOW = timedelta(seconds=1)


class LedgerPersistence:
    """Loads and saves ledger collections as JSON blobs."""

    def __init__(self, kv_store: KeyValueStore, layout: LedgerLayout):
        """Initialize ledger persistence.

        Args:
            kv_store: Key-value store to read from and write to
            layout: Keys to use for each collection
        """
        self.kv_store = kv_store
        self.layout = layout

    @classmethod
    def for_kind(cls, kv_store: KeyValueStore, kind: AccountKind) -> "LedgerPersistence":
        """Create an adapter using the standard layout for an account kind."""
        return cls(kv_store, LAYOUTS[kind])

    def migrate_legacy(self) -> bool:
        """Copy legacy-layout values into the current layout once.

        Runs only when the current accounts key is absent and the legacy
        accounts key is present. Values are copied verbatim; the readers
        understand legacy field names.

        Returns:
            True if a migration happened
        """
        legacy = self.layout.legacy
        if legacy is None:
            return False
        try:
            if self.kv_store.contains(self.layout.current.accounts):
                return False
            if not self.kv_store.contains(legacy.accounts):
                return False

            copied = {}
            for old_key, new_key in zip(legacy.as_tuple(), self.layout.current.as_tuple()):
                value = self.kv_store.get(old_key)
                if value is not None:
                    copied[new_key] = value
            self.kv_store.set_many(copied)
        except STORE_ERRORS as e:
            raise PersistenceError(
                f"Failed to migrate legacy ledger data: {e}", ErrorKind.PERSISTENCE_WRITE_FAILED
            )

        logger.info("Migrated %d legacy ledger keys into current layout", len(copied))
        return True

    def load(self) -> LedgerSnapshot:
        """Load all four collections; missing keys load as empty.

        Raises:
            PersistenceError: If a stored value cannot be read or decoded
        """
        self.migrate_legacy()
        keys = self.layout.current
        snapshot = LedgerSnapshot(
            accounts=self._load(keys.accounts, mappers.account_from_record),
            deposits=self._load(keys.deposits, mappers.deposit_from_record),
            loans=self._load(keys.loans, mappers.loan_from_record),
            transactions=self._load(keys.transactions, mappers.transaction_from_record),
        )
        return tag_untagged_restores(snapshot)

    def _load(self, key: str, from_record: Callable[[dict], T]) -> tuple[T, ...]:
        try:
            raw = self.kv_store.get(key)
        except STORE_ERRORS as e:
            raise PersistenceError(f"Failed to read '{key}': {e}", ErrorKind.PERSISTENCE_READ_FAILED)
        if raw is None:
            return ()
        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError("expected a JSON array")
            return tuple(from_record(record) for record in records)
        except (ValueError, KeyError, TypeError, ArithmeticError) as e:
            raise PersistenceError(
                f"Stored value for '{key}' is corrupt: {e}", ErrorKind.PERSISTENCE_READ_FAILED
            )

    def save(
        self,
        accounts: Sequence[Account],
        deposits: Sequence[DepositEvent],
        loans: Sequence[LoanEvent],
        transactions: Sequence[TransactionEvent],
    ) -> None:
        """Write all four collections.

        Raises:
            PersistenceError: If the key-value store rejects the write
        """
        keys = self.layout.current
        items = {
            keys.accounts: _dump(mappers.account_to_record(a) for a in accounts),
            keys.deposits: _dump(mappers.deposit_to_record(d) for d in deposits),
            keys.transactions: _dump(mappers.transaction_to_record(t) for t in transactions),
            keys.loans: _dump(mappers.loan_to_record(l) for l in loans),
        }
        try:
            self.kv_store.set_many(items)
        except STORE_ERRORS as e:
            raise PersistenceError(
                f"Failed to save ledger data: {e}", ErrorKind.PERSISTENCE_WRITE_FAILED
            )
        logger.debug("Saved ledger: %d accounts, %d deposits", len(accounts), len(deposits))


def tag_untagged_restores(snapshot: LedgerSnapshot) -> LedgerSnapshot:
    """Link repayment deposit rows stored without a loan reference to their loan.

    A positive deposit row with no external address and no ``loan_id`` is a
    restore row when a repayment entry for the same account, user and amount
    was logged within ``RESTORE_MATCH_WINDOW`` of it. Each repayment entry
    accounts for at most one row, and entries already covered by a tagged
    restore row are used up first.
    """
    repayments = [t for t in snapshot.transactions if t.type == TransactionType.REPAYMENT]
    if not repayments:
        return snapshot

    def claim(row: DepositEvent) -> Optional[TransactionEvent]:
        for index, txn in enumerate(repayments):
            if (
                txn.account_id == row.account_id
                and txn.user_id == row.user_id
                and txn.amount == row.amount
                and abs(txn.timestamp - row.timestamp) <= RESTORE_MATCH_WINDOW
            ):
                return repayments.pop(index)
        return None

    for row in snapshot.deposits:
        if row.is_restore:
            claim(row)

    deposits = []
    tagged = 0
    for row in snapshot.deposits:
        if (
            not row.is_restore
            and row.external_address is None
            and row.amount > 0
            and claim(row) is not None
        ):
            loan = _repaid_loan_for(snapshot.loans, row)
            if loan is not None:
                row = replace(row, loan_id=loan.id)
                tagged += 1
        deposits.append(row)

    if not tagged:
        return snapshot
    logger.info("Linked %d repayment deposit rows to their loans", tagged)
    return replace(snapshot, deposits=tuple(deposits))


def _repaid_loan_for(loans: Sequence[LoanEvent], row: DepositEvent) -> Optional[LoanEvent]:
    candidates = [
        l for l in loans
        if l.account_id == row.account_id
        and l.user_id == row.user_id
        and l.timestamp <= row.timestamp
        and (l.repaid or l.repaid_amount)
    ]
    for loan in candidates:
        if loan.repaid_at is not None and abs(loan.repaid_at - row.timestamp) <= RESTORE_MATCH_WINDOW:
            return loan
    return candidates[-1] if candidates else None


def _dump(records) -> str:
    return json.dumps(list(records))
