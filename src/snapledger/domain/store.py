"""In-memory ledger store.

Holds the four insertion-ordered collections the ledger is built from. The
store applies no business rules; it only appends, replaces and removes rows
and tells its listeners that something changed.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar

from snapledger.domain.entities import Account, DepositEvent, LoanEvent, TransactionEvent

T = TypeVar("T")

ChangeListener = Callable[["LedgerStore"], None]


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable copy of the store's collections."""

    accounts: tuple[Account, ...] = ()
    deposits: tuple[DepositEvent, ...] = ()
    loans: tuple[LoanEvent, ...] = ()
    transactions: tuple[TransactionEvent, ...] = ()


class LedgerStore:
    """Mutation-observing holder of accounts and ledger events."""

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        self._accounts: list[Account] = []
        self._deposits: list[DepositEvent] = []
        self._loans: list[LoanEvent] = []
        self._transactions: list[TransactionEvent] = []
        self._listeners: list[ChangeListener] = []
        self._batch_depth = 0
        self._dirty = False
        if snapshot is not None:
            self.hydrate(snapshot)

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(self._accounts)

    @property
    def deposits(self) -> tuple[DepositEvent, ...]:
        return tuple(self._deposits)

    @property
    def loans(self) -> tuple[LoanEvent, ...]:
        return tuple(self._loans)

    @property
    def transactions(self) -> tuple[TransactionEvent, ...]:
        return tuple(self._transactions)

    def snapshot(self) -> LedgerSnapshot:
        """Return an immutable copy of all collections."""
        return LedgerSnapshot(
            accounts=self.accounts,
            deposits=self.deposits,
            loans=self.loans,
            transactions=self.transactions,
        )

    def hydrate(self, snapshot: LedgerSnapshot) -> None:
        """Replace all collections without notifying listeners.

        Used once at startup, when the data comes from the backing store and
        writing it straight back would be pointless.
        """
        self._accounts = list(snapshot.accounts)
        self._deposits = list(snapshot.deposits)
        self._loans = list(snapshot.loans)
        self._transactions = list(snapshot.transactions)

    # Listeners
    def subscribe(self, listener: ChangeListener) -> None:
        """Register a callback invoked after every mutation (or batch)."""
        self._listeners.append(listener)

    @contextmanager
    def batch(self) -> Iterator["LedgerStore"]:
        """Group mutations so listeners are notified once, on exit.

        Nothing is notified if the block raises.
        """
        self._batch_depth += 1
        try:
            yield self
        except BaseException:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._dirty = False
            raise
        self._batch_depth -= 1
        if self._batch_depth == 0 and self._dirty:
            self._dirty = False
            self._notify()

    def _changed(self) -> None:
        if self._batch_depth > 0:
            self._dirty = True
        else:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Accounts
    def append_account(self, account: Account) -> None:
        self._accounts.append(account)
        self._changed()

    def find_account(self, account_id: str) -> Optional[Account]:
        return _find(self._accounts, lambda a: a.id == account_id)

    def replace_account(self, account: Account) -> None:
        """Swap in a new version of an existing account, keeping its position."""
        _replace(self._accounts, account)
        self._changed()

    # Events
    def append_deposit(self, deposit: DepositEvent) -> None:
        self._deposits.append(deposit)
        self._changed()

    def append_loan(self, loan: LoanEvent) -> None:
        self._loans.append(loan)
        self._changed()

    def find_loan(self, loan_id: str) -> Optional[LoanEvent]:
        return _find(self._loans, lambda l: l.id == loan_id)

    def replace_loan(self, loan: LoanEvent) -> None:
        _replace(self._loans, loan)
        self._changed()

    def append_transaction(self, transaction: TransactionEvent) -> None:
        self._transactions.append(transaction)
        self._changed()

    # Filtering
    def filter_deposits(self, predicate: Callable[[DepositEvent], bool]) -> list[DepositEvent]:
        return [d for d in self._deposits if predicate(d)]

    def filter_loans(self, predicate: Callable[[LoanEvent], bool]) -> list[LoanEvent]:
        return [l for l in self._loans if predicate(l)]

    def filter_transactions(
        self, predicate: Callable[[TransactionEvent], bool]
    ) -> list[TransactionEvent]:
        return [t for t in self._transactions if predicate(t)]

    # Removal
    def remove_account_cascade(self, account_id: str) -> int:
        """Remove an account and every event referencing it.

        Returns:
            Number of rows removed across all collections
        """
        before = (
            len(self._accounts) + len(self._deposits) + len(self._loans) + len(self._transactions)
        )
        self._accounts = [a for a in self._accounts if a.id != account_id]
        self._deposits = [d for d in self._deposits if d.account_id != account_id]
        self._loans = [l for l in self._loans if l.account_id != account_id]
        self._transactions = [t for t in self._transactions if t.account_id != account_id]
        after = (
            len(self._accounts) + len(self._deposits) + len(self._loans) + len(self._transactions)
        )
        self._changed()
        return before - after


def _find(items: list[T], predicate: Callable[[T], bool]) -> Optional[T]:
    for item in items:
        if predicate(item):
            return item
    return None


def _replace(items: list, new_item) -> None:
    for index, item in enumerate(items):
        if item.id == new_item.id:
            items[index] = new_item
            return
    raise KeyError(new_item.id)
