"""Balance calculations derived from the ledger store.

Every figure is recomputed from the event collections on each call; nothing
is cached. The store is small and in-memory, so a full scan is fine.

Restore rows (deposit rows tagged with a ``loan_id``) are an audit trail of
returned principal. No figure here counts them; repaid principal is read from
the loans themselves.
"""

from decimal import Decimal
from typing import Iterable, Optional

from snapledger.domain.entities import DepositEvent, LoanEvent
from snapledger.domain.errors import NotFoundError, ErrorKind, account_not_found
from snapledger.domain.store import LedgerStore

ZERO = Decimal("0")


def _total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def _user_deposits(
    store: LedgerStore, user_id: str, account_id: Optional[str]
) -> list[DepositEvent]:
    return store.filter_deposits(
        lambda d: d.user_id == user_id and (account_id is None or d.account_id == account_id)
    )


def _user_loans(store: LedgerStore, user_id: str, account_id: Optional[str]) -> list[LoanEvent]:
    return store.filter_loans(
        lambda l: l.user_id == user_id and (account_id is None or l.account_id == account_id)
    )


def account_balance(store: LedgerStore, account_id: str) -> Decimal:
    """Net funds held by an account.

    Sum of the users' own deposit rows minus the principal still outstanding
    on loans taken from the account. Restore rows are left out: the repaid
    part of a loan is already excluded through ``LoanEvent.outstanding``, and
    ledgers written without restore rows give the same figure.

    Raises:
        NotFoundError: If the account does not exist
    """
    if store.find_account(account_id) is None:
        raise NotFoundError(account_not_found(account_id), ErrorKind.ACCOUNT_NOT_FOUND)

    deposits = _total(
        d.amount
        for d in store.filter_deposits(lambda d: d.account_id == account_id)
        if not d.is_restore
    )
    lent = _total(l.outstanding for l in store.filter_loans(lambda l: l.account_id == account_id))
    return deposits - lent


def contributed(store: LedgerStore, user_id: str, account_id: Optional[str] = None) -> Decimal:
    """Signed sum of a user's own deposit rows, excluding repayment restores."""
    return _total(
        d.amount for d in _user_deposits(store, user_id, account_id) if not d.is_restore
    )


def outstanding_loans(
    store: LedgerStore, user_id: str, account_id: Optional[str] = None
) -> Decimal:
    """Principal the user still owes."""
    return _total(l.outstanding for l in _user_loans(store, user_id, account_id))


def user_balance(store: LedgerStore, user_id: str, account_id: Optional[str] = None) -> Decimal:
    """User's net contribution, floored at zero.

    Outstanding loans do not reduce it; they only reduce available credit and
    the withdrawable amount. With no account given, all accounts count.
    """
    return max(ZERO, contributed(store, user_id, account_id))


def user_withdrawable(store: LedgerStore, user_id: str, account_id: str) -> Decimal:
    """Contributed capital not pledged against an outstanding loan.

    May be negative; callers only use it as an upper bound.
    """
    return contributed(store, user_id, account_id) - outstanding_loans(store, user_id, account_id)


def user_available_credit(store: LedgerStore, user_id: str, account_id: str) -> Decimal:
    """Unborrowed portion of the user's balance (100% loan-to-balance limit)."""
    return max(
        ZERO,
        user_balance(store, user_id, account_id) - outstanding_loans(store, user_id, account_id),
    )
