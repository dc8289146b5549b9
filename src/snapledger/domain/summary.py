"""Account summary building."""

from decimal import Decimal

from snapledger.domain import balances
from snapledger.domain.entities import (
    Account,
    AccountSummary,
    MemberPosition,
    TransactionType,
)
from snapledger.domain.store import LedgerStore


def build_account_summary(store: LedgerStore, account: Account) -> AccountSummary:
    """Group an account's transaction log by type and list member positions.

    Members are every user that appears in the account's deposit or loan
    rows, in order of first appearance.
    """
    totals: dict[TransactionType, Decimal] = {t: Decimal("0") for t in TransactionType}
    counts: dict[TransactionType, int] = {t: 0 for t in TransactionType}
    for txn in store.filter_transactions(lambda t: t.account_id == account.id):
        totals[txn.type] += txn.amount
        counts[txn.type] += 1

    names: dict[str, str] = {}
    for row in store.filter_deposits(lambda d: d.account_id == account.id):
        names.setdefault(row.user_id, row.user_name)
    loans = store.filter_loans(lambda l: l.account_id == account.id)
    for loan in loans:
        names.setdefault(loan.user_id, loan.user_name)

    members = tuple(
        MemberPosition(
            user_id=user_id,
            user_name=name,
            contributed=balances.contributed(store, user_id, account.id),
            outstanding_loans=balances.outstanding_loans(store, user_id, account.id),
            available_credit=balances.user_available_credit(store, user_id, account.id),
            withdrawable=max(
                Decimal("0"), balances.user_withdrawable(store, user_id, account.id)
            ),
        )
        for user_id, name in names.items()
    )

    return AccountSummary(
        account=account,
        balance=balances.account_balance(store, account.id),
        totals_by_type=totals,
        counts_by_type=counts,
        members=members,
        active_loan_count=sum(1 for l in loans if not l.repaid),
    )
