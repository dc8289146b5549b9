"""Ledger engine: validates commands and records their events."""

import logging
import math
import threading
import uuid
from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Protocol, Sequence

from snapledger.domain import balances
from snapledger.domain.entities import (
    Account,
    AccountKind,
    AccountSummary,
    DepositEvent,
    LoanEvent,
    TransactionEvent,
    TransactionType,
    UserIdentity,
)
from snapledger.domain.errors import (
    ConflictError,
    DependencyError,
    DomainError,
    ErrorKind,
    LimitExceededError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    account_delete_blocked,
    account_not_found,
    already_repaid,
    empty_name,
    exceeds_credit,
    exceeds_principal,
    exceeds_withdrawable,
    insufficient_account_funds,
    insufficient_user_balance,
    invalid_address,
    invalid_amount,
    loan_not_found,
)
from snapledger.domain.store import LedgerSnapshot, LedgerStore
from snapledger.domain.summary import build_account_summary

logger = logging.getLogger(__name__)


class PersistencePort(Protocol):
    """What the engine needs from a persistence adapter."""

    def load(self) -> LedgerSnapshot: ...

    def save(
        self,
        accounts: Sequence[Account],
        deposits: Sequence[DepositEvent],
        loans: Sequence[LoanEvent],
        transactions: Sequence[TransactionEvent],
    ) -> None: ...


def coerce_amount(value: Any) -> Decimal:
    """Convert a caller-supplied amount to a positive, finite Decimal.

    Raises:
        ValidationError: If the value is not numeric, not finite or not > 0
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(invalid_amount(value), ErrorKind.INVALID_AMOUNT)
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(invalid_amount(value), ErrorKind.INVALID_AMOUNT)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(invalid_amount(value), ErrorKind.INVALID_AMOUNT)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(invalid_amount(value), ErrorKind.INVALID_AMOUNT)
    return amount


class LedgerEngine:
    """Stateful ledger service for one kind of account.

    Commands run to completion under a re-entrant lock, so a command's
    validation always sees the state its events are appended to. After each
    successful command the store notifies the engine, which flushes the
    collections through the persistence port.
    """

    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        persistence: Optional[PersistencePort] = None,
        kind: AccountKind = AccountKind.POOL,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """Initialize the ledger engine.

        Args:
            store: Ledger store to operate on (a new empty one if None)
            persistence: Optional persistence adapter; loaded once here
            kind: Account kind this engine manages
            clock: Returns the current UTC time (injectable for tests)
            id_factory: Returns fresh unique ids (UUID4 by default)
        """
        self.store = store if store is not None else LedgerStore()
        self.persistence = persistence
        self.kind = kind
        self._now = clock or (lambda: datetime.now(UTC))
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        self._lock = threading.RLock()

        if persistence is not None:
            self.store.hydrate(persistence.load())
            logger.info(
                "Loaded %s ledger: %d accounts, %d deposits, %d loans, %d transactions",
                kind.value,
                len(self.store.accounts),
                len(self.store.deposits),
                len(self.store.loans),
                len(self.store.transactions),
            )
        self.store.subscribe(self._flush)

    def _flush(self, store: LedgerStore) -> None:
        if self.persistence is None:
            return
        try:
            self.persistence.save(
                store.accounts, store.deposits, store.loans, store.transactions
            )
        except PersistenceError:
            logger.error("Failed to persist %s ledger; in-memory state kept", self.kind.value)
            raise

    def _apply(self, result: Any, mutate: Callable[[], None]) -> Any:
        """Run a mutation as one batch and attach the result to flush failures."""
        try:
            with self.store.batch():
                mutate()
        except PersistenceError as e:
            e.result = result
            raise
        return result

    def _reject(self, error: DomainError) -> DomainError:
        logger.warning("Rejected %s command: %s", self.kind.value, error.kind.value)
        return error

    def _require_account(self, account_id: str) -> Account:
        account = self.store.find_account(account_id)
        if account is None:
            raise self._reject(
                NotFoundError(account_not_found(account_id), ErrorKind.ACCOUNT_NOT_FOUND)
            )
        return account

    def _amount(self, value: Any) -> Decimal:
        try:
            return coerce_amount(value)
        except ValidationError as e:
            raise self._reject(e)

    def _transaction(
        self,
        account_id: str,
        type_: TransactionType,
        user: UserIdentity,
        amount: Decimal,
        timestamp: datetime,
        description: str,
        bill_reference: Optional[str] = None,
    ) -> TransactionEvent:
        return TransactionEvent(
            id=self._new_id(),
            account_id=account_id,
            type=type_,
            user_id=user.user_id,
            user_name=user.name,
            user_avatar=user.avatar,
            amount=amount,
            timestamp=timestamp,
            description=description,
            bill_reference=bill_reference,
        )

    def _deposit_row(
        self,
        account_id: str,
        user: UserIdentity,
        amount: Decimal,
        timestamp: datetime,
        external_address: Optional[str] = None,
        loan_id: Optional[str] = None,
    ) -> DepositEvent:
        return DepositEvent(
            id=self._new_id(),
            account_id=account_id,
            user_id=user.user_id,
            user_name=user.name,
            user_avatar=user.avatar,
            amount=amount,
            timestamp=timestamp,
            external_address=external_address,
            loan_id=loan_id,
        )

    # Commands
    def create_account(
        self, name: str, owner: UserIdentity, description: Optional[str] = None
    ) -> str:
        """Create a new account.

        Returns:
            Account ID

        Raises:
            ValidationError: If the name is blank
        """
        with self._lock:
            name = (name or "").strip()
            if not name:
                raise self._reject(ValidationError(empty_name(), ErrorKind.EMPTY_NAME))

            if description is not None:
                description = description.strip() or None
            account = Account(
                id=self._new_id(),
                name=name,
                created_at=self._now(),
                owner_id=owner.user_id,
                owner_name=owner.name,
                owner_avatar=owner.avatar,
                description=description,
            )
            self._apply(account.id, lambda: self.store.append_account(account))
            logger.info("Created %s account %s (%s)", self.kind.value, account.id, name)
            return account.id

    def attach_external_address(
        self, account_id: str, address: str, secondary_address: str
    ) -> Account:
        """Record the settlement-layer addresses of an account (last write wins)."""
        with self._lock:
            account = self._require_account(account_id)
            address = (address or "").strip()
            secondary_address = (secondary_address or "").strip()
            if not address or not secondary_address:
                raise self._reject(ValidationError(invalid_address(), ErrorKind.INVALID_ADDRESS))

            updated = replace(
                account, external_address=address, secondary_address=secondary_address
            )
            self._apply(updated, lambda: self.store.replace_account(updated))
            logger.info("Attached external address to account %s", account_id)
            return updated

    def deposit(
        self,
        account_id: str,
        user: UserIdentity,
        external_address: Optional[str],
        amount: Any,
    ) -> str:
        """Deposit funds into an account.

        Returns:
            ID of the deposit transaction record
        """
        with self._lock:
            value = self._amount(amount)
            self._require_account(account_id)

            now = self._now()
            row = self._deposit_row(account_id, user, value, now, external_address or None)
            txn = self._transaction(
                account_id, TransactionType.DEPOSIT, user, value, now,
                f"Deposit to {self.kind.value}",
            )

            def mutate() -> None:
                self.store.append_deposit(row)
                self.store.append_transaction(txn)

            self._apply(txn.id, mutate)
            logger.info("Deposit of %s by %s into %s", value, user.user_id, account_id)
            return txn.id

    def withdraw(self, account_id: str, user: UserIdentity, amount: Any) -> str:
        """Withdraw a user's unpledged capital from an account.

        Returns:
            ID of the withdrawal transaction record
        """
        with self._lock:
            value = self._amount(amount)
            self._require_account(account_id)

            withdrawable = balances.user_withdrawable(self.store, user.user_id, account_id)
            if value > withdrawable:
                raise self._reject(
                    LimitExceededError(
                        exceeds_withdrawable(withdrawable), ErrorKind.EXCEEDS_WITHDRAWABLE
                    )
                )
            self._check_account_funds(account_id, value)

            now = self._now()
            row = self._deposit_row(account_id, user, -value, now)
            txn = self._transaction(
                account_id, TransactionType.WITHDRAWAL, user, value, now,
                f"Withdrawal by {user.name or user.user_id}",
            )

            def mutate() -> None:
                self.store.append_deposit(row)
                self.store.append_transaction(txn)

            self._apply(txn.id, mutate)
            logger.info("Withdrawal of %s by %s from %s", value, user.user_id, account_id)
            return txn.id

    def pay(
        self,
        account_id: str,
        user: UserIdentity,
        amount: Any,
        description: str,
        bill_reference: Optional[str] = None,
    ) -> str:
        """Pay a bill out of the user's share of an account.

        The payment is bounded by the user's balance less their outstanding
        loans, so capital pledged against a loan cannot be spent.

        Returns:
            ID of the payment transaction record
        """
        with self._lock:
            value = self._amount(amount)
            self._require_account(account_id)

            available = balances.user_available_credit(self.store, user.user_id, account_id)
            if value > available:
                raise self._reject(
                    LimitExceededError(
                        insufficient_user_balance(available),
                        ErrorKind.INSUFFICIENT_USER_BALANCE,
                    )
                )
            self._check_account_funds(account_id, value)

            now = self._now()
            row = self._deposit_row(account_id, user, -value, now)
            txn = self._transaction(
                account_id, TransactionType.PAYMENT, user, value, now,
                description, bill_reference or None,
            )

            def mutate() -> None:
                self.store.append_deposit(row)
                self.store.append_transaction(txn)

            self._apply(txn.id, mutate)
            logger.info("Payment of %s by %s from %s", value, user.user_id, account_id)
            return txn.id

    def borrow(
        self, account_id: str, user: UserIdentity, amount: Any, description: str
    ) -> str:
        """Take a loan against the user's own balance.

        Returns:
            Loan ID
        """
        with self._lock:
            value = self._amount(amount)
            self._require_account(account_id)

            credit = balances.user_available_credit(self.store, user.user_id, account_id)
            if value > credit:
                raise self._reject(
                    LimitExceededError(exceeds_credit(credit), ErrorKind.EXCEEDS_CREDIT)
                )
            self._check_account_funds(account_id, value)

            now = self._now()
            loan = LoanEvent(
                id=self._new_id(),
                account_id=account_id,
                user_id=user.user_id,
                user_name=user.name,
                user_avatar=user.avatar,
                amount=value,
                timestamp=now,
            )
            txn = self._transaction(
                account_id, TransactionType.LOAN, user, value, now, description
            )

            def mutate() -> None:
                self.store.append_loan(loan)
                self.store.append_transaction(txn)

            self._apply(loan.id, mutate)
            logger.info("Loan %s of %s to %s from %s", loan.id, value, user.user_id, account_id)
            return loan.id

    def repay(self, loan_id: str, amount: Any) -> LoanEvent:
        """Repay all or part of a loan.

        Partial repayments accumulate in ``repaid_amount`` and reduce the
        outstanding principal; the loan is marked repaid once nothing is
        owed. Each repayment restores its amount to the account as a deposit
        row tagged with the loan id.

        Returns:
            The updated loan
        """
        with self._lock:
            loan = self.store.find_loan(loan_id)
            if loan is None:
                raise self._reject(NotFoundError(loan_not_found(loan_id), ErrorKind.LOAN_NOT_FOUND))
            if loan.repaid:
                raise self._reject(ConflictError(already_repaid(loan_id), ErrorKind.ALREADY_REPAID))
            value = self._amount(amount)
            outstanding = loan.outstanding
            if value > outstanding:
                raise self._reject(
                    LimitExceededError(exceeds_principal(outstanding), ErrorKind.EXCEEDS_PRINCIPAL)
                )

            now = self._now()
            full = value == outstanding
            updated = replace(
                loan,
                repaid=full,
                repaid_amount=(loan.repaid_amount or Decimal("0")) + value,
                repaid_at=now,
            )
            borrower = UserIdentity(loan.user_id, loan.user_name, loan.user_avatar)
            txn = self._transaction(
                loan.account_id, TransactionType.REPAYMENT, borrower, value, now,
                "Full loan repayment" if full else "Partial loan repayment",
            )
            row = self._deposit_row(loan.account_id, borrower, value, now, loan_id=loan.id)

            def mutate() -> None:
                self.store.replace_loan(updated)
                self.store.append_transaction(txn)
                self.store.append_deposit(row)

            self._apply(updated, mutate)
            logger.info("Repayment of %s on loan %s (settled=%s)", value, loan_id, full)
            return updated

    def delete_account(self, account_id: str) -> None:
        """Delete an account and all of its events.

        Raises:
            NotFoundError: If the account does not exist
            DependencyError: If any loan on the account is unrepaid
        """
        with self._lock:
            self._require_account(account_id)
            active = self.store.filter_loans(
                lambda l: l.account_id == account_id and not l.repaid
            )
            if active:
                raise self._reject(
                    DependencyError(
                        account_delete_blocked(account_id, len(active)),
                        ErrorKind.ACTIVE_LOANS_EXIST,
                    )
                )

            removed: list[int] = []
            self._apply(
                None, lambda: removed.append(self.store.remove_account_cascade(account_id))
            )
            logger.info("Deleted account %s (%d rows removed)", account_id, removed[0])

    def _check_account_funds(self, account_id: str, amount: Decimal) -> None:
        available = balances.account_balance(self.store, account_id)
        if amount > available:
            raise self._reject(
                LimitExceededError(
                    insufficient_account_funds(available), ErrorKind.INSUFFICIENT_ACCOUNT_FUNDS
                )
            )

    # Balances
    def account_balance(self, account_id: str) -> Decimal:
        with self._lock:
            return balances.account_balance(self.store, account_id)

    def user_balance(self, user_id: str, account_id: Optional[str] = None) -> Decimal:
        with self._lock:
            return balances.user_balance(self.store, user_id, account_id)

    def user_withdrawable(self, user_id: str, account_id: str) -> Decimal:
        with self._lock:
            return balances.user_withdrawable(self.store, user_id, account_id)

    def user_available_credit(self, user_id: str, account_id: str) -> Decimal:
        with self._lock:
            return balances.user_available_credit(self.store, user_id, account_id)

    # Queries
    def get_account(self, account_id: str) -> Optional[Account]:
        return self.store.find_account(account_id)

    def list_accounts(self) -> list[Account]:
        return list(self.store.accounts)

    def get_loan(self, loan_id: str) -> Optional[LoanEvent]:
        return self.store.find_loan(loan_id)

    def get_user_deposits(self, user_id: str, account_id: Optional[str] = None) -> list[DepositEvent]:
        return self.store.filter_deposits(
            lambda d: d.user_id == user_id and (account_id is None or d.account_id == account_id)
        )

    def get_user_loans(self, user_id: str, account_id: Optional[str] = None) -> list[LoanEvent]:
        return self.store.filter_loans(
            lambda l: l.user_id == user_id and (account_id is None or l.account_id == account_id)
        )

    def get_account_deposits(self, account_id: str) -> list[DepositEvent]:
        self._require_account(account_id)
        return self.store.filter_deposits(lambda d: d.account_id == account_id)

    def get_account_loans(self, account_id: str, active_only: bool = False) -> list[LoanEvent]:
        self._require_account(account_id)
        return self.store.filter_loans(
            lambda l: l.account_id == account_id and not (active_only and l.repaid)
        )

    def get_account_transactions(
        self,
        account_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        type_: Optional[TransactionType] = None,
    ) -> list[TransactionEvent]:
        """List an account's transaction log, oldest first.

        Dates are inclusive and compared against the UTC day of each entry.
        """
        self._require_account(account_id)

        def matches(t: TransactionEvent) -> bool:
            if t.account_id != account_id:
                return False
            day = t.timestamp.astimezone(UTC).date()
            if start_date is not None and day < start_date:
                return False
            if end_date is not None and day > end_date:
                return False
            return type_ is None or t.type == type_

        return self.store.filter_transactions(matches)

    def account_summary(self, account_id: str) -> AccountSummary:
        with self._lock:
            account = self._require_account(account_id)
            return build_account_summary(self.store, account)
