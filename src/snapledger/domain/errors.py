"""Shared domain error messages and error types."""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Typed failure reasons reported by the ledger."""

    INVALID_AMOUNT = "InvalidAmount"
    EMPTY_NAME = "EmptyName"
    INVALID_ADDRESS = "InvalidAddress"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    LOAN_NOT_FOUND = "LoanNotFound"
    EXCEEDS_WITHDRAWABLE = "ExceedsWithdrawable"
    INSUFFICIENT_USER_BALANCE = "InsufficientUserBalance"
    INSUFFICIENT_ACCOUNT_FUNDS = "InsufficientAccountFunds"
    EXCEEDS_CREDIT = "ExceedsCredit"
    EXCEEDS_PRINCIPAL = "ExceedsPrincipal"
    ALREADY_REPAID = "AlreadyRepaid"
    ACTIVE_LOANS_EXIST = "ActiveLoansExist"
    PERSISTENCE_WRITE_FAILED = "PersistenceWriteFailed"
    PERSISTENCE_READ_FAILED = "PersistenceReadFailed"


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling. ``kind`` names the exact
    failure reason.
    """

    def __init__(self, message: str, kind: ErrorKind):
        super().__init__(message)
        self.kind = kind


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class LimitExceededError(DomainError):
    """Requested amount is larger than the ledger allows."""


class ConflictError(DomainError):
    """Domain conflict, such as acting on a settled loan."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class PersistenceError(DomainError):
    """Reading or writing the backing store failed.

    On writes the in-memory mutation has already been applied; ``result``
    holds what the command would have returned.
    """

    def __init__(self, message: str, kind: ErrorKind, result: Optional[Any] = None):
        super().__init__(message, kind)
        self.result = result


def _fmt(amount: Decimal) -> str:
    return f"{amount:.2f}"


def invalid_amount(amount: Any) -> str:
    """Return message for a non-positive or non-numeric amount."""
    return f"Amount must be a number greater than 0 (got {amount!r})"


def empty_name() -> str:
    """Return message for a blank account name."""
    return "Account name is required"


def invalid_address() -> str:
    """Return message for a blank external address."""
    return "External address and secondary address must not be empty"


def account_not_found(account_id: str) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def loan_not_found(loan_id: str) -> str:
    """Return message for missing loan."""
    return f"Loan {loan_id} not found"


def exceeds_withdrawable(withdrawable: Decimal) -> str:
    """Return message when a withdrawal is larger than the user's free capital."""
    return (
        f"Cannot withdraw more than {_fmt(max(withdrawable, Decimal('0')))}. "
        "Active loans are secured by your deposit."
    )


def insufficient_user_balance(available: Decimal) -> str:
    """Return message when a payment is larger than the user's balance."""
    return f"Insufficient funds: you have {_fmt(available)} available"


def insufficient_account_funds(balance: Decimal) -> str:
    """Return message when the account cannot cover the amount."""
    return f"Insufficient account balance. Available: {_fmt(balance)}"


def exceeds_credit(available_credit: Decimal) -> str:
    """Return message when a loan is larger than the user's available credit."""
    return (
        f"Loan amount exceeds your available credit of {_fmt(available_credit)}. "
        "You can borrow up to 100% of your deposit."
    )


def exceeds_principal(outstanding: Decimal) -> str:
    """Return message when a repayment is larger than what is owed."""
    return f"Repayment amount cannot exceed the outstanding loan amount of {_fmt(outstanding)}"


def already_repaid(loan_id: str) -> str:
    """Return message for a repayment against a settled loan."""
    return f"Loan {loan_id} has already been repaid"


def account_delete_blocked(account_id: str, active_loan_count: int) -> str:
    """Return message when account has unrepaid loans."""
    return (
        f"Cannot delete account {account_id}: it has {active_loan_count} "
        f"active loan{'s' if active_loan_count != 1 else ''}. "
        "Please repay them first."
    )
