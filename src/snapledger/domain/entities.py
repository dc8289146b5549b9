"""Domain model entities for snapledger.

These are pure data classes representing ledger concepts, independent of the
storage format. The persistence layer converts them to and from JSON through
the mappers in ``snapledger.storage.mappers``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class AccountKind(str, Enum):
    """Kind of account an engine instance manages."""

    POOL = "pool"
    COLLATERAL = "collateral"


class TransactionType(str, Enum):
    """Audit log entry type."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    PAYMENT = "payment"
    LOAN = "loan"
    REPAYMENT = "repayment"


@dataclass(frozen=True)
class UserIdentity:
    """The user on whose behalf a command runs."""

    user_id: str
    name: str = ""
    avatar: str = ""


@dataclass(frozen=True)
class Account:
    """Named bucket of pooled or collateralized funds."""

    id: str
    name: str
    created_at: datetime
    owner_id: str
    owner_name: str
    owner_avatar: str
    description: Optional[str] = None
    external_address: Optional[str] = None
    secondary_address: Optional[str] = None

    @property
    def is_provisioned(self) -> bool:
        """Whether the account has an external settlement address."""
        return self.external_address is not None


@dataclass(frozen=True)
class DepositEvent:
    """Signed movement into (+) or out of (-) an account's contributed funds.

    Rows with ``loan_id`` set restore capital returned by a loan repayment.
    They record where the money came from; balances read repaid principal
    from the loan and count these rows toward neither the account balance
    nor the user's contribution.
    """

    id: str
    account_id: str
    user_id: str
    user_name: str
    user_avatar: str
    amount: Decimal
    timestamp: datetime
    external_address: Optional[str] = None
    loan_id: Optional[str] = None

    @property
    def is_restore(self) -> bool:
        return self.loan_id is not None


@dataclass(frozen=True)
class LoanEvent:
    """A user borrowing against their own net contribution."""

    id: str
    account_id: str
    user_id: str
    user_name: str
    user_avatar: str
    amount: Decimal
    timestamp: datetime
    repaid: bool = False
    repaid_amount: Optional[Decimal] = None
    repaid_at: Optional[datetime] = None

    @property
    def outstanding(self) -> Decimal:
        """Principal still owed."""
        if self.repaid:
            return Decimal("0")
        return self.amount - (self.repaid_amount or Decimal("0"))


@dataclass(frozen=True)
class TransactionEvent:
    """Audit log entry; never read by the balance calculator."""

    id: str
    account_id: str
    type: TransactionType
    user_id: str
    user_name: str
    user_avatar: str
    amount: Decimal
    timestamp: datetime
    description: str
    bill_reference: Optional[str] = None


@dataclass(frozen=True)
class MemberPosition:
    """A single user's standing within one account."""

    user_id: str
    user_name: str
    contributed: Decimal
    outstanding_loans: Decimal
    available_credit: Decimal
    withdrawable: Decimal


@dataclass(frozen=True)
class AccountSummary:
    """Summary report for one account."""

    account: Account
    balance: Decimal
    totals_by_type: dict[TransactionType, Decimal] = field(default_factory=dict)
    counts_by_type: dict[TransactionType, int] = field(default_factory=dict)
    members: tuple[MemberPosition, ...] = ()
    active_loan_count: int = 0
