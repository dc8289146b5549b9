"""Mapper functions to convert between domain entities and JSON records.

Records use camelCase field names, decimal strings for money and epoch
milliseconds for timestamps. The readers also accept the field names of
earlier layouts (``poolId``, ``collateralId``, ``walletAddress``,
``solanaAddress``, ``tokenAccount``, ``repaidTimestamp``) and plain numbers for
amounts.
"""

from datetime import datetime, timedelta, UTC
from decimal import Decimal
from typing import Any, Optional

from snapledger.domain import entities as domain

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

Record = dict[str, Any]


def to_millis(value: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_millis(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=int(value))


def _money(value: Any) -> Decimal:
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _optional_money(value: Any) -> Optional[Decimal]:
    return None if value is None else _money(value)


def _first(record: Record, *names: str) -> Any:
    for name in names:
        if record.get(name) not in (None, ""):
            return record[name]
    return None


def _account_id(record: Record) -> str:
    account_id = _first(record, "accountId", "poolId", "collateralId")
    if account_id is None:
        raise KeyError("accountId")
    return account_id


def account_to_record(account: domain.Account) -> Record:
    """Convert domain Account entity to a JSON record."""
    return {
        "id": account.id,
        "name": account.name,
        "createdAt": to_millis(account.created_at),
        "ownerId": account.owner_id,
        "ownerName": account.owner_name,
        "ownerAvatar": account.owner_avatar,
        "description": account.description,
        "externalAddress": account.external_address,
        "secondaryAddress": account.secondary_address,
    }


def account_from_record(record: Record) -> domain.Account:
    """Convert a JSON record to domain Account entity."""
    return domain.Account(
        id=record["id"],
        name=record["name"],
        created_at=from_millis(record["createdAt"]),
        owner_id=record.get("ownerId", ""),
        owner_name=record.get("ownerName", ""),
        owner_avatar=record.get("ownerAvatar", ""),
        description=record.get("description"),
        external_address=_first(record, "externalAddress", "solanaAddress"),
        secondary_address=_first(record, "secondaryAddress", "tokenAccount"),
    )


def deposit_to_record(deposit: domain.DepositEvent) -> Record:
    """Convert domain DepositEvent entity to a JSON record."""
    return {
        "id": deposit.id,
        "accountId": deposit.account_id,
        "userId": deposit.user_id,
        "userName": deposit.user_name,
        "userAvatar": deposit.user_avatar,
        "externalAddress": deposit.external_address,
        "amount": str(deposit.amount),
        "timestamp": to_millis(deposit.timestamp),
        "loanId": deposit.loan_id,
    }


def deposit_from_record(record: Record) -> domain.DepositEvent:
    """Convert a JSON record to domain DepositEvent entity."""
    return domain.DepositEvent(
        id=record["id"],
        account_id=_account_id(record),
        user_id=record["userId"],
        user_name=record.get("userName", ""),
        user_avatar=record.get("userAvatar", ""),
        amount=_money(record["amount"]),
        timestamp=from_millis(record["timestamp"]),
        external_address=_first(record, "externalAddress", "walletAddress"),
        loan_id=record.get("loanId"),
    )


def loan_to_record(loan: domain.LoanEvent) -> Record:
    """Convert domain LoanEvent entity to a JSON record."""
    return {
        "id": loan.id,
        "accountId": loan.account_id,
        "userId": loan.user_id,
        "userName": loan.user_name,
        "userAvatar": loan.user_avatar,
        "amount": str(loan.amount),
        "timestamp": to_millis(loan.timestamp),
        "repaid": loan.repaid,
        "repaidAmount": None if loan.repaid_amount is None else str(loan.repaid_amount),
        "repaidAt": None if loan.repaid_at is None else to_millis(loan.repaid_at),
    }


def loan_from_record(record: Record) -> domain.LoanEvent:
    """Convert a JSON record to domain LoanEvent entity."""
    repaid_at = _first(record, "repaidAt", "repaidTimestamp")
    return domain.LoanEvent(
        id=record["id"],
        account_id=_account_id(record),
        user_id=record["userId"],
        user_name=record.get("userName", ""),
        user_avatar=record.get("userAvatar", ""),
        amount=_money(record["amount"]),
        timestamp=from_millis(record["timestamp"]),
        repaid=bool(record.get("repaid", False)),
        repaid_amount=_optional_money(record.get("repaidAmount")),
        repaid_at=None if repaid_at is None else from_millis(repaid_at),
    )


def transaction_to_record(transaction: domain.TransactionEvent) -> Record:
    """Convert domain TransactionEvent entity to a JSON record."""
    return {
        "id": transaction.id,
        "accountId": transaction.account_id,
        "type": transaction.type.value,
        "userId": transaction.user_id,
        "userName": transaction.user_name,
        "userAvatar": transaction.user_avatar,
        "amount": str(transaction.amount),
        "timestamp": to_millis(transaction.timestamp),
        "description": transaction.description,
        "billReference": transaction.bill_reference,
    }


def transaction_from_record(record: Record) -> domain.TransactionEvent:
    """Convert a JSON record to domain TransactionEvent entity."""
    return domain.TransactionEvent(
        id=record["id"],
        account_id=_account_id(record),
        type=domain.TransactionType(record["type"]),
        user_id=record["userId"],
        user_name=record.get("userName", ""),
        user_avatar=record.get("userAvatar", ""),
        amount=_money(record["amount"]),
        timestamp=from_millis(record["timestamp"]),
        description=record.get("description", ""),
        bill_reference=record.get("billReference"),
    )
