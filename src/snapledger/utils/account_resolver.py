"""Utility for resolving account names to IDs."""

from snapledger.domain.engine import LedgerEngine


def resolve_account(engine: LedgerEngine, account: str) -> str:
    """Resolve an account reference to an account ID.

    The reference may be a full account ID, an unambiguous ID prefix, or an
    exact account name.

    Args:
        engine: LedgerEngine instance
        account: Account ID, ID prefix or name

    Returns:
        Account ID

    Raises:
        ValueError: If the account is not found or the reference is ambiguous
    """
    account = account.strip()
    if engine.get_account(account) is not None:
        return account

    accounts = engine.list_accounts()

    by_name = [acc for acc in accounts if acc.name == account]
    if len(by_name) == 1:
        return by_name[0].id
    if len(by_name) > 1:
        raise ValueError(f"Account name '{account}' is ambiguous; use the account ID")

    by_prefix = [acc for acc in accounts if acc.id.startswith(account)] if account else []
    if len(by_prefix) == 1:
        return by_prefix[0].id
    if len(by_prefix) > 1:
        raise ValueError(f"Account ID prefix '{account}' matches {len(by_prefix)} accounts")

    raise ValueError(f"Account '{account}' not found")
