"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

# Currency markers users tend to type next to an amount
_CURRENCY_SYMBOLS = re.compile(r"[$€£¥]")
_CURRENCY_CODES = re.compile(r"\s*(usdc|sol)$", re.IGNORECASE)


def parse_amount(amount_str: str) -> Decimal:
    """Parse a user-entered amount into a Decimal.

    Handles forms such as:
    - "123.45"
    - "$1,234.56"
    - "25 USDC"
    - "0.5 SOL"

    The ledger only moves positive amounts, so signs and the accounting
    "(123.45)" notation are rejected rather than negated.

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    cleaned = _CURRENCY_CODES.sub("", amount_str.strip())
    cleaned = _CURRENCY_SYMBOLS.sub("", cleaned).replace(",", "").strip()

    if cleaned.startswith(("-", "(")):
        raise ValueError(f"Amount must be positive: '{amount_str}'")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return amount
