"""Utility functions for snapledger."""

from snapledger.utils.date_parser import parse_date
from snapledger.utils.amount_parser import parse_amount
from snapledger.utils.account_resolver import resolve_account

__all__ = ["parse_date", "parse_amount", "resolve_account"]
