"""CLI helpers for account and amount resolution."""

from __future__ import annotations

from decimal import Decimal

import click
from snapledger.domain.engine import LedgerEngine
from snapledger.utils.account_resolver import resolve_account
from snapledger.utils.amount_parser import parse_amount


def resolve_account_or_exit(ctx: click.Context, engine: LedgerEngine, account: str) -> str:
    """Resolve account name, ID or ID prefix, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_account(engine, account)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)


def parse_amount_or_exit(ctx: click.Context, amount: str) -> Decimal:
    """Parse a user-entered amount, or exit with a CLI error."""
    try:
        return parse_amount(amount)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
