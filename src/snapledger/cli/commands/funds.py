"""Deposit, withdrawal, payment and balance commands."""

import click
from snapledger.cli.account_resolution import parse_amount_or_exit, resolve_account_or_exit
from snapledger.cli.error_handling import handle_domain_error
from snapledger.domain.errors import DomainError


@click.command("deposit")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount")
@click.option("--wallet", help="Wallet address the funds came from")
@click.pass_context
def deposit(ctx, account: str, amount: str, wallet: str | None):
    """Deposit AMOUNT into ACCOUNT.

    Examples:
        snapledger deposit "Trip" 100
        snapledger --user alice deposit "Trip" "25 USDC" --wallet 7Hk...
    """
    engine = ctx.obj["engine"]
    user = ctx.obj["user"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    value = parse_amount_or_exit(ctx, amount)

    try:
        engine.deposit(account_id, user, wallet, value)
        click.echo(f"Deposited {value:.2f} into '{engine.get_account(account_id).name}'")
    except DomainError as e:
        handle_domain_error(ctx, e)


@click.command("withdraw")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount")
@click.pass_context
def withdraw(ctx, account: str, amount: str):
    """Withdraw AMOUNT of your own unpledged funds from ACCOUNT."""
    engine = ctx.obj["engine"]
    user = ctx.obj["user"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    value = parse_amount_or_exit(ctx, amount)

    try:
        engine.withdraw(account_id, user, value)
        click.echo(f"Withdrew {value:.2f} from '{engine.get_account(account_id).name}'")
    except DomainError as e:
        handle_domain_error(ctx, e)


@click.command("pay")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount")
@click.option("--description", "-d", required=True, help="What the payment is for")
@click.option("--bill-ref", help="Reference of the scanned bill")
@click.pass_context
def pay(ctx, account: str, amount: str, description: str, bill_ref: str | None):
    """Pay a bill of AMOUNT out of your share of ACCOUNT.

    Examples:
        snapledger pay "Trip" 42.50 -d "Dinner at Luigi's" --bill-ref bill-17
    """
    engine = ctx.obj["engine"]
    user = ctx.obj["user"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    value = parse_amount_or_exit(ctx, amount)

    try:
        engine.pay(account_id, user, value, description, bill_reference=bill_ref)
        click.echo(f"Paid {value:.2f} from '{engine.get_account(account_id).name}': {description}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@click.command("balance")
@click.argument("account", metavar="ACCOUNT")
@click.option("--user", "user_id", help="User to report on (defaults to the current user)")
@click.pass_context
def balance(ctx, account: str, user_id: str | None):
    """Show account and user balances for ACCOUNT."""
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    user_id = user_id or ctx.obj["user"].user_id

    click.echo(f"Account balance:   {engine.account_balance(account_id):.2f}")
    click.echo(f"Your balance:      {engine.user_balance(user_id, account_id):.2f}")
    withdrawable = max(engine.user_withdrawable(user_id, account_id), 0)
    click.echo(f"Withdrawable:      {withdrawable:.2f}")
    click.echo(f"Available credit:  {engine.user_available_credit(user_id, account_id):.2f}")


def register_commands(cli):
    """Register funds commands with main CLI."""
    cli.add_command(deposit)
    cli.add_command(withdraw)
    cli.add_command(pay)
    cli.add_command(balance)
