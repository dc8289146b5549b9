"""Loan commands."""

import click
from snapledger.cli.account_resolution import parse_amount_or_exit, resolve_account_or_exit
from snapledger.cli.error_handling import handle_domain_error
from snapledger.domain.errors import DomainError


@click.group()
def loan_group():
    """Borrow against your balance and repay loans."""
    pass


@loan_group.command("take")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount")
@click.option("--description", "-d", default="Loan", show_default=True, help="Loan purpose")
@click.pass_context
def take_loan(ctx, account: str, amount: str, description: str):
    """Borrow AMOUNT from ACCOUNT.

    You can borrow up to 100% of your own balance in the account, less any
    loans you have not repaid yet.
    """
    engine = ctx.obj["engine"]
    user = ctx.obj["user"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    value = parse_amount_or_exit(ctx, amount)

    try:
        loan_id = engine.borrow(account_id, user, value, description)
        click.echo(f"Loan of {value:.2f} approved (ID: {loan_id})")
    except DomainError as e:
        handle_domain_error(ctx, e)


@loan_group.command("repay")
@click.argument("loan_id", metavar="LOAN_ID")
@click.argument("amount")
@click.pass_context
def repay_loan(ctx, loan_id: str, amount: str):
    """Repay AMOUNT of loan LOAN_ID (full ID or unique prefix)."""
    engine = ctx.obj["engine"]
    value = parse_amount_or_exit(ctx, amount)

    if engine.get_loan(loan_id) is None:
        matches = [l for acc in engine.list_accounts() for l in engine.get_account_loans(acc.id)
                   if l.id.startswith(loan_id)]
        if len(matches) == 1:
            loan_id = matches[0].id

    try:
        loan = engine.repay(loan_id, value)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if loan.repaid:
        click.echo(f"Loan {loan.id[:8]} fully repaid")
    else:
        click.echo(f"Repaid {value:.2f}; {loan.outstanding:.2f} still outstanding on loan {loan.id[:8]}")


@loan_group.command("list")
@click.argument("account", metavar="ACCOUNT")
@click.option("--active", is_flag=True, help="Only show loans that are not fully repaid")
@click.pass_context
def list_loans(ctx, account: str, active: bool):
    """List loans taken from ACCOUNT."""
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine, account)

    loans = engine.get_account_loans(account_id, active_only=active)
    if not loans:
        click.echo("No loans found.")
        return

    click.echo(f"\n{'ID':8s} | {'Borrower':15s} | {'Principal':>10s} | {'Outstanding':>11s} | Status")
    click.echo("-" * 70)
    for l in loans:
        status = "repaid" if l.repaid else ("partial" if l.repaid_amount else "active")
        click.echo(
            f"{l.id[:8]} | {l.user_name[:15]:15s} | {l.amount:>10.2f} | {l.outstanding:>11.2f} | {status}"
        )


def register_commands(cli):
    """Register loan commands with main CLI."""
    cli.add_command(loan_group, name="loan")
