"""Transaction history and summary commands."""

import click
from snapledger.cli.account_resolution import resolve_account_or_exit
from snapledger.domain.entities import TransactionType
from snapledger.utils.date_parser import parse_date


@click.command("history")
@click.argument("account", metavar="ACCOUNT")
@click.option("--start-date", help="Start date (YYYY-MM-DD or e.g. 'last month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or e.g. 'today')")
@click.option(
    "--type",
    "type_",
    type=click.Choice([t.value for t in TransactionType]),
    help="Only show one kind of entry",
)
@click.pass_context
def history(ctx, account: str, start_date: str | None, end_date: str | None, type_: str | None):
    """Show the transaction log of ACCOUNT."""
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine, account)

    start = None
    if start_date:
        try:
            start = parse_date(start_date)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    end = None
    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    transactions = engine.get_account_transactions(
        account_id,
        start_date=start,
        end_date=end,
        type_=TransactionType(type_) if type_ else None,
    )
    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 90)
    for t in transactions:
        line = (
            f"{t.timestamp:%Y-%m-%d %H:%M} | {t.type.value:10s} | {t.user_name[:15]:15s} | "
            f"{t.amount:>10.2f} | {t.description}"
        )
        if t.bill_reference:
            line += f" [{t.bill_reference}]"
        click.echo(line)


@click.command("summary")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def summary(ctx, account: str):
    """Summarize ACCOUNT by entry type and member."""
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    report = engine.account_summary(account_id)

    click.echo(f"\n{report.account.name}: balance {report.balance:.2f}")
    click.echo("=" * 60)
    for type_ in TransactionType:
        count = report.counts_by_type[type_]
        if count:
            click.echo(f"{type_.value:12s} {count:4d} entries  {report.totals_by_type[type_]:>12.2f}")
    click.echo(f"Active loans: {report.active_loan_count}")

    if report.members:
        click.echo(f"\n{'Member':15s} | {'Contributed':>11s} | {'Borrowed':>9s} | {'Credit':>9s}")
        click.echo("-" * 60)
        for m in report.members:
            click.echo(
                f"{m.user_name[:15]:15s} | {m.contributed:>11.2f} | "
                f"{m.outstanding_loans:>9.2f} | {m.available_credit:>9.2f}"
            )


def register_commands(cli):
    """Register history commands with main CLI."""
    cli.add_command(history)
    cli.add_command(summary)
