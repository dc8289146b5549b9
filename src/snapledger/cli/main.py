"""Main CLI entry point."""

import click
from snapledger.domain.engine import LedgerEngine
from snapledger.domain.entities import AccountKind, UserIdentity
from snapledger.domain.errors import PersistenceError
from snapledger.logging_config import setup_logging
from snapledger.storage.factories import create_sqlite_store
from snapledger.storage.persistence import LedgerPersistence

# Import and register all commands at module level
from snapledger.cli.commands import account, funds, loan, history


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides SNAPLEDGER_DB_PATH environment variable)",
    envvar="SNAPLEDGER_DB_PATH",
)
@click.option(
    "--kind",
    type=click.Choice([k.value for k in AccountKind]),
    default=AccountKind.POOL.value,
    show_default=True,
    envvar="SNAPLEDGER_KIND",
    help="Which ledger to operate on",
)
@click.option(
    "--user",
    "user_id",
    default="me",
    show_default=True,
    envvar="SNAPLEDGER_USER_ID",
    help="ID of the user issuing commands",
)
@click.option(
    "--name",
    "user_name",
    default=None,
    envvar="SNAPLEDGER_USER_NAME",
    help="Display name of the user (defaults to the user ID)",
)
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    envvar="SNAPLEDGER_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx, db_path: str | None, kind: str, user_id: str, user_name: str | None, log_level: str):
    """snapledger - shared pool and collateral accounts.

    Record deposits, bill payments, loans and repayments for accounts shared
    between contacts, and derive balances and credit limits from the log.
    """
    ctx.ensure_object(dict)
    setup_logging(log_level)

    # Open the ledger only when actually running a command (not when showing help)
    if ctx.invoked_subcommand is not None:
        kv_store = create_sqlite_store(database_path=db_path)
        kv_store.connect()
        ctx.call_on_close(kv_store.disconnect)

        account_kind = AccountKind(kind)
        try:
            engine = LedgerEngine(
                persistence=LedgerPersistence.for_kind(kv_store, account_kind),
                kind=account_kind,
            )
        except PersistenceError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

        ctx.obj["engine"] = engine
        ctx.obj["user"] = UserIdentity(user_id=user_id, name=user_name or user_id)


# Register all commands
account.register_commands(cli)
funds.register_commands(cli)
loan.register_commands(cli)
history.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
