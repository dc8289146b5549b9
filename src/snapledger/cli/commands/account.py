"""Account management commands."""

import click
from snapledger.cli.account_resolution import resolve_account_or_exit
from snapledger.cli.error_handling import handle_domain_error
from snapledger.domain.entities import UserIdentity
from snapledger.domain.errors import DomainError


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--description", help="Optional free-text description")
@click.option("--avatar", default="", help="Owner avatar URL")
@click.pass_context
def create_account(ctx, name: str, description: str | None, avatar: str):
    """Create a new account owned by the current user.

    Examples:
        snapledger account create "Trip"
        snapledger --kind collateral account create "Rent" --description "Flat deposit"
    """
    engine = ctx.obj["engine"]
    user = ctx.obj["user"]
    owner = UserIdentity(user_id=user.user_id, name=user.name, avatar=avatar)

    try:
        account_id = engine.create_account(name=name, owner=owner, description=description)
        click.echo(f"Created account '{name.strip()}' (ID: {account_id})")
    except DomainError as e:
        handle_domain_error(ctx, e)


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List all accounts with their balances."""
    engine = ctx.obj["engine"]

    accounts = engine.list_accounts()
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 80)
    for acc in accounts:
        balance = engine.account_balance(acc.id)
        click.echo(f"{acc.id[:8]} | {acc.name:20s} | Owner: {acc.owner_name:12s} | {balance:>12.2f}")


@account_group.command("show")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def show_account(ctx, account: str):
    """Show account details.

    ACCOUNT can be an account name, ID or ID prefix.
    """
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    acc = engine.get_account(account_id)

    click.echo(f"Account:     {acc.name}")
    click.echo(f"ID:          {acc.id}")
    click.echo(f"Owner:       {acc.owner_name} ({acc.owner_id})")
    click.echo(f"Created:     {acc.created_at:%Y-%m-%d %H:%M}")
    if acc.description:
        click.echo(f"Description: {acc.description}")
    if acc.is_provisioned:
        click.echo(f"Address:     {acc.external_address}")
        click.echo(f"Secondary:   {acc.secondary_address}")
    click.echo(f"Balance:     {engine.account_balance(account_id):.2f}")


@account_group.command("attach-address")
@click.argument("account", metavar="ACCOUNT")
@click.argument("address")
@click.argument("secondary_address", metavar="SECONDARY_ADDRESS")
@click.pass_context
def attach_address(ctx, account: str, address: str, secondary_address: str):
    """Record the settlement addresses of an account.

    Attaching again replaces the previous addresses.

    Examples:
        snapledger account attach-address "Trip" 9xQe...pool 4kTa...token
    """
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine, account)

    try:
        updated = engine.attach_external_address(account_id, address, secondary_address)
        click.echo(f"Attached address {updated.external_address} to account '{updated.name}'")
    except DomainError as e:
        handle_domain_error(ctx, e)


@account_group.command("delete")
@click.argument("account", metavar="ACCOUNT")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_account(ctx, account: str, yes: bool) -> None:
    """Delete an account and its whole history.

    ACCOUNT can be an account name, ID or ID prefix.

    The account can only be deleted once every loan taken from it has been
    repaid in full.

    Examples:
        snapledger account delete "Trip"
    """
    engine = ctx.obj["engine"]
    account_id = resolve_account_or_exit(ctx, engine, account)
    account_obj = engine.get_account(account_id)

    if not yes and not click.confirm(
        f"Are you sure you want to delete account '{account_obj.name}' (ID: {account_id})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        engine.delete_account(account_id)
        click.echo(f"Deleted account '{account_obj.name}'")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
