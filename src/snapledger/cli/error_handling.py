"""CLI error handling helpers."""

import click

from snapledger.domain.errors import DomainError, PersistenceError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    if isinstance(error, PersistenceError) and error.result is not None:
        click.echo(f"Error: {error}", err=True)
        click.echo("The change was applied for this session but was not saved.", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
