"""Category CLI commands."""

from __future__ import annotations

import click

from recurledger.cli.common import get_client, resolve_owner


@click.group()
def category() -> None:
    """Category commands."""


@category.command("add")
@click.argument("name")
@click.pass_context
def add_category(ctx: click.Context, name: str) -> None:
    """Add a category."""
    with get_client(ctx) as client:
        try:
            record = client.add_category(resolve_owner(ctx, client), name)
        except ValueError as e:
            raise click.ClickException(str(e))
    click.echo(f"Added category {record.key}")


@category.command("list")
@click.pass_context
def list_categories(ctx: click.Context) -> None:
    """List categories of the owner.

    Examples:
        recurledger category list
    """
    with get_client(ctx) as client:
        categories = client.list_categories(resolve_owner(ctx, client))

    if not categories:
        click.echo("No categories found.")
        return

    click.echo("\nCategories:")
    click.echo("-" * 60)
    click.echo(f"{'Key':<6} {'Name':<50}")
    click.echo("-" * 60)
    for record in categories:
        click.echo(f"{record.key:<6} {record.name:<50}")
    click.echo("-" * 60)
