"""Sync CLI command."""

from __future__ import annotations

import click

from recurledger.cli.common import get_client, parse_date, resolve_owner


@click.command()
@click.option("--today", "today_value", default=None, help="Reference date in YYYY-MM-DD.")
@click.pass_context
def sync(ctx: click.Context, today_value: str | None) -> None:
    """Generate due entries for all active recurring rules.

    Safe to run repeatedly: occurrences already generated are never duplicated.

    Examples:
        recurledger sync
        recurledger sync --today 2024-03-15
    """
    today = parse_date(today_value, "--today")
    with get_client(ctx) as client:
        result = client.sync_transactions(resolve_owner(ctx, client), today=today)

    click.echo("\nSync completed")
    click.echo(f"  Created: {result.transactions_created}")
    click.echo(f"  Rules processed: {result.rules_processed}")
    click.echo(f"  Rules skipped: {result.rules_skipped}")
    for detail in result.details:
        line = f"  [{detail.rule_key}] {detail.rule_name}: {detail.transactions_created}"
        if detail.message:
            line += f" ({detail.message})"
        click.echo(line)
