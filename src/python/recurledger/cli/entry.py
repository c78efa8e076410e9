"""Entry CLI commands."""

from __future__ import annotations

import click

from recurledger.cli.common import get_client, parse_date, parse_decimal, resolve_owner
from recurledger.exceptions import NotFoundError


@click.group()
def entry() -> None:
    """Ledger entry commands."""


@entry.command("edit")
@click.argument("key", type=int)
@click.option("--amount", "amount_value", default=None, help="New amount.")
@click.option("--date", "date_value", default=None, help="New date in YYYY-MM-DD.")
@click.option("--note", default=None, help="New note.")
@click.pass_context
def edit_entry(
    ctx: click.Context,
    key: int,
    amount_value: str | None,
    date_value: str | None,
    note: str | None,
) -> None:
    """Edit an entry.

    Editing an entry generated by a recurring rule protects it from later
    rule changes.
    """
    amount = parse_decimal(amount_value, "--amount")
    date = parse_date(date_value, "--date")
    with get_client(ctx) as client:
        try:
            record = client.edit_entry(
                resolve_owner(ctx, client),
                key,
                amount=amount,
                date=date,
                note=note,
            )
        except NotFoundError as e:
            raise click.ClickException(str(e))
        except ValueError as e:
            raise click.ClickException(str(e))
    click.echo(f"Updated entry {record.key}")
