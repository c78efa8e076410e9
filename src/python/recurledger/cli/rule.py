"""Recurring rule CLI commands."""

from __future__ import annotations

from typing import Callable

import click

from recurledger.cli.common import (
    format_overview,
    get_client,
    parse_date,
    parse_decimal,
    resolve_owner,
)
from recurledger.exceptions import NotFoundError, ValidationError
from recurledger.models import ApplyScope, Direction, RecurringKind, RecurringRuleDTO, ToggleActiveDTO
from recurledger.schema import END_TYPES


def rule_options(func: Callable) -> Callable:
    """Attach the rule definition options shared by create and update."""
    options = [
        click.option("--name", required=True, help="Rule name."),
        click.option(
            "--kind",
            type=click.Choice([kind.value for kind in RecurringKind], case_sensitive=False),
            default=RecurringKind.OTHER.value,
            show_default=True,
            help="Rule kind.",
        ),
        click.option(
            "--direction",
            type=click.Choice([item.value for item in Direction], case_sensitive=False),
            required=True,
            help="INCOME or EXPENSE.",
        ),
        click.option("--amount", "amount_value", default=None, help="Fixed amount."),
        click.option("--variable-amount", is_flag=True, help="Amount varies each period."),
        click.option("--day", "day_of_month", type=int, default=None, help="Day of month (1-31)."),
        click.option("--variable-date", is_flag=True, help="Date varies each period."),
        click.option("--start-date", "start_value", required=True, help="Start date in YYYY-MM-DD."),
        click.option(
            "--end-type",
            type=click.Choice(list(END_TYPES), case_sensitive=False),
            default=END_TYPES[1],
            show_default=True,
            help="FIXED_TERM or OPEN_ENDED.",
        ),
        click.option("--total", "total_occurrences", type=int, default=None, help="Occurrences for FIXED_TERM rules."),
        click.option("--category", "category_key", type=int, default=None, help="Category key."),
        click.option("--currency", default=None, help="Currency code."),
        click.option("--note", default=None, help="Note copied onto generated entries."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_rule(
    *,
    name: str,
    kind: str,
    direction: str,
    amount_value: str | None,
    variable_amount: bool,
    day_of_month: int | None,
    variable_date: bool,
    start_value: str,
    end_type: str,
    total_occurrences: int | None,
    category_key: int | None,
    currency: str | None,
    note: str | None,
    is_active: bool | None = None,
) -> RecurringRuleDTO:
    try:
        return RecurringRuleDTO.from_fields(
            name=name,
            kind=kind,
            direction=direction,
            start_date=parse_date(start_value, "--start-date"),
            end_type=end_type,
            total_occurrences=total_occurrences,
            amount_default=parse_decimal(amount_value, "--amount"),
            amount_is_variable=variable_amount,
            day_of_month=day_of_month,
            date_is_variable=variable_date,
            category_key=category_key,
            currency=currency,
            note=note,
            is_active=is_active,
        )
    except ValidationError as e:
        details = "; ".join(f"{field}: {reason}" for field, reason in e.details.items())
        raise click.ClickException(f"{e} ({details})" if details else str(e))


@click.group()
def rule() -> None:
    """Recurring rule commands."""


@rule.command("create")
@rule_options
@click.pass_context
def create_rule(ctx: click.Context, **fields) -> None:
    """Create a recurring rule.

    Examples:
        recurledger rule create --name Rent --direction EXPENSE --amount 500 \\
            --day 1 --start-date 2024-01-01
    """
    with get_client(ctx) as client:
        dto = _build_rule(**fields)
        try:
            overview = client.create_rule(resolve_owner(ctx, client), dto)
        except NotFoundError as e:
            raise click.ClickException(str(e))
    click.echo(f"Created rule {overview.rule.key}")


@rule.command("update")
@click.argument("key", type=int)
@rule_options
@click.option(
    "--scope",
    type=click.Choice([scope.value for scope in ApplyScope], case_sensitive=False),
    default=ApplyScope.FUTURE_ONLY.value,
    show_default=True,
    help="Which generated entries receive the change.",
)
@click.option(
    "--status",
    type=click.Choice(["active", "inactive"], case_sensitive=False),
    default=None,
    help="Patch the active flag in the same update.",
)
@click.pass_context
def update_rule(ctx: click.Context, key: int, scope: str, status: str | None, **fields) -> None:
    """Replace a recurring rule and propagate the change."""
    is_active = None if status is None else status.lower() == "active"
    with get_client(ctx) as client:
        dto = _build_rule(is_active=is_active, **fields)
        try:
            overview = client.update_rule(
                resolve_owner(ctx, client), key, dto, scope=scope.upper()
            )
        except NotFoundError as e:
            raise click.ClickException(str(e))
    click.echo(f"Updated rule {overview.rule.key}")


@rule.command("toggle")
@click.argument("key", type=int)
@click.option("--active/--inactive", "is_active", required=True, help="New active state.")
@click.option(
    "--delete-future",
    is_flag=True,
    help="When deactivating, delete unedited entries scheduled from today on.",
)
@click.pass_context
def toggle_rule(ctx: click.Context, key: int, is_active: bool, delete_future: bool) -> None:
    """Activate or deactivate a recurring rule."""
    request = ToggleActiveDTO(is_active=is_active, delete_future_generated=delete_future)
    with get_client(ctx) as client:
        try:
            overview = client.toggle_active(resolve_owner(ctx, client), key, request)
        except NotFoundError as e:
            raise click.ClickException(str(e))
    state = "active" if overview.rule.is_active else "inactive"
    click.echo(f"Rule {overview.rule.key} is now {state}")


@rule.command("delete")
@click.argument("key", type=int)
@click.option(
    "--delete-future",
    is_flag=True,
    help="Delete unedited entries scheduled from today on.",
)
@click.pass_context
def delete_rule(ctx: click.Context, key: int, delete_future: bool) -> None:
    """Deactivate a recurring rule; rules are never physically removed."""
    with get_client(ctx) as client:
        try:
            client.delete_rule(resolve_owner(ctx, client), key, delete_future)
        except NotFoundError as e:
            raise click.ClickException(str(e))
    click.echo(f"Deleted rule {key}")


@rule.command("list")
@click.pass_context
def list_rules(ctx: click.Context) -> None:
    """List recurring rules, newest first."""
    with get_client(ctx) as client:
        overviews = client.list_rules(resolve_owner(ctx, client))
    if not overviews:
        click.echo("No recurring rules found.")
        return
    for overview in overviews:
        click.echo(format_overview(overview))


@rule.command("show")
@click.argument("key", type=int)
@click.pass_context
def show_rule(ctx: click.Context, key: int) -> None:
    """Show a recurring rule with its computed fields."""
    with get_client(ctx) as client:
        try:
            overview = client.get_rule(resolve_owner(ctx, client), key)
        except NotFoundError as e:
            raise click.ClickException(str(e))
    click.echo(format_overview(overview))
    if overview.progress_percent is not None:
        click.echo(f"Progress: {overview.progress} ({overview.progress_percent}%)")


@rule.command("instances")
@click.argument("key", type=int)
@click.option("--from", "from_value", default=None, help="Only instances on or after YYYY-MM-DD.")
@click.pass_context
def list_instances(ctx: click.Context, key: int, from_value: str | None) -> None:
    """List entries generated from a recurring rule."""
    upcoming_from = parse_date(from_value, "--from")
    with get_client(ctx) as client:
        try:
            instances = client.list_instances_for_rule(
                resolve_owner(ctx, client), key, upcoming_from=upcoming_from
            )
        except NotFoundError as e:
            raise click.ClickException(str(e))
    if not instances:
        click.echo("No instances found.")
        return
    for instance in instances:
        index = instance.occurrence_index if instance.occurrence_index is not None else "-"
        override = "override" if instance.is_manual_override else ""
        click.echo(
            f"{instance.key}\t{instance.scheduled_for.isoformat()}\tentry={instance.entry_key}"
            f"\t#{index}\t{override}".rstrip()
        )
