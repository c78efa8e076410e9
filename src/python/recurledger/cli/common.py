"""Shared CLI helpers."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import click

from recurledger.client import RecurringRuleClient
from recurledger.models import RuleOverview


def parse_date(value: str | None, field_name: str) -> dt.date | None:
    """Parse an ISO date string into a date."""
    if value is None:
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter("Use YYYY-MM-DD format.", param_hint=field_name) from exc


def parse_decimal(value: str | None, field_name: str) -> Decimal | None:
    """Parse a decimal string into a Decimal."""
    if value is None:
        return None
    try:
        return Decimal(value)
    except Exception as exc:
        raise click.BadParameter("Use a valid decimal value.", param_hint=field_name) from exc


def get_client(ctx: click.Context) -> RecurringRuleClient:
    """Build a client from Click context."""
    payload = ctx.obj or {}
    return RecurringRuleClient(db_path=payload.get("db_path"))


def resolve_owner(ctx: click.Context, client: RecurringRuleClient) -> str:
    """Return the --owner option, falling back to the configured owner."""
    payload = ctx.obj or {}
    return payload.get("owner") or client.default_owner


def format_overview(overview: RuleOverview) -> str:
    """Render a rule overview as a single tab separated line."""
    rule = overview.rule
    next_date = overview.next_scheduled_date.isoformat() if overview.next_scheduled_date else "-"
    status = "active" if rule.is_active else "inactive"
    progress = overview.progress or "-"
    return (
        f"{rule.key}\t{rule.name}\t{rule.kind.value}\t{rule.direction.value}"
        f"\t{rule.currency}\t{status}\tnext={next_date}\tprogress={progress}"
    )
