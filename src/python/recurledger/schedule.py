"""Month arithmetic and scheduled-date calculation for recurring rules."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
import datetime as dt

from recurledger.models import DateRule, FixedDay, FixedTerm, RecurringRuleRecord, VariableDate


@dataclass(frozen=True, order=True)
class Month:
    """A calendar month, ordered chronologically."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError("month must be between 1 and 12")

    @classmethod
    def from_date(cls, value: dt.date) -> "Month":
        return cls(value.year, value.month)

    def plus_months(self, count: int) -> "Month":
        total = self.year * 12 + (self.month - 1) + count
        return Month(total // 12, total % 12 + 1)

    def length(self) -> int:
        """Number of days in the month, leap years included."""
        return calendar.monthrange(self.year, self.month)[1]

    def at_day(self, day: int) -> dt.date:
        return dt.date(self.year, self.month, day)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def scheduled_date(date_rule: DateRule, month: Month) -> dt.date:
    """Return the date a rule falls on in the given month.

    The requested day is clamped to the last day of the month, so day 31
    becomes Feb 28 (or Feb 29 in leap years). Variable-date rules fall back
    to the first of the month.
    """
    requested = date_rule.day if isinstance(date_rule, FixedDay) else 1
    return month.at_day(min(requested, month.length()))


def next_scheduled_date(
    rule: RecurringRuleRecord,
    created_count: int,
    today: dt.date,
) -> dt.date | None:
    """Return the next date the rule will produce an entry, if any."""
    if not rule.is_active or isinstance(rule.date_rule, VariableDate):
        return None
    if (
        isinstance(rule.termination, FixedTerm)
        and created_count >= rule.termination.total_occurrences
    ):
        return None

    start_month = Month.from_date(rule.start_date)
    current_month = Month.from_date(today)
    if start_month > current_month:
        return scheduled_date(rule.date_rule, start_month)

    this_month = scheduled_date(rule.date_rule, current_month)
    if today <= this_month:
        return this_month
    return scheduled_date(rule.date_rule, current_month.plus_months(1))
