"""Generation of ledger entries from recurring rules."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
import logging

from recurledger.exceptions import NotFoundError, ScheduleInvariantError
from recurledger.models import (
    EntryDTO,
    FixedAmount,
    FixedTerm,
    RecurringRuleRecord,
    RuleSyncDetail,
    SyncResult,
    VariableDate,
)
from recurledger.persistence import PersistenceBackend, run_transaction
from recurledger.schedule import Month, scheduled_date

logger = logging.getLogger(__name__)

SKIP_VARIABLE_DATE = "Skipped: variable date rule (requires manual confirmation)"
SKIP_INACTIVE = "Skipped: rule is no longer active"


def build_entry_note(rule: RecurringRuleRecord, occurrence_index: int) -> str | None:
    """Return the note of a generated entry.

    Fixed-term rules prefix the note with "[index/total] name", e.g.
    "[3/12] Car loan - monthly installment".
    """
    if not isinstance(rule.termination, FixedTerm):
        return rule.note
    progress = f"[{occurrence_index}/{rule.termination.total_occurrences}] {rule.name}"
    if rule.note:
        return f"{progress} - {rule.note}"
    return progress


class SyncEngine:
    """Materialize due but missing entries for an owner's active rules.

    Sync only creates entries whose scheduled date is on or before the
    reference date, at most one per rule and calendar month, so running it
    repeatedly is safe.
    """

    def __init__(self, backend: PersistenceBackend) -> None:
        self.backend = backend

    def sync_transactions(self, owner: str, today: dt.date) -> SyncResult:
        """Generate missing entries for every active rule of the owner."""
        rules = self.backend.list_active_rules(owner)

        total_created = 0
        rules_skipped = 0
        details: list[RuleSyncDetail] = []
        for rule in rules:
            detail = self.sync_rule(rule, today)
            details.append(detail)
            total_created += detail.transactions_created
            if detail.skipped:
                rules_skipped += 1

        logger.info(
            "Sync completed: %s transactions created from %s rules (%s skipped)",
            total_created,
            len(rules),
            rules_skipped,
        )
        return SyncResult(
            transactions_created=total_created,
            rules_processed=len(rules),
            rules_skipped=rules_skipped,
            details=details,
        )

    def sync_rule(self, rule: RecurringRuleRecord, today: dt.date) -> RuleSyncDetail:
        """Generate missing entries for a single rule.

        The month walk runs in one immediate transaction, so a concurrent sync
        or rule update touching the same rule is serialized behind it.
        """
        if isinstance(rule.date_rule, VariableDate):
            return RuleSyncDetail(rule.key, rule.name, 0, SKIP_VARIABLE_DATE)

        def action() -> RuleSyncDetail:
            try:
                current = self.backend.get_rule(rule.key, rule.owner)
            except NotFoundError:
                return RuleSyncDetail(rule.key, rule.name, 0, SKIP_INACTIVE)
            if not current.is_active:
                return RuleSyncDetail(current.key, current.name, 0, SKIP_INACTIVE)
            if isinstance(current.date_rule, VariableDate):
                return RuleSyncDetail(current.key, current.name, 0, SKIP_VARIABLE_DATE)
            created = self._materialize_due(current, today)
            return RuleSyncDetail(current.key, current.name, created)

        return run_transaction(self.backend, action, immediate=True)

    def _materialize_due(self, rule: RecurringRuleRecord, today: dt.date) -> int:
        """Walk months from the rule start to today's month, filling gaps."""
        current_month = Month.from_date(today)
        month = Month.from_date(rule.start_date)
        existing_count = self.backend.count_instances(rule.key)
        created = 0
        previous_date: dt.date | None = None

        while month <= current_month:
            if (
                isinstance(rule.termination, FixedTerm)
                and existing_count + created >= rule.termination.total_occurrences
            ):
                break

            scheduled = scheduled_date(rule.date_rule, month)
            if previous_date is not None and scheduled <= previous_date:
                raise ScheduleInvariantError(
                    f"Scheduled dates must increase month over month: "
                    f"{previous_date.isoformat()} then {scheduled.isoformat()} "
                    f"for rule {rule.key}"
                )
            previous_date = scheduled

            # Later months can only be later still.
            if scheduled > today:
                break

            if not self.backend.instance_exists_for_month(rule.key, month.year, month.month):
                self._materialize(rule, scheduled, existing_count + created + 1)
                created += 1

            month = month.plus_months(1)

        return created

    def _materialize(
        self,
        rule: RecurringRuleRecord,
        scheduled: dt.date,
        occurrence_index: int,
    ) -> None:
        """Create the entry for one occurrence and link it to the rule."""
        amount = rule.amount.value if isinstance(rule.amount, FixedAmount) else Decimal("0")
        entry = self.backend.insert_entry(
            rule.owner,
            EntryDTO(
                date=scheduled,
                amount=amount,
                direction=rule.direction,
                currency=rule.currency,
                category_key=rule.category_key,
                note=build_entry_note(rule, occurrence_index),
                recurring_rule_key=rule.key,
                scheduled_for=scheduled,
            ),
        )
        is_fixed_term = isinstance(rule.termination, FixedTerm)
        self.backend.insert_instance(
            rule.key,
            entry.key,
            scheduled,
            occurrence_index if is_fixed_term else None,
        )
        logger.debug(
            "Created entry %s from rule '%s' for date %s",
            entry.key,
            rule.name,
            scheduled.isoformat(),
        )
