"""Propagation of rule edits to previously generated entries."""

from __future__ import annotations

import datetime as dt
import logging

from recurledger.models import (
    ApplyScope,
    FixedAmount,
    FixedDay,
    RecurringInstanceRecord,
    RecurringRuleRecord,
)
from recurledger.persistence import PersistenceBackend, run_transaction
from recurledger.schedule import Month, scheduled_date

logger = logging.getLogger(__name__)


class RuleMutationApplier:
    """Push the current state of a rule onto its unedited instances."""

    def __init__(self, backend: PersistenceBackend) -> None:
        self.backend = backend

    def select_instances(
        self,
        rule: RecurringRuleRecord,
        scope: ApplyScope,
        today: dt.date,
    ) -> list[RecurringInstanceRecord]:
        """Return the instances a rule edit applies to under the given scope.

        Manually overridden instances are never selected.
        """
        if ApplyScope(scope) is ApplyScope.ALL:
            return self.backend.list_non_override_instances(rule.key)
        return self.backend.list_future_non_override_instances(rule.key, today)

    def apply_rule_changes(
        self,
        rule: RecurringRuleRecord,
        scope: ApplyScope,
        today: dt.date,
    ) -> int:
        """Apply the rule to selected instances and return how many changed.

        Each instance is updated in its own transaction. The result depends
        only on the current rule, so re-running after a partial failure
        converges.
        """
        instances = self.select_instances(rule, scope, today)
        updated = 0
        for instance in instances:
            if run_transaction(
                self.backend,
                lambda instance=instance: self._apply_to_instance(rule, instance),
                immediate=True,
            ):
                updated += 1
        logger.info(
            "Applied rule changes to %s instances (rule=%s, scope=%s)",
            updated,
            rule.key,
            ApplyScope(scope).value,
        )
        return updated

    def _apply_to_instance(
        self,
        rule: RecurringRuleRecord,
        instance: RecurringInstanceRecord,
    ) -> bool:
        # The user may have edited the entry since the batch was selected.
        current = self.backend.find_instance_by_entry(instance.entry_key)
        if current is None or current.is_manual_override:
            return False

        fields: dict[str, object] = {
            "category_key": rule.category_key,
            "direction": rule.direction,
            "currency": rule.currency,
        }
        if isinstance(rule.amount, FixedAmount):
            fields["amount"] = rule.amount.value
        if isinstance(rule.date_rule, FixedDay):
            # Keep the month the instance represents, move only the day.
            new_date = scheduled_date(rule.date_rule, Month.from_date(current.scheduled_for))
            fields["date"] = new_date
            fields["scheduled_for"] = new_date
            self.backend.update_instance_schedule(current.key, new_date)

        self.backend.update_entry(current.entry_key, **fields)
        return True
