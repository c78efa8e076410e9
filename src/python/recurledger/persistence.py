"""Persistence interfaces for recurledger storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
import datetime as dt
from decimal import Decimal
from pathlib import Path
from typing import Callable, TypeVar

from recurledger.models import (
    CategoryRecord,
    Direction,
    EntryDTO,
    EntryRecord,
    RecurringInstanceRecord,
    RecurringRuleDTO,
    RecurringRuleRecord,
)

T = TypeVar("T")

# Marks an optional update argument that was not provided, so None can be written.
UNSET: object = object()


class RuleStore(ABC):
    """Owner-scoped storage of recurring rule definitions."""

    @abstractmethod
    def list_active_rules(self, owner: str) -> list[RecurringRuleRecord]:
        """Return active rules for the owner, oldest first."""

    @abstractmethod
    def list_rules(self, owner: str) -> list[RecurringRuleRecord]:
        """Return all rules for the owner, newest first."""

    @abstractmethod
    def get_rule(self, key: int, owner: str) -> RecurringRuleRecord:
        """Return a rule owned by the owner or raise NotFoundError."""

    @abstractmethod
    def insert_rule(self, owner: str, rule: RecurringRuleDTO) -> RecurringRuleRecord:
        """Persist a new active rule."""

    @abstractmethod
    def update_rule(self, key: int, owner: str, rule: RecurringRuleDTO) -> RecurringRuleRecord:
        """Overwrite every rule field, patching is_active only when provided."""

    @abstractmethod
    def set_rule_active(self, key: int, owner: str, is_active: bool) -> RecurringRuleRecord:
        """Set the active flag of a rule."""


class InstanceLedger(ABC):
    """Storage of the links between rule occurrences and generated entries."""

    @abstractmethod
    def instance_exists_for_month(self, rule_key: int, year: int, month: int) -> bool:
        """Return True if any instance of the rule falls in the calendar month."""

    @abstractmethod
    def count_instances(self, rule_key: int) -> int:
        """Return the number of instances generated for the rule."""

    @abstractmethod
    def list_instances(self, rule_key: int) -> list[RecurringInstanceRecord]:
        """Return all instances of the rule ordered by scheduled date."""

    @abstractmethod
    def list_non_override_instances(self, rule_key: int) -> list[RecurringInstanceRecord]:
        """Return instances that were not edited by the user."""

    @abstractmethod
    def list_future_non_override_instances(
        self, rule_key: int, today: dt.date
    ) -> list[RecurringInstanceRecord]:
        """Return unedited instances scheduled on or after today."""

    @abstractmethod
    def list_future_instances(self, rule_key: int, today: dt.date) -> list[RecurringInstanceRecord]:
        """Return all instances scheduled on or after today."""

    @abstractmethod
    def find_instance_by_entry(self, entry_key: int) -> RecurringInstanceRecord | None:
        """Return the instance linked to a generated entry, if any."""

    @abstractmethod
    def insert_instance(
        self,
        rule_key: int,
        entry_key: int,
        scheduled_for: dt.date,
        occurrence_index: int | None,
    ) -> RecurringInstanceRecord:
        """Record a new instance."""

    @abstractmethod
    def update_instance_schedule(self, key: int, scheduled_for: dt.date) -> None:
        """Move an instance to a new scheduled date."""

    @abstractmethod
    def set_manual_override(self, key: int) -> None:
        """Flag an instance as edited by the user."""

    @abstractmethod
    def delete_instance(self, key: int) -> None:
        """Delete an instance row."""


class EntryLedger(ABC):
    """Storage of concrete ledger entries."""

    @abstractmethod
    def insert_entry(self, owner: str, entry: EntryDTO) -> EntryRecord:
        """Persist a new entry."""

    @abstractmethod
    def get_entry(self, key: int, owner: str | None = None) -> EntryRecord:
        """Return an entry, optionally scoped to an owner, or raise NotFoundError."""

    @abstractmethod
    def update_entry(
        self,
        key: int,
        *,
        amount: Decimal | None = None,
        date: dt.date | None = None,
        direction: Direction | None = None,
        currency: str | None = None,
        category_key: int | None | object = UNSET,
        note: str | None | object = UNSET,
        scheduled_for: dt.date | None = None,
    ) -> EntryRecord:
        """Update the provided entry fields and return the latest record."""

    @abstractmethod
    def delete_entry(self, key: int) -> None:
        """Delete an entry row."""


class PersistenceBackend(RuleStore, InstanceLedger, EntryLedger):
    """Abstract interface for repository backends."""

    @abstractmethod
    def __init__(self, db_path: str | Path) -> None:
        """Initialize the backend with a storage path."""

    @abstractmethod
    def connect(self) -> None:
        """Establish a backend connection."""

    @abstractmethod
    def close(self) -> None:
        """Close the backend connection."""

    @abstractmethod
    def initialize_schema(self) -> None:
        """Create tables and indexes when missing."""

    @abstractmethod
    def begin_transaction(self, immediate: bool = False) -> None:
        """Start a transaction, taking the write lock up front when immediate."""

    @abstractmethod
    def commit(self) -> None:
        """Commit the active transaction."""

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the active transaction."""

    @abstractmethod
    def get_category(self, key: int, owner: str) -> CategoryRecord:
        """Return a category owned by the owner or raise NotFoundError."""

    @abstractmethod
    def insert_category(self, owner: str, name: str) -> CategoryRecord:
        """Persist a new category."""

    @abstractmethod
    def list_categories(self, owner: str) -> list[CategoryRecord]:
        """Return the owner's categories ordered by name."""


def run_transaction(
    backend: PersistenceBackend,
    action: Callable[[], T],
    immediate: bool = False,
) -> T:
    """Run backend work inside a transaction, rolling back on any error."""
    backend.begin_transaction(immediate=immediate)
    try:
        result = action()
        backend.commit()
        return result
    except Exception:
        backend.rollback()
        raise
