"""Client orchestration layer for recurledger."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable, TypeVar
import datetime as dt
from decimal import Decimal
import json
import logging
import os

from recurledger.exceptions import NotFoundError
from recurledger.models import (
    ApplyScope,
    CategoryRecord,
    Direction,
    EntryRecord,
    FixedTerm,
    RecurringInstanceRecord,
    RecurringRuleDTO,
    RecurringRuleRecord,
    RuleOverview,
    SyncResult,
    ToggleActiveDTO,
    _ensure_decimal,
)
from recurledger.persistence import UNSET, PersistenceBackend, run_transaction
from recurledger.propagation import RuleMutationApplier
from recurledger.repository import Repository
from recurledger.schedule import next_scheduled_date
from recurledger.schema import DEFAULT_CURRENCY, DEFAULT_OWNER
from recurledger.sync import SyncEngine

T = TypeVar("T")

# Configure logging
logger = logging.getLogger(__name__)
log_level = os.environ.get('LOGGING_LEVEL', 'INFO').upper()
logger.setLevel(getattr(logging, log_level, logging.INFO))
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(levelname)s - %(name)s - %(message)s'))
    logger.addHandler(handler)

CONFIG_ENV_VAR = "RECURLEDGER_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".recurledger" / "config.json"


def resolve_config_path() -> Path:
    """Return the config file path, honoring the environment override."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return DEFAULT_CONFIG_PATH


class RecurringRuleClient:
    """Coordinate recurring rule lifecycle, sync and propagation."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        repository: PersistenceBackend | None = None,
    ) -> None:
        """Initialize the client with a repository backend.

        Args:
            db_path: Path to the SQLite database
            repository: Optional custom persistence backend
        """
        self.config = self._load_config()
        self.db_path = self._resolve_db_path(db_path, repository)
        self.repository = repository or Repository(self.db_path)
        self.sync_engine = SyncEngine(self.repository)
        self.applier = RuleMutationApplier(self.repository)

    def __enter__(self) -> "RecurringRuleClient":
        """Open the repository connection."""
        self.repository.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Close the repository connection."""
        self.close()

    def close(self) -> None:
        """Close the repository connection."""
        self.repository.close()

    @property
    def default_owner(self) -> str:
        """Owner used when a caller does not name one."""
        owner = self.config.get("owner")
        if isinstance(owner, str) and owner.strip():
            return owner.strip()
        return DEFAULT_OWNER

    @property
    def default_currency(self) -> str:
        """Currency used for new rules when none is given."""
        currency = self.config.get("default_currency")
        if isinstance(currency, str) and currency.strip():
            return currency.strip().upper()
        return DEFAULT_CURRENCY

    def _resolve_db_path(
        self,
        db_path: str | Path | None,
        repository: PersistenceBackend | None,
    ) -> Path:
        """Resolve the database path from arguments or config."""
        if repository is not None and db_path is None:
            return Path("")
        if db_path is not None:
            return Path(db_path)
        resolved = self.config.get("db_path")
        if not resolved:
            raise ValueError("db_path is required when config file is missing")
        return Path(resolved)

    def _load_config(self) -> dict:
        """Load config file if present, else return empty config."""
        config_path = resolve_config_path()
        if not config_path.exists():
            return {}
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if not isinstance(payload, dict):
            return {}
        return payload

    def _run_transaction(self, action: Callable[[], T], immediate: bool = False) -> T:
        """Run repository work inside a transaction."""
        return run_transaction(self.repository, action, immediate=immediate)

    @staticmethod
    def _today(today: dt.date | None) -> dt.date:
        return today if today is not None else dt.date.today()

    def initialize_schema(self) -> None:
        """Create the database tables when missing."""
        self.repository.initialize_schema()

    # Categories

    def add_category(self, owner: str, name: str) -> CategoryRecord:
        """Create a category for the owner."""
        if not name or not name.strip():
            raise ValueError("Category name is required")
        return self._run_transaction(
            lambda: self.repository.insert_category(owner, name.strip())
        )

    def list_categories(self, owner: str) -> list[CategoryRecord]:
        """List the owner's categories."""
        return self.repository.list_categories(owner)

    # Rule lifecycle

    def create_rule(
        self,
        owner: str,
        rule: RecurringRuleDTO,
        today: dt.date | None = None,
    ) -> RuleOverview:
        """Validate and persist a new recurring rule."""
        rule = self._with_default_currency(rule)
        rule.validate()

        def action() -> RecurringRuleRecord:
            self._ensure_category(owner, rule.category_key)
            return self.repository.insert_rule(owner, rule)

        saved = self._run_transaction(action)
        logger.info("Created recurring rule: %s (id=%s)", saved.name, saved.key)
        return self._overview(saved, self._today(today))

    def get_rule(self, owner: str, key: int, today: dt.date | None = None) -> RuleOverview:
        """Fetch a rule with its computed fields."""
        rule = self.repository.get_rule(key, owner)
        return self._overview(rule, self._today(today))

    def list_rules(self, owner: str, today: dt.date | None = None) -> list[RuleOverview]:
        """List the owner's rules, newest first, with computed fields."""
        reference = self._today(today)
        return [self._overview(rule, reference) for rule in self.repository.list_rules(owner)]

    def update_rule(
        self,
        owner: str,
        key: int,
        rule: RecurringRuleDTO,
        scope: ApplyScope | str = ApplyScope.FUTURE_ONLY,
        today: dt.date | None = None,
    ) -> RuleOverview:
        """Overwrite a rule, then apply the change to generated entries.

        Args:
            owner: Owner of the rule
            key: Rule key
            rule: Full replacement of the rule fields; is_active is patched
                only when set
            scope: FUTURE_ONLY updates unedited instances scheduled on or
                after today, ALL updates every unedited instance
            today: Reference date, defaults to the current date
        """
        scope = ApplyScope(scope)
        reference = self._today(today)
        rule = self._with_default_currency(rule)
        rule.validate()

        def action() -> RecurringRuleRecord:
            self.repository.get_rule(key, owner)
            self._ensure_category(owner, rule.category_key)
            return self.repository.update_rule(key, owner, rule)

        saved = self._run_transaction(action, immediate=True)
        self.applier.apply_rule_changes(saved, scope, reference)
        logger.info(
            "Updated recurring rule: %s (id=%s, scope=%s)", saved.name, saved.key, scope.value
        )
        return self._overview(saved, reference)

    def toggle_active(
        self,
        owner: str,
        key: int,
        request: ToggleActiveDTO,
        today: dt.date | None = None,
    ) -> RuleOverview:
        """Set the active flag, optionally cleaning up future generated entries.

        Reactivation never backfills; the next sync continues from the
        existing instance count.
        """
        reference = self._today(today)

        def action() -> RecurringRuleRecord:
            current = self.repository.get_rule(key, owner)
            saved = self.repository.set_rule_active(key, owner, request.is_active)
            if current.is_active and not request.is_active and request.delete_future_generated:
                self._delete_future_instances(current.key, reference)
            return saved

        saved = self._run_transaction(action, immediate=True)
        logger.info(
            "Toggled recurring rule active status: %s (id=%s, isActive=%s)",
            saved.name,
            saved.key,
            saved.is_active,
        )
        return self._overview(saved, reference)

    def delete_rule(
        self,
        owner: str,
        key: int,
        delete_future_generated: bool = False,
        today: dt.date | None = None,
    ) -> None:
        """Soft-delete a rule by deactivating it."""
        reference = self._today(today)

        def action() -> RecurringRuleRecord:
            rule = self.repository.set_rule_active(key, owner, False)
            if delete_future_generated:
                self._delete_future_instances(rule.key, reference)
            return rule

        rule = self._run_transaction(action, immediate=True)
        logger.info("Soft-deleted recurring rule: %s (id=%s)", rule.name, rule.key)

    # Generation

    def sync_transactions(self, owner: str, today: dt.date | None = None) -> SyncResult:
        """Generate every due but missing entry for the owner's active rules."""
        return self.sync_engine.sync_transactions(owner, self._today(today))

    # Instances

    def list_instances_for_rule(
        self,
        owner: str,
        key: int,
        upcoming_from: dt.date | None = None,
    ) -> list[RecurringInstanceRecord]:
        """List a rule's instances, optionally only those on or after a date."""
        rule = self.repository.get_rule(key, owner)
        if upcoming_from is not None:
            return self.repository.list_future_instances(rule.key, upcoming_from)
        return self.repository.list_instances(rule.key)

    def mark_entry_as_manual_override(
        self,
        owner: str,
        entry_key: int,
    ) -> RecurringInstanceRecord | None:
        """Protect a generated entry from later rule propagation.

        Entries that were not generated from a rule are left alone.
        """
        def action() -> RecurringInstanceRecord | None:
            self.repository.get_entry(entry_key, owner)
            return self._mark_override(entry_key)

        return self._run_transaction(action, immediate=True)

    def edit_entry(
        self,
        owner: str,
        entry_key: int,
        amount: Decimal | str | int | float | None = None,
        date: dt.date | None = None,
        note: str | None = None,
        direction: Direction | str | None = None,
        currency: str | None = None,
    ) -> EntryRecord:
        """Edit a ledger entry as a user would, flagging generated ones as overridden."""
        normalized_amount = None
        if amount is not None:
            normalized_amount = _ensure_decimal(amount, "amount")
        normalized_direction = Direction(str(direction).upper()) if direction else None

        def action() -> EntryRecord:
            self.repository.get_entry(entry_key, owner)
            self._mark_override(entry_key)
            return self.repository.update_entry(
                entry_key,
                amount=normalized_amount,
                date=date,
                direction=normalized_direction,
                currency=currency.upper() if currency else None,
                note=note if note is not None else UNSET,
            )

        return self._run_transaction(action, immediate=True)

    def _mark_override(self, entry_key: int) -> RecurringInstanceRecord | None:
        instance = self.repository.find_instance_by_entry(entry_key)
        if instance is None:
            return None
        self.repository.set_manual_override(instance.key)
        logger.debug("Marked entry %s as manually overridden", entry_key)
        return self.repository.find_instance_by_entry(entry_key)

    def _with_default_currency(self, rule: RecurringRuleDTO) -> RecurringRuleDTO:
        if rule.currency is not None:
            return rule
        return replace(rule, currency=self.default_currency)

    def _ensure_category(self, owner: str, category_key: int | None) -> None:
        """Raise NotFoundError unless the category belongs to the owner."""
        if category_key is not None:
            self.repository.get_category(category_key, owner)

    def _delete_future_instances(self, rule_key: int, today: dt.date) -> int:
        """Delete unedited future instances, each followed by its entry."""
        instances = self.repository.list_future_non_override_instances(rule_key, today)
        for instance in instances:
            self.repository.delete_instance(instance.key)
            self.repository.delete_entry(instance.entry_key)
        logger.info("Deleted %s future instances for rule %s", len(instances), rule_key)
        return len(instances)

    def _overview(self, rule: RecurringRuleRecord, today: dt.date) -> RuleOverview:
        """Attach the computed presentation fields to a rule."""
        created_count = self.repository.count_instances(rule.key)
        progress = None
        progress_percent = None
        if isinstance(rule.termination, FixedTerm):
            total = rule.termination.total_occurrences
            progress = f"{created_count}/{total}"
            progress_percent = min(created_count * 100 // total, 100)
        return RuleOverview(
            rule=rule,
            created_count=created_count,
            next_scheduled_date=next_scheduled_date(rule, created_count, today),
            progress=progress,
            progress_percent=progress_percent,
        )
