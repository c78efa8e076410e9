"""Domain models and data transfer objects."""

from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

from recurledger.exceptions import ValidationError
from recurledger.schema import (
    DEFAULT_CURRENCY,
    END_TYPE_FIXED_TERM,
    END_TYPE_OPEN_ENDED,
    END_TYPES,
)

MIN_DAY_OF_MONTH = 1
MAX_DAY_OF_MONTH = 31


def _ensure_date(value: dt.date | dt.datetime | str, field_name: str) -> dt.date:
    """Normalize a date, datetime or ISO string to a date."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value)
        except ValueError as exc:
            raise ValidationError(
                f"{field_name} must be an ISO date", {field_name: value}
            ) from exc
    raise ValidationError(f"{field_name} must be a datetime.date", {field_name: value})


def _ensure_non_empty(value: str | None, field_name: str) -> str:
    """Validate required text fields."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required", {field_name: "required"})
    return str(value).strip()


def _ensure_decimal(value: Decimal | str | int | float, field_name: str) -> Decimal:
    """Parse and validate non-negative decimal values."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a decimal", {field_name: value})
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(
            f"{field_name} must be a decimal", {field_name: value}
        ) from exc
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a decimal", {field_name: value})
    if amount < Decimal("0"):
        raise ValidationError(
            f"{field_name} must not be negative", {field_name: str(amount)}
        )
    return amount


def _ensure_int(value: Any, field_name: str) -> int:
    """Validate integer fields, rejecting booleans and fractional values."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", {field_name: value})
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field_name} must be an integer", {field_name: value}
        ) from exc


def _ensure_enum(enum_type: type[Enum], value: Any, field_name: str) -> Any:
    """Coerce a string or enum member to the given enum type."""
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().upper())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(
            f"{field_name} must be one of {allowed}", {field_name: value}
        ) from exc


class RecurringKind(str, Enum):
    """Category tag of a recurring rule."""

    LOAN = "LOAN"
    SUBSCRIPTION = "SUBSCRIPTION"
    INCOME = "INCOME"
    BILL = "BILL"
    CREDIT_CARD = "CREDIT_CARD"
    OTHER = "OTHER"


class Direction(str, Enum):
    """Whether a rule produces income or expense entries."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class ApplyScope(str, Enum):
    """Which generated instances receive the effects of a rule edit."""

    FUTURE_ONLY = "FUTURE_ONLY"
    ALL = "ALL"


@dataclass(frozen=True)
class FixedAmount:
    """Every occurrence carries the same amount."""

    value: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _ensure_decimal(self.value, "amount_default"))


@dataclass(frozen=True)
class VariableAmount:
    """The amount is filled in by the user for each occurrence."""


@dataclass(frozen=True)
class FixedDay:
    """Occurrences fall on a fixed day of month, clamped to the month length."""

    day: int

    def __post_init__(self) -> None:
        day = _ensure_int(self.day, "day_of_month")
        if not MIN_DAY_OF_MONTH <= day <= MAX_DAY_OF_MONTH:
            raise ValidationError(
                "day_of_month must be between 1 and 31", {"day_of_month": day}
            )
        object.__setattr__(self, "day", day)


@dataclass(frozen=True)
class VariableDate:
    """The date changes every period and needs manual confirmation."""


@dataclass(frozen=True)
class FixedTerm:
    """The rule stops after a fixed number of occurrences."""

    total_occurrences: int

    def __post_init__(self) -> None:
        total = _ensure_int(self.total_occurrences, "total_occurrences")
        if total < 1:
            raise ValidationError(
                "FIXED_TERM rules require total_occurrences >= 1",
                {"total_occurrences": total},
            )
        object.__setattr__(self, "total_occurrences", total)


@dataclass(frozen=True)
class OpenEnded:
    """The rule runs until it is deactivated."""


AmountRule = Union[FixedAmount, VariableAmount]
DateRule = Union[FixedDay, VariableDate]
Termination = Union[FixedTerm, OpenEnded]


@dataclass(frozen=True)
class RecurringRuleDTO:
    """Validated recurring rule input for create and update.

    A currency of None is filled in by the client with its configured default.
    """

    name: str
    kind: RecurringKind
    direction: Direction
    amount: AmountRule
    date_rule: DateRule
    termination: Termination
    start_date: dt.date
    category_key: int | None = None
    currency: str | None = None
    note: str | None = None
    is_active: bool | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _ensure_non_empty(self.name, "name"))
        object.__setattr__(self, "kind", _ensure_enum(RecurringKind, self.kind, "kind"))
        object.__setattr__(
            self, "direction", _ensure_enum(Direction, self.direction, "direction")
        )
        if self.currency is not None:
            object.__setattr__(
                self, "currency", _ensure_non_empty(self.currency, "currency").upper()
            )
        object.__setattr__(
            self, "start_date", _ensure_date(self.start_date, "start_date")
        )
        if self.category_key is not None:
            object.__setattr__(
                self, "category_key", _ensure_int(self.category_key, "category_key")
            )
        self.validate()

    def validate(self) -> None:
        """Check that every axis holds one of its tagged variants."""
        errors: dict[str, str] = {}
        if not isinstance(self.amount, (FixedAmount, VariableAmount)):
            errors["amount"] = "Fixed amount rules require amount_default"
        if not isinstance(self.date_rule, (FixedDay, VariableDate)):
            errors["date_rule"] = "Fixed date rules require day_of_month"
        if not isinstance(self.termination, (FixedTerm, OpenEnded)):
            errors["termination"] = "FIXED_TERM rules require total_occurrences >= 1"
        if errors:
            raise ValidationError("Invalid recurring rule", errors)

    @classmethod
    def from_fields(
        cls,
        *,
        name: str,
        kind: RecurringKind | str,
        direction: Direction | str,
        start_date: dt.date | str,
        end_type: str,
        total_occurrences: int | None = None,
        amount_default: Decimal | str | int | float | None = None,
        amount_is_variable: bool = False,
        day_of_month: int | None = None,
        date_is_variable: bool = False,
        category_key: int | None = None,
        currency: str | None = None,
        note: str | None = None,
        is_active: bool | None = None,
    ) -> "RecurringRuleDTO":
        """Build a DTO from flat wire fields, validating cross-field invariants."""
        errors: dict[str, str] = {}
        normalized_end_type = str(end_type or "").strip().upper()
        if normalized_end_type not in END_TYPES:
            errors["end_type"] = f"end_type must be one of {', '.join(END_TYPES)}"
        elif normalized_end_type == END_TYPE_FIXED_TERM and (
            total_occurrences is None or _ensure_int(total_occurrences, "total_occurrences") < 1
        ):
            errors["total_occurrences"] = "FIXED_TERM rules require total_occurrences >= 1"
        if not amount_is_variable and amount_default is None:
            errors["amount_default"] = "Fixed amount rules require amount_default"
        if not date_is_variable and day_of_month is None:
            errors["day_of_month"] = "Fixed date rules require day_of_month"
        if errors:
            raise ValidationError("Invalid recurring rule", errors)

        termination: Termination = OpenEnded()
        if normalized_end_type == END_TYPE_FIXED_TERM:
            termination = FixedTerm(total_occurrences)
        amount: AmountRule = VariableAmount() if amount_is_variable else FixedAmount(amount_default)
        date_rule: DateRule = VariableDate() if date_is_variable else FixedDay(day_of_month)
        return cls(
            name=name,
            kind=kind,
            direction=direction,
            amount=amount,
            date_rule=date_rule,
            termination=termination,
            start_date=start_date,
            category_key=category_key,
            currency=currency,
            note=note,
            is_active=is_active,
        )


@dataclass(frozen=True)
class RecurringRuleRecord:
    """Persisted recurring rule from storage."""
    key: int
    owner: str
    name: str
    kind: RecurringKind
    direction: Direction
    category_key: int | None
    currency: str
    amount: AmountRule
    date_rule: DateRule
    termination: Termination
    start_date: dt.date
    note: str | None
    is_active: bool
    created_at: str
    updated_at: str

    @property
    def end_type(self) -> str:
        if isinstance(self.termination, FixedTerm):
            return END_TYPE_FIXED_TERM
        return END_TYPE_OPEN_ENDED


@dataclass(frozen=True)
class RecurringInstanceRecord:
    """Link between a generated entry and the rule occurrence that produced it."""
    key: int
    rule_key: int
    entry_key: int
    scheduled_for: dt.date
    occurrence_index: int | None
    is_manual_override: bool
    created_at: str


@dataclass(frozen=True)
class EntryDTO:
    """Validated ledger entry input for persistence."""
    date: dt.date
    amount: Decimal
    direction: Direction
    currency: str = DEFAULT_CURRENCY
    category_key: int | None = None
    note: str | None = None
    recurring_rule_key: int | None = None
    scheduled_for: dt.date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", _ensure_date(self.date, "date"))
        object.__setattr__(self, "amount", _ensure_decimal(self.amount, "amount"))
        object.__setattr__(
            self, "direction", _ensure_enum(Direction, self.direction, "direction")
        )
        object.__setattr__(
            self, "currency", _ensure_non_empty(self.currency, "currency").upper()
        )
        if self.scheduled_for is not None:
            object.__setattr__(
                self, "scheduled_for", _ensure_date(self.scheduled_for, "scheduled_for")
            )


@dataclass(frozen=True)
class EntryRecord:
    """Persisted ledger entry from storage."""
    key: int
    owner: str
    date: dt.date
    amount: Decimal
    direction: Direction
    category_key: int | None
    currency: str
    note: str | None
    recurring_rule_key: int | None
    scheduled_for: dt.date | None
    created_at: str
    updated_at: str

    @property
    def is_generated(self) -> bool:
        return self.recurring_rule_key is not None


@dataclass(frozen=True)
class CategoryRecord:
    """Owner-scoped category reference."""
    key: int
    owner: str
    name: str


@dataclass(frozen=True)
class ToggleActiveDTO:
    """Requested active state, with optional cleanup of future generated entries."""
    is_active: bool
    delete_future_generated: bool = False


@dataclass(frozen=True)
class RuleSyncDetail:
    """Outcome of syncing a single rule."""
    rule_key: int
    rule_name: str
    transactions_created: int
    message: str | None = None

    @property
    def skipped(self) -> bool:
        return self.transactions_created == 0 and self.message is not None


@dataclass(frozen=True)
class SyncResult:
    """Summary of a sync run across an owner's active rules."""
    transactions_created: int
    rules_processed: int
    rules_skipped: int
    details: list[RuleSyncDetail]


@dataclass(frozen=True)
class RuleOverview:
    """A rule together with its computed, non-persisted presentation fields.

    Attributes:
        rule: The stored rule
        created_count: Number of instances generated so far
        next_scheduled_date: Next date the rule will produce an entry, or None
            when inactive, variable-date, or a completed fixed term
        progress: "created/total" for fixed-term rules, else None
        progress_percent: floor(created * 100 / total) capped at 100, else None
    """
    rule: RecurringRuleRecord
    created_count: int
    next_scheduled_date: dt.date | None
    progress: str | None
    progress_percent: int | None
