from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from recurledger.exceptions import ValidationError
from recurledger.models import (
    Direction,
    EntryDTO,
    FixedAmount,
    FixedDay,
    FixedTerm,
    OpenEnded,
    RecurringKind,
    RecurringRuleDTO,
    RuleSyncDetail,
    VariableAmount,
    VariableDate,
)
from tests.utils.rules import make_record, make_rule


def test_rule_dto_from_fields_builds_variants() -> None:
    rule = make_rule(end_type="FIXED_TERM", total_occurrences=12, note="Car loan")

    assert rule.kind is RecurringKind.BILL
    assert rule.direction is Direction.EXPENSE
    assert rule.amount == FixedAmount(Decimal("500"))
    assert rule.date_rule == FixedDay(1)
    assert rule.termination == FixedTerm(12)
    assert rule.start_date == dt.date(2024, 1, 1)
    assert rule.is_active is None


def test_rule_dto_variable_flags_win_over_values() -> None:
    rule = make_rule(
        amount_is_variable=True,
        amount_default="80",
        date_is_variable=True,
        day_of_month=15,
    )

    assert isinstance(rule.amount, VariableAmount)
    assert isinstance(rule.date_rule, VariableDate)
    assert isinstance(rule.termination, OpenEnded)


def test_rule_dto_defaults_and_normalization() -> None:
    rule = make_rule(currency=None, kind="subscription", direction="income", name="  Salary ")

    assert rule.currency is None
    assert rule.kind is RecurringKind.SUBSCRIPTION
    assert rule.direction is Direction.INCOME
    assert rule.name == "Salary"

    rule = make_rule(currency="eur")
    assert rule.currency == "EUR"


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"end_type": "FIXED_TERM"}, "total_occurrences"),
        ({"end_type": "FIXED_TERM", "total_occurrences": 0}, "total_occurrences"),
        ({"amount_default": None}, "amount_default"),
        ({"day_of_month": None}, "day_of_month"),
        ({"end_type": "FOREVER"}, "end_type"),
    ],
)
def test_rule_dto_cross_field_validation(overrides: dict, field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        make_rule(**overrides)

    assert field in excinfo.value.details


def test_rule_dto_collects_every_error() -> None:
    with pytest.raises(ValidationError) as excinfo:
        make_rule(end_type="FIXED_TERM", amount_default=None, day_of_month=None)

    assert set(excinfo.value.details) == {
        "total_occurrences",
        "amount_default",
        "day_of_month",
    }


@pytest.mark.parametrize("day", [0, 32, -1])
def test_fixed_day_range(day: int) -> None:
    with pytest.raises(ValidationError):
        FixedDay(day)


def test_fixed_day_bounds_accepted() -> None:
    assert FixedDay(1).day == 1
    assert FixedDay(31).day == 31


def test_fixed_amount_rejects_negative_and_garbage() -> None:
    with pytest.raises(ValidationError):
        FixedAmount(Decimal("-1"))
    with pytest.raises(ValidationError):
        FixedAmount("abc")
    with pytest.raises(ValidationError):
        FixedAmount(True)

    assert FixedAmount("0").value == Decimal("0")


def test_rule_dto_requires_name_and_known_enums() -> None:
    with pytest.raises(ValidationError):
        make_rule(name=" ")
    with pytest.raises(ValidationError):
        make_rule(kind="MORTGAGE")
    with pytest.raises(ValidationError):
        make_rule(direction="SIDEWAYS")
    with pytest.raises(ValidationError):
        make_rule(start_date="01/01/2024")


def test_rule_dto_validate_rejects_foreign_variants() -> None:
    with pytest.raises(ValidationError) as excinfo:
        RecurringRuleDTO(
            name="Rent",
            kind=RecurringKind.BILL,
            direction=Direction.EXPENSE,
            amount=Decimal("500"),
            date_rule=FixedDay(1),
            termination=OpenEnded(),
            start_date=dt.date(2024, 1, 1),
        )

    assert "amount" in excinfo.value.details


def test_rule_record_end_type() -> None:
    assert make_record().end_type == "OPEN_ENDED"
    assert make_record(termination=FixedTerm(3)).end_type == "FIXED_TERM"


def test_entry_dto_validation() -> None:
    entry = EntryDTO(
        date="2024-03-08",
        amount="12.5",
        direction="expense",
        currency="eur",
    )

    assert entry.date == dt.date(2024, 3, 8)
    assert entry.amount == Decimal("12.5")
    assert entry.direction is Direction.EXPENSE
    assert entry.currency == "EUR"

    with pytest.raises(ValidationError):
        EntryDTO(date=dt.date(2024, 3, 8), amount=Decimal("-5"), direction=Direction.EXPENSE)


def test_rule_sync_detail_skipped() -> None:
    assert RuleSyncDetail(1, "Gym", 0, "Skipped: variable date rule").skipped
    assert not RuleSyncDetail(1, "Gym", 0).skipped
    assert not RuleSyncDetail(1, "Gym", 2).skipped
