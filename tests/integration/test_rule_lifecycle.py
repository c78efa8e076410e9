from __future__ import annotations

import datetime as dt
from decimal import Decimal
from pathlib import Path

import pytest

from recurledger.client import RecurringRuleClient
from recurledger.exceptions import NotFoundError, ValidationError
from recurledger.models import Direction, EntryDTO, ToggleActiveDTO
from tests.utils.assertions import assert_scheduled_dates
from tests.utils.database import count_rows
from tests.utils.rules import make_rule


@pytest.mark.sit
def test_create_rule_returns_overview(client: RecurringRuleClient, owner: str) -> None:
    overview = client.create_rule(
        owner,
        make_rule(end_type="FIXED_TERM", total_occurrences=12, day_of_month=10),
        today=dt.date(2024, 1, 5),
    )

    assert overview.rule.key is not None
    assert overview.rule.owner == owner
    assert overview.rule.is_active is True
    assert overview.created_count == 0
    assert overview.next_scheduled_date == dt.date(2024, 1, 10)
    assert overview.progress == "0/12"
    assert overview.progress_percent == 0


@pytest.mark.sit
def test_open_ended_rule_has_no_progress(client: RecurringRuleClient, owner: str) -> None:
    overview = client.create_rule(owner, make_rule(), today=dt.date(2024, 1, 5))

    assert overview.progress is None
    assert overview.progress_percent is None
    assert overview.next_scheduled_date == dt.date(2024, 2, 1)


@pytest.mark.sit
def test_progress_percent_floors(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(
        owner, make_rule(end_type="FIXED_TERM", total_occurrences=3)
    ).rule
    client.sync_transactions(owner, today=dt.date(2024, 1, 15))

    overview = client.get_rule(owner, rule.key, today=dt.date(2024, 1, 15))

    assert overview.created_count == 1
    assert overview.progress == "1/3"
    assert overview.progress_percent == 33
    assert overview.next_scheduled_date == dt.date(2024, 2, 1)


@pytest.mark.sit
def test_create_rule_with_foreign_category_fails(
    client: RecurringRuleClient, owner: str, db_path: Path
) -> None:
    foreign = client.add_category("bob", "Housing")

    with pytest.raises(NotFoundError):
        client.create_rule(owner, make_rule(category_key=foreign.key))

    assert count_rows(db_path, "RecurringRule") == 0


@pytest.mark.sit
def test_create_rule_validation_error_before_persist(db_path: Path) -> None:
    with pytest.raises(ValidationError) as excinfo:
        make_rule(end_type="FIXED_TERM", total_occurrences=None)

    assert "total_occurrences" in excinfo.value.details
    assert count_rows(db_path, "RecurringRule") == 0


@pytest.mark.sit
def test_rules_are_hidden_from_other_owners(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule

    with pytest.raises(NotFoundError):
        client.get_rule("bob", rule.key)
    with pytest.raises(NotFoundError):
        client.update_rule("bob", rule.key, make_rule(name="Hijack"))
    with pytest.raises(NotFoundError):
        client.toggle_active("bob", rule.key, ToggleActiveDTO(is_active=False))
    with pytest.raises(NotFoundError):
        client.delete_rule("bob", rule.key)
    with pytest.raises(NotFoundError):
        client.list_instances_for_rule("bob", rule.key)
    assert client.list_rules("bob") == []
    assert client.get_rule(owner, rule.key).rule.name == "Rent"


@pytest.mark.sit
def test_update_missing_rule(client: RecurringRuleClient, owner: str) -> None:
    with pytest.raises(NotFoundError):
        client.update_rule(owner, 999, make_rule())


@pytest.mark.sit
def test_update_rule_can_patch_active_flag(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule

    overview = client.update_rule(owner, rule.key, make_rule(is_active=False))
    assert overview.rule.is_active is False
    assert overview.next_scheduled_date is None

    overview = client.update_rule(owner, rule.key, make_rule(name="Rent 2024"))
    assert overview.rule.is_active is False
    assert overview.rule.name == "Rent 2024"


@pytest.mark.sit
def test_list_rules_newest_first(client: RecurringRuleClient, owner: str) -> None:
    first = client.create_rule(owner, make_rule(name="Rent")).rule
    second = client.create_rule(owner, make_rule(name="Gym")).rule

    overviews = client.list_rules(owner, today=dt.date(2024, 3, 15))

    assert [overview.rule.key for overview in overviews] == [second.key, first.key]


@pytest.mark.sit
def test_toggle_inactive_deletes_future_unedited(
    client: RecurringRuleClient, owner: str, db_path: Path
) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 3, 15))
    instances = client.list_instances_for_rule(owner, rule.key)
    client.edit_entry(owner, instances[2].entry_key, amount=Decimal("520"))

    overview = client.toggle_active(
        owner,
        rule.key,
        ToggleActiveDTO(is_active=False, delete_future_generated=True),
        today=dt.date(2024, 2, 1),
    )

    assert overview.rule.is_active is False
    remaining = client.list_instances_for_rule(owner, rule.key)
    assert_scheduled_dates(remaining, ["2024-01-01", "2024-03-01"])
    assert remaining[1].is_manual_override
    with pytest.raises(NotFoundError):
        client.repository.get_entry(instances[1].entry_key)
    assert count_rows(db_path, "Entry") == 2


@pytest.mark.sit
def test_toggle_without_cleanup_keeps_entries(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 3, 15))

    client.toggle_active(
        owner, rule.key, ToggleActiveDTO(is_active=False), today=dt.date(2024, 2, 1)
    )

    assert len(client.list_instances_for_rule(owner, rule.key)) == 3


@pytest.mark.sit
def test_cleanup_only_on_deactivation(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 3, 15))

    client.toggle_active(
        owner,
        rule.key,
        ToggleActiveDTO(is_active=True, delete_future_generated=True),
        today=dt.date(2024, 2, 1),
    )

    assert len(client.list_instances_for_rule(owner, rule.key)) == 3


@pytest.mark.sit
def test_reactivation_does_not_backfill(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 1, 15))
    client.toggle_active(owner, rule.key, ToggleActiveDTO(is_active=False))
    client.sync_transactions(owner, today=dt.date(2024, 3, 15))
    assert len(client.list_instances_for_rule(owner, rule.key)) == 1

    overview = client.toggle_active(owner, rule.key, ToggleActiveDTO(is_active=True))

    assert overview.rule.is_active is True
    assert overview.created_count == 1


@pytest.mark.sit
def test_delete_rule_is_soft(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 3, 15))

    client.delete_rule(owner, rule.key, delete_future_generated=True, today=dt.date(2024, 3, 1))

    overview = client.get_rule(owner, rule.key)
    assert overview.rule.is_active is False
    remaining = client.list_instances_for_rule(owner, rule.key)
    assert_scheduled_dates(remaining, ["2024-01-01", "2024-02-01"])


@pytest.mark.sit
def test_list_upcoming_instances(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 3, 15))
    first = client.list_instances_for_rule(owner, rule.key)[0]
    client.mark_entry_as_manual_override(owner, first.entry_key)

    upcoming = client.list_instances_for_rule(
        owner, rule.key, upcoming_from=dt.date(2024, 2, 1)
    )
    assert_scheduled_dates(upcoming, ["2024-02-01", "2024-03-01"])

    everything = client.list_instances_for_rule(
        owner, rule.key, upcoming_from=dt.date(2024, 1, 1)
    )
    assert everything[0].is_manual_override


@pytest.mark.sit
def test_mark_entry_as_manual_override(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 1, 15))
    instance = client.list_instances_for_rule(owner, rule.key)[0]

    marked = client.mark_entry_as_manual_override(owner, instance.entry_key)

    assert marked is not None
    assert marked.key == instance.key
    assert marked.is_manual_override
    with pytest.raises(NotFoundError):
        client.mark_entry_as_manual_override("bob", instance.entry_key)


@pytest.mark.sit
def test_mark_override_ignores_manual_entries(client: RecurringRuleClient, owner: str) -> None:
    manual = client._run_transaction(
        lambda: client.repository.insert_entry(
            owner,
            EntryDTO(date=dt.date(2024, 1, 3), amount=Decimal("12"), direction=Direction.EXPENSE),
        )
    )

    assert client.mark_entry_as_manual_override(owner, manual.key) is None
    edited = client.edit_entry(owner, manual.key, note="Coffee")
    assert edited.note == "Coffee"
    assert not edited.is_generated


@pytest.mark.sit
def test_edit_entry_updates_and_flags(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 1, 15))
    instance = client.list_instances_for_rule(owner, rule.key)[0]

    edited = client.edit_entry(
        owner,
        instance.entry_key,
        amount="515.5",
        date=dt.date(2024, 1, 3),
        note="Paid late",
    )

    assert edited.amount == Decimal("515.50")
    assert edited.date == dt.date(2024, 1, 3)
    assert edited.note == "Paid late"
    assert client.list_instances_for_rule(owner, rule.key)[0].is_manual_override
    with pytest.raises(ValueError):
        client.edit_entry(owner, instance.entry_key, amount=Decimal("-1"))


@pytest.mark.sit
def test_categories(client: RecurringRuleClient, owner: str) -> None:
    client.add_category(owner, "Utilities")
    client.add_category(owner, "Housing")

    assert [category.name for category in client.list_categories(owner)] == [
        "Housing",
        "Utilities",
    ]
    with pytest.raises(ValueError):
        client.add_category(owner, "  ")


@pytest.mark.sit
def test_update_with_foreign_category_changes_nothing(
    client: RecurringRuleClient, owner: str
) -> None:
    rule = client.create_rule(owner, make_rule(day_of_month=8)).rule
    client.sync_transactions(owner, today=dt.date(2024, 2, 10))
    foreign = client.add_category("bob", "Housing")

    with pytest.raises(NotFoundError):
        client.update_rule(
            owner,
            rule.key,
            make_rule(
                name="Rent v2",
                day_of_month=4,
                amount_default="650",
                category_key=foreign.key,
            ),
            scope="ALL",
            today=dt.date(2024, 1, 1),
        )

    current = client.get_rule(owner, rule.key).rule
    assert current.name == "Rent"
    assert current.date_rule.day == 8
    assert current.amount.value == Decimal("500")
    assert current.category_key is None
    instances = client.list_instances_for_rule(owner, rule.key)
    assert_scheduled_dates(instances, ["2024-01-08", "2024-02-08"])
    for instance in instances:
        entry = client.repository.get_entry(instance.entry_key)
        assert entry.amount == Decimal("500.00")
        assert entry.category_key is None
        assert not instance.is_manual_override


@pytest.mark.sit
@pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity", "-1"])
def test_edit_entry_rejects_invalid_amounts(
    client: RecurringRuleClient, owner: str, amount: str
) -> None:
    rule = client.create_rule(owner, make_rule()).rule
    client.sync_transactions(owner, today=dt.date(2024, 1, 15))
    instance = client.list_instances_for_rule(owner, rule.key)[0]

    with pytest.raises(ValidationError) as excinfo:
        client.edit_entry(owner, instance.entry_key, amount=amount)

    assert "amount" in excinfo.value.details
    assert client.repository.get_entry(instance.entry_key).amount == Decimal("500.00")
    assert not client.list_instances_for_rule(owner, rule.key)[0].is_manual_override


@pytest.mark.sit
def test_rule_without_currency_uses_default(client: RecurringRuleClient, owner: str) -> None:
    rule = client.create_rule(owner, make_rule(currency=None)).rule
    assert rule.currency == "RSD"

    updated = client.update_rule(owner, rule.key, make_rule(currency=None, name="Rent v2"))
    assert updated.rule.currency == "RSD"
