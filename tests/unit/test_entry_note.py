from __future__ import annotations

from recurledger.models import FixedTerm
from recurledger.sync import build_entry_note
from tests.utils.rules import make_record


def test_fixed_term_note_prefix() -> None:
    rule = make_record(
        name="Car loan",
        note="monthly installment",
        termination=FixedTerm(12),
    )

    assert build_entry_note(rule, 3) == "[3/12] Car loan - monthly installment"


def test_fixed_term_note_without_rule_note() -> None:
    rule = make_record(name="Car loan", termination=FixedTerm(12))

    assert build_entry_note(rule, 1) == "[1/12] Car loan"


def test_open_ended_note_is_rule_note() -> None:
    assert build_entry_note(make_record(note="Gym"), 7) == "Gym"
    assert build_entry_note(make_record(), 7) is None
