"""Pytest configuration and fixtures.

Integration tests run against a temporary SQLite database built from the
schema statements in recurledger.schema.
"""
from __future__ import annotations

from pathlib import Path
import sys

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src" / "python"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config lookup at a file that does not exist."""
    path = tmp_path / "missing-config.json"
    monkeypatch.setenv("RECURLEDGER_CONFIG", str(path))
    return path


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    """Empty database with the recurledger schema."""
    from recurledger.repository import Repository

    path = tmp_path / "recurledger.db"
    repo = Repository(path)
    repo.connect()
    try:
        repo.initialize_schema()
    finally:
        repo.close()
    return path


@pytest.fixture()
def client(db_path: Path):
    """Connected client on the temporary database."""
    from recurledger.client import RecurringRuleClient

    with RecurringRuleClient(db_path=db_path) as connected:
        yield connected


@pytest.fixture()
def owner() -> str:
    return "alice"


@pytest.fixture()
def sample_rule_fields() -> dict:
    return {
        "name": "Rent",
        "kind": "BILL",
        "direction": "EXPENSE",
        "start_date": "2024-01-01",
        "end_type": "OPEN_ENDED",
        "amount_default": "500",
        "day_of_month": 1,
        "currency": "EUR",
        "note": "Monthly rent",
    }
