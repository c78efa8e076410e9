"""Public recurledger package exports."""

from __future__ import annotations

from recurledger.__version__ import __version__
from recurledger.client import RecurringRuleClient
from recurledger.exceptions import NotFoundError, ScheduleInvariantError, ValidationError
from recurledger.models import (
    ApplyScope,
    Direction,
    EntryDTO,
    EntryRecord,
    FixedAmount,
    FixedDay,
    FixedTerm,
    OpenEnded,
    RecurringInstanceRecord,
    RecurringKind,
    RecurringRuleDTO,
    RecurringRuleRecord,
    RuleOverview,
    SyncResult,
    ToggleActiveDTO,
    VariableAmount,
    VariableDate,
)
from recurledger.persistence import PersistenceBackend
from recurledger.repository import Repository

__all__ = [
    "__version__",
    "RecurringRuleClient",
    "NotFoundError",
    "ScheduleInvariantError",
    "ValidationError",
    "ApplyScope",
    "Direction",
    "EntryDTO",
    "EntryRecord",
    "FixedAmount",
    "FixedDay",
    "FixedTerm",
    "OpenEnded",
    "RecurringInstanceRecord",
    "RecurringKind",
    "RecurringRuleDTO",
    "RecurringRuleRecord",
    "RuleOverview",
    "SyncResult",
    "ToggleActiveDTO",
    "VariableAmount",
    "VariableDate",
    "PersistenceBackend",
    "Repository",
]
