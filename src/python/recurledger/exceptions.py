"""Custom exception types for recurledger."""

from __future__ import annotations

from typing import Any


class NotFoundError(Exception):
    """Raised when a requested record does not exist or is not owned by the caller."""


class ValidationError(ValueError):
    """Raised when a rule violates a cross-field invariant."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ScheduleInvariantError(RuntimeError):
    """Raised when scheduled dates stop increasing across consecutive months."""
