"""Database schema constants."""

from __future__ import annotations

FLAG_Y = "Y"
FLAG_N = "N"

DEFAULT_CURRENCY = "RSD"
DEFAULT_OWNER = "default"

END_TYPE_FIXED_TERM = "FIXED_TERM"
END_TYPE_OPEN_ENDED = "OPEN_ENDED"
END_TYPES = (END_TYPE_FIXED_TERM, END_TYPE_OPEN_ENDED)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

RECURRING_RULE_COLUMNS = [
    "key",
    "owner",
    "name",
    "kind",
    "direction",
    "catKey",
    "currency",
    "amountDefault",
    "amountIsVariable",
    "dayOfMonth",
    "dateIsVariable",
    "startDate",
    "endType",
    "totalOccurrences",
    "note",
    "isActive",
    "createdAt",
    "updatedAt",
]

RECURRING_INSTANCE_COLUMNS = [
    "key",
    "ruleKey",
    "entryKey",
    "scheduledFor",
    "occurrenceIndex",
    "isManualOverride",
    "createdAt",
]

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS Category (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        owner TEXT NOT NULL,
        name TEXT NOT NULL,
        timeStamp TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS RecurringRule (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        owner TEXT NOT NULL,
        name TEXT NOT NULL,
        kind TEXT NOT NULL,
        direction TEXT NOT NULL,
        catKey INTEGER REFERENCES Category(key),
        currency TEXT NOT NULL,
        amountDefault TEXT,
        amountIsVariable TEXT NOT NULL DEFAULT 'N',
        dayOfMonth INTEGER,
        dateIsVariable TEXT NOT NULL DEFAULT 'N',
        startDate TEXT NOT NULL,
        endType TEXT NOT NULL,
        totalOccurrences INTEGER,
        note TEXT,
        isActive TEXT NOT NULL DEFAULT 'Y',
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Entry (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        owner TEXT NOT NULL,
        date TEXT NOT NULL,
        amount TEXT NOT NULL,
        direction TEXT NOT NULL,
        catKey INTEGER REFERENCES Category(key),
        currency TEXT NOT NULL,
        note TEXT,
        recurringKey INTEGER REFERENCES RecurringRule(key),
        scheduledFor TEXT,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS RecurringInstance (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        ruleKey INTEGER NOT NULL REFERENCES RecurringRule(key),
        entryKey INTEGER NOT NULL UNIQUE REFERENCES Entry(key),
        scheduledFor TEXT NOT NULL,
        occurrenceIndex INTEGER,
        isManualOverride TEXT NOT NULL DEFAULT 'N',
        createdAt TEXT NOT NULL
    )
    """,
    # One instance per rule and calendar month, whatever the day.
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idxRecurringInstanceMonth
    ON RecurringInstance (ruleKey, substr(scheduledFor, 1, 7))
    """,
    """
    CREATE INDEX IF NOT EXISTS idxRecurringRuleOwner
    ON RecurringRule (owner, isActive)
    """,
    """
    CREATE INDEX IF NOT EXISTS idxEntryOwnerDate
    ON Entry (owner, date)
    """,
]
