"""SQLite repository implementation for recurledger."""

from __future__ import annotations

from pathlib import Path
import datetime as dt
from decimal import Decimal
import sqlite3

from recurledger.exceptions import NotFoundError
from recurledger.models import (
    CategoryRecord,
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
    VariableAmount,
    VariableDate,
)
from recurledger.persistence import UNSET, PersistenceBackend
from recurledger.schema import (
    DEFAULT_CURRENCY,
    END_TYPE_FIXED_TERM,
    END_TYPE_OPEN_ENDED,
    FLAG_N,
    FLAG_Y,
    SCHEMA_STATEMENTS,
    TIMESTAMP_FORMAT,
)

RULE_SELECT = """
    SELECT
        key,
        owner,
        name,
        kind,
        direction,
        catKey,
        currency,
        amountDefault,
        amountIsVariable,
        dayOfMonth,
        dateIsVariable,
        startDate,
        endType,
        totalOccurrences,
        note,
        isActive,
        createdAt,
        updatedAt
    FROM RecurringRule
"""

INSTANCE_SELECT = """
    SELECT
        key,
        ruleKey,
        entryKey,
        scheduledFor,
        occurrenceIndex,
        isManualOverride,
        createdAt
    FROM RecurringInstance
"""

ENTRY_SELECT = """
    SELECT
        key,
        owner,
        date,
        amount,
        direction,
        catKey,
        currency,
        note,
        recurringKey,
        scheduledFor,
        createdAt,
        updatedAt
    FROM Entry
"""


class Repository(PersistenceBackend):
    """SQLite-backed persistence implementation."""

    def __init__(self, db_path: str | Path) -> None:
        """Create a repository for the given database path."""
        self.db_path = Path(db_path)
        self.connection: sqlite3.Connection | None = None

    @staticmethod
    def _round_amount(amount: Decimal) -> Decimal:
        """Round amount to two decimal places."""
        return Decimal(str(amount)).quantize(Decimal("0.01"))

    @staticmethod
    def _now() -> str:
        return dt.datetime.now().replace(microsecond=0).strftime(TIMESTAMP_FORMAT)

    @staticmethod
    def _flag(value: bool) -> str:
        return FLAG_Y if value else FLAG_N

    def connect(self) -> None:
        """Open the database connection."""
        if self.connection is None:
            # Autocommit mode; transactions are opened explicitly.
            self.connection = sqlite3.connect(self.db_path, isolation_level=None)
            self.connection.row_factory = sqlite3.Row
            self.connection.execute("PRAGMA foreign_keys = ON")

    def close(self) -> None:
        """Close the database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def initialize_schema(self) -> None:
        """Create tables and indexes when missing."""
        self._ensure_connection()
        for statement in SCHEMA_STATEMENTS:
            self.connection.execute(statement)

    def begin_transaction(self, immediate: bool = False) -> None:
        """Begin a database transaction."""
        self._ensure_connection()
        self.connection.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._ensure_connection()
        self.connection.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self._ensure_connection()
        self.connection.rollback()

    # Categories

    def insert_category(self, owner: str, name: str) -> CategoryRecord:
        """Insert a category and return the record."""
        self._ensure_connection()
        cursor = self.connection.execute(
            "INSERT INTO Category (owner, name, timeStamp) VALUES (?, ?, ?)",
            (owner, name, self._now()),
        )
        return CategoryRecord(key=int(cursor.lastrowid), owner=owner, name=name)

    def get_category(self, key: int, owner: str) -> CategoryRecord:
        """Fetch a category owned by the owner."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT key, owner, name FROM Category WHERE key = ? AND owner = ?",
            (key, owner),
        ).fetchone()
        if row is None:
            raise NotFoundError("Category not found")
        return CategoryRecord(key=row["key"], owner=row["owner"], name=row["name"])

    def list_categories(self, owner: str) -> list[CategoryRecord]:
        """List the owner's categories ordered by name."""
        self._ensure_connection()
        rows = self.connection.execute(
            "SELECT key, owner, name FROM Category WHERE owner = ? ORDER BY name, key",
            (owner,),
        ).fetchall()
        return [
            CategoryRecord(key=row["key"], owner=row["owner"], name=row["name"])
            for row in rows
        ]

    # Recurring rules

    def insert_rule(self, owner: str, rule: RecurringRuleDTO) -> RecurringRuleRecord:
        """Insert a new active rule and return the record."""
        self._ensure_connection()
        columns = self._rule_columns(rule)
        timestamp = self._now()
        cursor = self.connection.execute(
            """
            INSERT INTO RecurringRule (
                owner,
                name,
                kind,
                direction,
                catKey,
                currency,
                amountDefault,
                amountIsVariable,
                dayOfMonth,
                dateIsVariable,
                startDate,
                endType,
                totalOccurrences,
                note,
                isActive,
                createdAt,
                updatedAt
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                owner,
                *columns,
                FLAG_Y,
                timestamp,
                timestamp,
            ),
        )
        return self.get_rule(int(cursor.lastrowid), owner)

    def get_rule(self, key: int, owner: str) -> RecurringRuleRecord:
        """Fetch a single rule owned by the owner."""
        self._ensure_connection()
        row = self.connection.execute(
            f"{RULE_SELECT} WHERE key = ? AND owner = ?",
            (key, owner),
        ).fetchone()
        if row is None:
            raise NotFoundError("Recurring rule not found")
        return self._row_to_rule(row)

    def list_rules(self, owner: str) -> list[RecurringRuleRecord]:
        """List all of the owner's rules, newest first."""
        self._ensure_connection()
        rows = self.connection.execute(
            f"{RULE_SELECT} WHERE owner = ? ORDER BY createdAt DESC, key DESC",
            (owner,),
        ).fetchall()
        return [self._row_to_rule(row) for row in rows]

    def list_active_rules(self, owner: str) -> list[RecurringRuleRecord]:
        """List the owner's active rules in creation order."""
        self._ensure_connection()
        rows = self.connection.execute(
            f"{RULE_SELECT} WHERE owner = ? AND isActive = ? ORDER BY key",
            (owner, FLAG_Y),
        ).fetchall()
        return [self._row_to_rule(row) for row in rows]

    def update_rule(self, key: int, owner: str, rule: RecurringRuleDTO) -> RecurringRuleRecord:
        """Overwrite every field of a rule and return the latest record."""
        self._ensure_connection()
        current = self.get_rule(key, owner)
        is_active = current.is_active if rule.is_active is None else rule.is_active
        self.connection.execute(
            """
            UPDATE RecurringRule SET
                name = ?,
                kind = ?,
                direction = ?,
                catKey = ?,
                currency = ?,
                amountDefault = ?,
                amountIsVariable = ?,
                dayOfMonth = ?,
                dateIsVariable = ?,
                startDate = ?,
                endType = ?,
                totalOccurrences = ?,
                note = ?,
                isActive = ?,
                updatedAt = ?
            WHERE key = ? AND owner = ?
            """,
            (
                *self._rule_columns(rule),
                self._flag(is_active),
                self._now(),
                key,
                owner,
            ),
        )
        return self.get_rule(key, owner)

    def set_rule_active(self, key: int, owner: str, is_active: bool) -> RecurringRuleRecord:
        """Set the active flag of a rule and return the latest record."""
        self._ensure_connection()
        self.get_rule(key, owner)
        self.connection.execute(
            "UPDATE RecurringRule SET isActive = ?, updatedAt = ? WHERE key = ? AND owner = ?",
            (self._flag(is_active), self._now(), key, owner),
        )
        return self.get_rule(key, owner)

    # Recurring instances

    def instance_exists_for_month(self, rule_key: int, year: int, month: int) -> bool:
        """Check whether any instance of the rule falls in the given month."""
        self._ensure_connection()
        row = self.connection.execute(
            """
            SELECT 1 FROM RecurringInstance
            WHERE ruleKey = ?
              AND substr(scheduledFor, 1, 7) = ?
            LIMIT 1
            """,
            (rule_key, f"{year:04d}-{month:02d}"),
        ).fetchone()
        return row is not None

    def count_instances(self, rule_key: int) -> int:
        """Count instances generated for a rule."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT COUNT(*) FROM RecurringInstance WHERE ruleKey = ?",
            (rule_key,),
        ).fetchone()
        return int(row[0])

    def list_instances(self, rule_key: int) -> list[RecurringInstanceRecord]:
        """List all instances of a rule ordered by scheduled date."""
        return self._query_instances("ruleKey = ?", (rule_key,))

    def list_non_override_instances(self, rule_key: int) -> list[RecurringInstanceRecord]:
        """List instances of a rule not edited by the user."""
        return self._query_instances(
            "ruleKey = ? AND isManualOverride = ?",
            (rule_key, FLAG_N),
        )

    def list_future_non_override_instances(
        self, rule_key: int, today: dt.date
    ) -> list[RecurringInstanceRecord]:
        """List unedited instances scheduled on or after today."""
        return self._query_instances(
            "ruleKey = ? AND scheduledFor >= ? AND isManualOverride = ?",
            (rule_key, today.isoformat(), FLAG_N),
        )

    def list_future_instances(self, rule_key: int, today: dt.date) -> list[RecurringInstanceRecord]:
        """List every instance scheduled on or after today."""
        return self._query_instances(
            "ruleKey = ? AND scheduledFor >= ?",
            (rule_key, today.isoformat()),
        )

    def find_instance_by_entry(self, entry_key: int) -> RecurringInstanceRecord | None:
        """Fetch the instance linked to an entry, if any."""
        self._ensure_connection()
        row = self.connection.execute(
            f"{INSTANCE_SELECT} WHERE entryKey = ?",
            (entry_key,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_instance(row)

    def insert_instance(
        self,
        rule_key: int,
        entry_key: int,
        scheduled_for: dt.date,
        occurrence_index: int | None,
    ) -> RecurringInstanceRecord:
        """Insert an instance and return the record."""
        self._ensure_connection()
        timestamp = self._now()
        cursor = self.connection.execute(
            """
            INSERT INTO RecurringInstance (
                ruleKey,
                entryKey,
                scheduledFor,
                occurrenceIndex,
                isManualOverride,
                createdAt
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                rule_key,
                entry_key,
                scheduled_for.isoformat(),
                occurrence_index,
                FLAG_N,
                timestamp,
            ),
        )
        return RecurringInstanceRecord(
            key=int(cursor.lastrowid),
            rule_key=rule_key,
            entry_key=entry_key,
            scheduled_for=scheduled_for,
            occurrence_index=occurrence_index,
            is_manual_override=False,
            created_at=timestamp,
        )

    def update_instance_schedule(self, key: int, scheduled_for: dt.date) -> None:
        """Move an instance to a new scheduled date."""
        self._ensure_connection()
        self.connection.execute(
            "UPDATE RecurringInstance SET scheduledFor = ? WHERE key = ?",
            (scheduled_for.isoformat(), key),
        )

    def set_manual_override(self, key: int) -> None:
        """Flag an instance as manually overridden."""
        self._ensure_connection()
        self.connection.execute(
            "UPDATE RecurringInstance SET isManualOverride = ? WHERE key = ?",
            (FLAG_Y, key),
        )

    def delete_instance(self, key: int) -> None:
        """Delete an instance row."""
        self._ensure_connection()
        self.connection.execute("DELETE FROM RecurringInstance WHERE key = ?", (key,))

    # Entries

    def insert_entry(self, owner: str, entry: EntryDTO) -> EntryRecord:
        """Insert a new entry row and return the record."""
        self._ensure_connection()
        timestamp = self._now()
        cursor = self.connection.execute(
            """
            INSERT INTO Entry (
                owner,
                date,
                amount,
                direction,
                catKey,
                currency,
                note,
                recurringKey,
                scheduledFor,
                createdAt,
                updatedAt
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                owner,
                entry.date.isoformat(),
                str(self._round_amount(entry.amount)),
                entry.direction.value,
                entry.category_key,
                entry.currency,
                entry.note,
                entry.recurring_rule_key,
                entry.scheduled_for.isoformat() if entry.scheduled_for else None,
                timestamp,
                timestamp,
            ),
        )
        return self.get_entry(int(cursor.lastrowid))

    def get_entry(self, key: int, owner: str | None = None) -> EntryRecord:
        """Fetch a single entry, optionally scoped to an owner."""
        self._ensure_connection()
        query = f"{ENTRY_SELECT} WHERE key = ?"
        params: list[object] = [key]
        if owner is not None:
            query += " AND owner = ?"
            params.append(owner)
        row = self.connection.execute(query, params).fetchone()
        if row is None:
            raise NotFoundError("Entry not found")
        return EntryRecord(
            key=row["key"],
            owner=row["owner"],
            date=dt.date.fromisoformat(row["date"]),
            amount=Decimal(row["amount"]),
            direction=Direction(row["direction"]),
            category_key=row["catKey"],
            currency=row["currency"],
            note=row["note"],
            recurring_rule_key=row["recurringKey"],
            scheduled_for=dt.date.fromisoformat(row["scheduledFor"])
            if row["scheduledFor"] is not None
            else None,
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

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
        """Update an entry and return the latest record."""
        self._ensure_connection()
        updates = []
        params: list[object] = []
        if amount is not None:
            updates.append("amount = ?")
            params.append(str(self._round_amount(amount)))
        if date is not None:
            updates.append("date = ?")
            params.append(date.isoformat())
        if direction is not None:
            updates.append("direction = ?")
            params.append(Direction(direction).value)
        if currency is not None:
            updates.append("currency = ?")
            params.append(currency)
        if category_key is not UNSET:
            updates.append("catKey = ?")
            params.append(category_key)
        if note is not UNSET:
            updates.append("note = ?")
            params.append(note)
        if scheduled_for is not None:
            updates.append("scheduledFor = ?")
            params.append(scheduled_for.isoformat())
        if not updates:
            return self.get_entry(key)
        updates.append("updatedAt = ?")
        params.append(self._now())
        params.append(key)
        self.connection.execute(
            f"UPDATE Entry SET {', '.join(updates)} WHERE key = ?",
            params,
        )
        return self.get_entry(key)

    def delete_entry(self, key: int) -> None:
        """Delete an entry row."""
        self._ensure_connection()
        self.connection.execute("DELETE FROM Entry WHERE key = ?", (key,))

    def _ensure_connection(self) -> None:
        """Ensure the connection is initialized before use."""
        if self.connection is None:
            raise RuntimeError("Repository connection is not initialized")

    def _query_instances(
        self, where_clause: str, params: tuple[object, ...]
    ) -> list[RecurringInstanceRecord]:
        """Run a filtered instance query ordered by scheduled date."""
        self._ensure_connection()
        rows = self.connection.execute(
            f"{INSTANCE_SELECT} WHERE {where_clause} ORDER BY scheduledFor, key",
            params,
        ).fetchall()
        return [self._row_to_instance(row) for row in rows]

    def _rule_columns(self, rule: RecurringRuleDTO) -> tuple[object, ...]:
        """Flatten the tagged unions of a rule into column values."""
        amount_default = None
        if isinstance(rule.amount, FixedAmount):
            amount_default = str(self._round_amount(rule.amount.value))
        day_of_month = rule.date_rule.day if isinstance(rule.date_rule, FixedDay) else None
        total_occurrences = None
        end_type = END_TYPE_OPEN_ENDED
        if isinstance(rule.termination, FixedTerm):
            end_type = END_TYPE_FIXED_TERM
            total_occurrences = rule.termination.total_occurrences
        return (
            rule.name,
            rule.kind.value,
            rule.direction.value,
            rule.category_key,
            rule.currency or DEFAULT_CURRENCY,
            amount_default,
            self._flag(isinstance(rule.amount, VariableAmount)),
            day_of_month,
            self._flag(isinstance(rule.date_rule, VariableDate)),
            rule.start_date.isoformat(),
            end_type,
            total_occurrences,
            rule.note,
        )

    @staticmethod
    def _row_to_rule(row: sqlite3.Row) -> RecurringRuleRecord:
        """Rebuild the tagged unions of a rule from its row."""
        if row["amountIsVariable"] == FLAG_Y:
            amount = VariableAmount()
        else:
            amount = FixedAmount(Decimal(row["amountDefault"]))
        if row["dateIsVariable"] == FLAG_Y:
            date_rule = VariableDate()
        else:
            date_rule = FixedDay(row["dayOfMonth"])
        if row["endType"] == END_TYPE_FIXED_TERM:
            termination = FixedTerm(row["totalOccurrences"])
        else:
            termination = OpenEnded()
        return RecurringRuleRecord(
            key=row["key"],
            owner=row["owner"],
            name=row["name"],
            kind=RecurringKind(row["kind"]),
            direction=Direction(row["direction"]),
            category_key=row["catKey"],
            currency=row["currency"],
            amount=amount,
            date_rule=date_rule,
            termination=termination,
            start_date=dt.date.fromisoformat(row["startDate"]),
            note=row["note"],
            is_active=row["isActive"] == FLAG_Y,
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

    @staticmethod
    def _row_to_instance(row: sqlite3.Row) -> RecurringInstanceRecord:
        return RecurringInstanceRecord(
            key=row["key"],
            rule_key=row["ruleKey"],
            entry_key=row["entryKey"],
            scheduled_for=dt.date.fromisoformat(row["scheduledFor"]),
            occurrence_index=row["occurrenceIndex"],
            is_manual_override=row["isManualOverride"] == FLAG_Y,
            created_at=row["createdAt"],
        )
