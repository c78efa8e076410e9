from __future__ import annotations

from pathlib import Path
import sqlite3


def open_connection(db_path: Path) -> sqlite3.Connection:
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    return connection


def count_rows(db_path: Path, table: str) -> int:
    with open_connection(db_path) as connection:
        row = connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
    return int(row[0])
