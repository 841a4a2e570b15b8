"""SQLite backed persistence for counseling records."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List

from .config import APP_DIR
from .errors import PersistenceError
from .models import CounselingRecord, Priority

DB_PATH = APP_DIR / "records.db"
SCHEMA_VERSION = 1
PAGE_SIZE = 20


class StorageError(PersistenceError):
    """Raised when something goes wrong while accessing the storage."""


class Storage:
    """Append-only store of counseling records.

    Columns use compact names: s=student, m=mood, l=language, o=original
    text, t=translated text, d=date, p=priority.
    """

    def __init__(self, db_path: Path = DB_PATH) -> None:
        self.db_path = Path(db_path)
        self._ensure_initialised()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open record database {self.db_path}: {exc}") from exc

    def _ensure_initialised(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    s TEXT NOT NULL,
                    m TEXT NOT NULL,
                    l TEXT NOT NULL,
                    o TEXT NOT NULL,
                    t TEXT NOT NULL,
                    d TEXT NOT NULL,
                    p TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS records_d ON records(d)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            cur = conn.execute("SELECT value FROM metadata WHERE key = ?", ("schema_version",))
            row = cur.fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO metadata(key, value) VALUES(?, ?)",
                    ("schema_version", str(SCHEMA_VERSION)),
                )

    def add_record(self, record: CounselingRecord) -> CounselingRecord:
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "INSERT INTO records(s, m, l, o, t, d, p) VALUES(?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.student,
                        record.mood,
                        record.language,
                        record.original_text,
                        record.translated_text,
                        record.created_at.isoformat(),
                        record.priority.value,
                    ),
                )
                record_id = cur.lastrowid
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to insert counseling record: {exc}") from exc
        return self.get_record(record_id)

    def get_record(self, record_id: int) -> CounselingRecord:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.execute("SELECT * FROM records WHERE id = ?", (record_id,))
            row = cur.fetchone()
            if row is None:
                raise StorageError(f"Record with id {record_id} not found")
            return _row_to_record(row)

    def list_records(self, page: int = 1, per_page: int = PAGE_SIZE) -> List[CounselingRecord]:
        """Return one page of records, newest first. Pages start at 1."""

        page = max(page, 1)
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM records ORDER BY d DESC, id DESC LIMIT ? OFFSET ?",
                (per_page, (page - 1) * per_page),
            )
            return [_row_to_record(row) for row in rows]

    def count_records(self) -> int:
        with self._connect() as conn:
            (total,) = conn.execute("SELECT COUNT(*) FROM records").fetchone()
        return total


def _row_to_record(row: sqlite3.Row) -> CounselingRecord:
    return CounselingRecord(
        id=row["id"],
        student=row["s"],
        mood=row["m"],
        language=row["l"],
        original_text=row["o"],
        translated_text=row["t"],
        created_at=datetime.fromisoformat(row["d"]),
        priority=Priority(row["p"]),
    )
