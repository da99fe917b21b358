import os
import sqlite3
import threading
from typing import List, Optional

from .errors import UpstreamServiceFailure
from .models import StoredRecord

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS reports (
  id                 INTEGER PRIMARY KEY AUTOINCREMENT,
  first_name         TEXT,
  last_name          TEXT,
  email              TEXT,
  phone              TEXT,
  property_address   TEXT,
  payment_id         TEXT,
  payment_amount     REAL,
  report_data        TEXT,              -- CostEstimate JSON
  termites_mentioned BOOLEAN,
  pests_mentioned    BOOLEAN,
  rot_mentioned      BOOLEAN,
  created_at         DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""

INSERT_SQL = """
INSERT INTO reports (
  first_name, last_name, email, phone, property_address,
  payment_id, payment_amount, report_data,
  termites_mentioned, pests_mentioned, rot_mentioned
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


class ReportStore:
    """Append-only SQLite table of processed submissions.

    One connection is opened when the store is built and shared by the worker
    threads the pipeline runs on; a lock serializes access to it.
    """

    def __init__(self, db_path: str = "./repair_intel.db") -> None:
        self.db_path = db_path
        folder = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(folder, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(SCHEMA_SQL)
            self._conn.commit()
        print("DEBUG[storage]: report DB ready at", db_path)

    def insert_record(self, record: StoredRecord) -> int:
        params = (
            record.first_name,
            record.last_name,
            record.email,
            record.phone,
            record.property_address,
            record.payment_id,
            record.payment_amount,
            record.report_data,
            record.termites_mentioned,
            record.pests_mentioned,
            record.rot_mentioned,
        )
        try:
            with self._lock:
                cur = self._conn.execute(INSERT_SQL, params)
                self._conn.commit()
                record_id = int(cur.lastrowid)
        except sqlite3.Error as e:
            raise UpstreamServiceFailure(f"Could not save report: {e}", service="sqlite") from e
        print("DEBUG[storage]: inserted report id:", record_id)
        return record_id

    def get_record(self, record_id: int) -> Optional[StoredRecord]:
        with self._lock:
            row = self._conn.execute("SELECT * FROM reports WHERE id = ?", (record_id,)).fetchone()
        return self._to_record(row) if row else None

    def list_records(self, limit: int = 50) -> List[StoredRecord]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM reports ORDER BY id DESC LIMIT ?", (max(1, int(limit)),)
            ).fetchall()
        return [self._to_record(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _to_record(row: sqlite3.Row) -> StoredRecord:
        data = dict(row)
        for flag in ("termites_mentioned", "pests_mentioned", "rot_mentioned"):
            data[flag] = bool(data.get(flag))
        for text_field in ("first_name", "last_name", "email", "phone", "property_address", "report_data"):
            data[text_field] = data.get(text_field) or ""
        return StoredRecord(**data)
