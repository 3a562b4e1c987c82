"""SQLiteStore: local database backend for larger histories.

Schema:
  records: one row per history record. Title and timestamps are columns so
             the table can be inspected with plain SQL; the full record
             (review result, conversations, contract text) is a JSON payload.

``save()`` replaces the table contents in one transaction, matching the
whole-list contract of BaseStore.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from contractlens_store.base import BaseStore
from contractlens_store.paths import ensure_private_dir, history_db_path

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    id          TEXT PRIMARY KEY,
    position    INTEGER NOT NULL,
    title       TEXT,
    status      TEXT,
    created_at  TEXT,
    updated_at  TEXT,
    payload     TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_records_position ON records (position);
"""


class SQLiteStore(BaseStore):
    """Stores review history in a local SQLite database file.

    The database file path defaults to ``history.db`` in the application
    directory. Configure via .contractlens.yml: ``store: sqlite`` and
    ``store_path: /path/to/history.db``.
    """

    def __init__(self, db_path: str | Path | None = None):
        path = Path(db_path).expanduser() if db_path else history_db_path()
        if str(path) != ":memory:":
            ensure_private_dir(path.parent)
        # Saves run in a worker thread, loads may run in another.
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def load(self) -> list[dict]:
        rows = self._conn.execute("SELECT payload FROM records ORDER BY position").fetchall()
        return [json.loads(row["payload"]) for row in rows]

    def save(self, records: list[dict]) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM records")
            self._conn.executemany(
                """
                INSERT INTO records (id, position, title, status, created_at, updated_at, payload)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        record["id"],
                        position,
                        record.get("title"),
                        record.get("status"),
                        record.get("created_at"),
                        record.get("updated_at"),
                        json.dumps(record, ensure_ascii=False),
                    )
                    for position, record in enumerate(records)
                ],
            )
        logger.debug("Saved %d history records to SQLite", len(records))

    def close(self) -> None:
        self._conn.close()
