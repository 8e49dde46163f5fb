"""SQLiteStore: primary storage backend using stdlib sqlite3."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path

from ..core.store import MemoryStore
from ..types import MemoryState
from .helpers import dt_to_str, str_to_dt

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS memory_state (
    conversation_id TEXT PRIMARY KEY,
    summary TEXT NOT NULL DEFAULT '',
    last_index INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT,
    revision INTEGER NOT NULL DEFAULT 0,
    pruned_json TEXT NOT NULL DEFAULT '[]',
    last_error TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS settings (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    settings_json TEXT NOT NULL,
    saved_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


def _row_to_memory(row: sqlite3.Row) -> MemoryState:
    return MemoryState(
        conversation_id=row["conversation_id"],
        summary=row["summary"],
        last_index=row["last_index"],
        updated_at=str_to_dt(row["updated_at"]),
        revision=row["revision"],
        pruned=json.loads(row["pruned_json"]),
        last_error=row["last_error"],
    )


class SQLiteStore(MemoryStore):
    """One row per conversation plus a single settings row."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        # Debounced saves arrive on timer threads
        self._lock = threading.Lock()
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def load_memory(self, conversation_id: str) -> MemoryState | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM memory_state WHERE conversation_id = ?",
                (conversation_id,),
            ).fetchone()
        return _row_to_memory(row) if row else None

    def save_memory(self, state: MemoryState) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                """INSERT OR REPLACE INTO memory_state
                (conversation_id, summary, last_index, updated_at, revision, pruned_json, last_error)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    state.conversation_id,
                    state.summary,
                    state.last_index,
                    dt_to_str(state.updated_at),
                    state.revision,
                    json.dumps(sorted(state.pruned)),
                    state.last_error,
                ),
            )
            conn.commit()

    def delete_memory(self, conversation_id: str) -> bool:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(
                "DELETE FROM memory_state WHERE conversation_id = ?",
                (conversation_id,),
            )
            conn.commit()
        return cursor.rowcount > 0

    def list_conversations(self) -> list[str]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT conversation_id FROM memory_state ORDER BY conversation_id"
            ).fetchall()
        return [r["conversation_id"] for r in rows]

    def load_settings(self) -> dict | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT settings_json FROM settings WHERE id = 1"
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["settings_json"])
        except json.JSONDecodeError:
            return None

    def save_settings(self, settings: dict) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                "INSERT OR REPLACE INTO settings (id, settings_json) VALUES (1, ?)",
                (json.dumps(settings),),
            )
            conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
