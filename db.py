import json
import os
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Optional

from db_pool import SQLiteConnectionPool

DB_PATH = os.getenv("DB_PATH", "data.db")

_pool = SQLiteConnectionPool(DB_PATH, max_connections=10)


def configure(path: str) -> None:
    """Point the module at another database file (tests, startup defaults)."""
    global DB_PATH, _pool
    _pool.close_all()
    DB_PATH = path
    _pool = SQLiteConnectionPool(DB_PATH, max_connections=10)


def _conn():
    """Return a context manager for acquiring a pooled SQLite connection."""
    return _pool.get_connection()


def _exec(sql: str, params: Iterable = ()):
    with _pool.get_connection() as con:
        cur = con.execute(sql, params)
        con.commit()
        return cur


def _query(sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
    with _pool.get_connection() as con:
        cur = con.execute(sql, params)
        return cur.fetchall()


def init():
    if DB_PATH != ":memory:":
        Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    with _conn() as con:
        con.executescript(
            """
            CREATE TABLE IF NOT EXISTS storage_slots (
              device_id   TEXT NOT NULL,
              slot        TEXT NOT NULL,
              value       TEXT NOT NULL,
              updated_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
              PRIMARY KEY (device_id, slot)
            );
            """
        )
        con.commit()


def json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


# -------------- storage slots --------------
def read_slot(device_id: str, slot: str) -> Optional[str]:
    rows = _query(
        "SELECT value FROM storage_slots WHERE device_id=? AND slot=?",
        (device_id, slot),
    )
    if not rows:
        return None
    return rows[0]["value"]


def write_slot(device_id: str, slot: str, value: str) -> None:
    """Overwrite one slot; the whole serialized list is replaced at once."""
    _exec(
        """
        INSERT INTO storage_slots(device_id, slot, value, updated_at)
        VALUES (?,?,?,CURRENT_TIMESTAMP)
        ON CONFLICT(device_id, slot) DO UPDATE SET
          value=excluded.value,
          updated_at=CURRENT_TIMESTAMP
        """,
        (device_id, slot, value),
    )


def delete_slot(device_id: str, slot: str) -> None:
    _exec("DELETE FROM storage_slots WHERE device_id=? AND slot=?", (device_id, slot))


def list_slots(device_id: str) -> list[str]:
    rows = _query(
        "SELECT slot FROM storage_slots WHERE device_id=? ORDER BY slot",
        (device_id,),
    )
    return [row["slot"] for row in rows]
