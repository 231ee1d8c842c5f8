from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import config
from .logging_utils import get_logger

log = get_logger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _db_path() -> Path:
    return config.APP_DB_PATH


def _connect(db_path: Path | None = None) -> sqlite3.Connection:
    db_path = db_path or _db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def init_db() -> None:
    conn = _connect()
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS chat_sessions (
              session_id TEXT PRIMARY KEY,
              state_json TEXT NOT NULL,
              created_at TEXT NOT NULL,
              updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_chat_sessions_updated
              ON chat_sessions(updated_at);
            """
        )
        conn.commit()
    finally:
        conn.close()
    log.info("Session store ready at %s", _db_path())


def load_session_state(session_id: str) -> dict[str, Any] | None:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT state_json FROM chat_sessions WHERE session_id = ?",
            (session_id,),
        ).fetchone()
    finally:
        conn.close()
    if not row:
        return None
    try:
        data = json.loads(row["state_json"])
    except json.JSONDecodeError:
        log.warning("Discarding unreadable session state for session %s", session_id)
        return None
    return data if isinstance(data, dict) else None


def save_session_state(session_id: str, state: dict[str, Any]) -> None:
    now = _utc_now()
    conn = _connect()
    try:
        conn.execute(
            """
            INSERT INTO chat_sessions(session_id, state_json, created_at, updated_at)
            VALUES(?, ?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET
              state_json = excluded.state_json,
              updated_at = excluded.updated_at
            """,
            (session_id, json.dumps(state, ensure_ascii=False), now, now),
        )
        conn.commit()
    finally:
        conn.close()


def delete_session_state(session_id: str) -> None:
    conn = _connect()
    try:
        conn.execute("DELETE FROM chat_sessions WHERE session_id = ?", (session_id,))
        conn.commit()
    finally:
        conn.close()
