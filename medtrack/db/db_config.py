# medtrack/db/db_config.py

import sqlite3
from pathlib import Path
from typing import Union

from medtrack.core.settings import MEDTRACK_DB_PATH


# Base project directory (repository root)
BASE_DIR = Path(__file__).resolve().parents[2]

SCHEMA = """
CREATE TABLE IF NOT EXISTS prescriptions (
    id                TEXT PRIMARY KEY,
    user_id           TEXT NOT NULL,
    prescribed_by     TEXT NOT NULL,
    prescribed_date   TEXT NOT NULL,
    refills           INTEGER NOT NULL DEFAULT 0,
    refills_remaining INTEGER NOT NULL DEFAULT 0,
    next_refill_date  TEXT,
    pharmacy          TEXT,
    created_at        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_prescriptions_user ON prescriptions(user_id);

CREATE TABLE IF NOT EXISTS medications (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    prescription_id TEXT REFERENCES prescriptions(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    dosage          TEXT NOT NULL,
    frequency       TEXT NOT NULL,
    instructions    TEXT,
    purpose         TEXT,
    start_date      TEXT NOT NULL,
    end_date        TEXT,
    color           TEXT,
    category        TEXT,
    remaining_doses INTEGER,
    total_doses     INTEGER,
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_medications_user ON medications(user_id);
CREATE INDEX IF NOT EXISTS idx_medications_prescription ON medications(prescription_id);

CREATE TABLE IF NOT EXISTS adherence_records (
    id             TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    medication_id  TEXT NOT NULL REFERENCES medications(id) ON DELETE CASCADE,
    scheduled_time TEXT NOT NULL,
    taken_time     TEXT,
    skipped        INTEGER NOT NULL DEFAULT 0,
    notes          TEXT,
    UNIQUE (medication_id, scheduled_time)
);
CREATE INDEX IF NOT EXISTS idx_adherence_user_time ON adherence_records(user_id, scheduled_time);
"""


def resolve_db_path(db_path: Union[str, Path] = MEDTRACK_DB_PATH) -> Path:
    path = Path(db_path)
    if not path.is_absolute():
        path = BASE_DIR / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def get_sqlite_connection(db_path: Union[str, Path] = MEDTRACK_DB_PATH) -> sqlite3.Connection:
    """
    Create and configure SQLite connection with recommended PRAGMA settings,
    and make sure the schema exists.
    """
    conn = sqlite3.connect(str(resolve_db_path(db_path)), check_same_thread=False)
    conn.row_factory = sqlite3.Row

    # Performance & concurrency settings
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")
    conn.execute("PRAGMA foreign_keys=ON;")

    conn.executescript(SCHEMA)
    return conn
