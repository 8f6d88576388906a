from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable

import streamlit as st

from shopledger.schema import SCHEMA_SQL


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    conn = _connect(db_path)
    ensure_schema(conn)
    return conn


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs ----
    # Items got a vendor field after the first release
    if not _column_exists(conn, "items", "vendor"):
        conn.execute("ALTER TABLE items ADD COLUMN vendor TEXT NOT NULL DEFAULT '';")

    # Purchases are soft-deleted so the history keeps the record
    if not _column_exists(conn, "purchases", "deleted"):
        conn.execute("ALTER TABLE purchases ADD COLUMN deleted INTEGER NOT NULL DEFAULT 0;")
        conn.execute("ALTER TABLE purchases ADD COLUMN deleted_at TEXT;")
        conn.execute("ALTER TABLE purchases ADD COLUMN deleted_by INTEGER;")

    conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    cur = conn.execute(sql, tuple(params))
    conn.commit()
    last = cur.lastrowid
    cur.close()
    return int(last or 0)
