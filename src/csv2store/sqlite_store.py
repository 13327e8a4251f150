"""SQLite implementation of DocumentStore."""

import json
import sqlite3
from queue import Empty, Queue
from typing import Any

from csv2store.store.service import DocumentStore
from csv2store.store.types import EXISTS, OK, StoreResult, other, permanent, transient

DOCUMENTS_DDL = """
CREATE TABLE IF NOT EXISTS documents (
    key       TEXT PRIMARY KEY,
    document  TEXT NOT NULL
);
"""

_TRANSIENT_CODES = {sqlite3.SQLITE_BUSY, sqlite3.SQLITE_LOCKED}
_PERMANENT_CODES = {sqlite3.SQLITE_FULL}


class SQLiteDocumentStore(DocumentStore):
    """SQLite backend using stdlib sqlite3.

    Thread-safe via a connection pool (Queue). Each operation acquires a
    dedicated connection, commits, and returns it to the pool.
    """

    def __init__(self, db_path: str, pool_size: int = 4, timeout: float = 5.0):
        self._db_path = db_path
        # every :memory: connection is its own database
        self._pool_size = 1 if db_path == ":memory:" else pool_size
        self._timeout = timeout
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=self._pool_size)

    def connect(self) -> None:
        for _ in range(self._pool_size):
            conn = sqlite3.connect(self._db_path, timeout=self._timeout, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            self._pool.put(conn)
        conn = self._acquire()
        try:
            conn.executescript(DOCUMENTS_DDL)
            conn.commit()
        finally:
            self._release(conn)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def _acquire(self) -> sqlite3.Connection:
        return self._pool.get(timeout=30)

    def _release(self, conn: sqlite3.Connection) -> None:
        self._pool.put(conn)

    def add(self, key: str, document: str) -> StoreResult:
        conn = self._acquire()
        try:
            conn.execute("INSERT INTO documents (key, document) VALUES (?, ?)", (key, document))
            conn.commit()
            return OK
        except sqlite3.IntegrityError:
            conn.rollback()
            return other(EXISTS, f"key '{key}' already exists")
        except sqlite3.Error as e:
            conn.rollback()
            return classify_error(e)
        finally:
            self._release(conn)

    def get(self, key: str) -> dict[str, Any] | None:
        conn = self._acquire()
        try:
            row = conn.execute("SELECT document FROM documents WHERE key = ?", (key,)).fetchone()
        finally:
            self._release(conn)
        return json.loads(row[0]) if row else None

    def remove(self, key: str) -> bool:
        conn = self._acquire()
        try:
            cursor = conn.execute("DELETE FROM documents WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            self._release(conn)


def classify_error(error: sqlite3.Error) -> StoreResult:
    """Map a sqlite3 error onto a StoreResult by its primary result code."""
    code = getattr(error, "sqlite_errorcode", None)
    name = getattr(error, "sqlite_errorname", None) or type(error).__name__
    if code is not None:
        code &= 0xFF  # extended -> primary result code
    if code in _TRANSIENT_CODES:
        return transient(name, str(error))
    if code in _PERMANENT_CODES:
        return permanent(name, str(error))
    return other(name, str(error))
