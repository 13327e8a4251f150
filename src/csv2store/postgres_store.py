"""PostgreSQL implementation of DocumentStore."""

from queue import Empty, Queue
from typing import Any

import psycopg2

from csv2store.store.service import DocumentStore
from csv2store.store.types import EXISTS, OK, StoreResult, other, permanent, transient

DOCUMENTS_DDL = """
CREATE TABLE IF NOT EXISTS documents (
    key       TEXT PRIMARY KEY,
    document  JSONB NOT NULL
)
"""

# SQLSTATE classes: https://www.postgresql.org/docs/current/errcodes-appendix.html
TRANSIENT_SQLSTATES = {
    "53200",  # out_of_memory
    "53300",  # too_many_connections
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "57P03",  # cannot_connect_now
}
PERMANENT_SQLSTATES = {
    "53100",  # disk_full
}


class PostgresDocumentStore(DocumentStore):
    """PostgreSQL backend using psycopg2.

    Thread-safe via a connection pool (Queue). Each operation acquires a
    dedicated connection and returns it on exit.
    """

    def __init__(self, dsn: str, pool_size: int = 4):
        self._dsn = dsn
        self._pool_size = pool_size
        self._pool: Queue = Queue(maxsize=pool_size)

    def connect(self) -> None:
        for _ in range(self._pool_size):
            conn = psycopg2.connect(self._dsn)
            conn.autocommit = False
            self._pool.put(conn)
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute(DOCUMENTS_DDL)
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

    def _acquire(self):
        return self._pool.get(timeout=30)

    def _release(self, conn) -> None:
        self._pool.put(conn)

    def add(self, key: str, document: str) -> StoreResult:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "INSERT INTO documents (key, document) VALUES (%s, %s) "
                    "ON CONFLICT (key) DO NOTHING",
                    (key, document),
                )
                inserted = cur.rowcount
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            return classify_error(e)
        finally:
            self._release(conn)
        if not inserted:
            return other(EXISTS, f"key '{key}' already exists")
        return OK

    def get(self, key: str) -> dict[str, Any] | None:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT document FROM documents WHERE key = %s", (key,))
                row = cur.fetchone()
            conn.commit()
        finally:
            self._release(conn)
        # psycopg2 decodes JSONB into Python objects
        return row[0] if row else None

    def remove(self, key: str) -> bool:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM documents WHERE key = %s", (key,))
                deleted = cur.rowcount
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)
        return deleted > 0


def classify_error(error: psycopg2.Error) -> StoreResult:
    """Map a psycopg2 error onto a StoreResult by SQLSTATE."""
    code = error.pgcode
    message = (error.pgerror or str(error)).strip()
    if code in TRANSIENT_SQLSTATES:
        return transient(code, message)
    if code in PERMANENT_SQLSTATES:
        return permanent(code, message)
    return other(code, message)
