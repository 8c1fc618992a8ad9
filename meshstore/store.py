# store.py

from __future__ import annotations
import logging
import sqlite3
import threading
from typing import Any, Mapping, Optional, Sequence

from .errors import DuplicateRaceError, PersistenceError

logger = logging.getLogger(__name__)

PEERS = "peers"
MESSAGES = "messages"
TABLES = (PEERS, MESSAGES)

SCHEMA = """
CREATE TABLE IF NOT EXISTS peers (
id INTEGER PRIMARY KEY AUTOINCREMENT,
pubkey BLOB NOT NULL UNIQUE,
seckey BLOB,
alias TEXT NOT NULL,
last_seen REAL NOT NULL,
raw_pkt BLOB
);

CREATE TABLE IF NOT EXISTS messages (
id INTEGER PRIMARY KEY AUTOINCREMENT,
signature BLOB NOT NULL UNIQUE,
peer_id INTEGER NOT NULL REFERENCES peers(id),
body BLOB,
authored_date REAL NOT NULL,
received_date REAL NOT NULL,
reply_sig BLOB,
raw_pkt BLOB NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_reply_sig ON messages(reply_sig);
"""


class Store:
    """
    Structured storage over a single sqlite connection.

    Every call is one committed unit guarded by a lock, so callers on
    different threads never observe a partial write.
    """

    def __init__(self, path: str):
        self.path = path
        self.db = sqlite3.connect(path, check_same_thread=False)
        self.db.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self.db.execute("PRAGMA foreign_keys = ON;")
        if path != ":memory:":
            self.db.execute("PRAGMA journal_mode=WAL;")
        self.db.executescript(SCHEMA)

    def close(self):
        with self._lock:
            self.db.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc):
        self.close()

    # ---------- collaborator API ----------

    def insert(self, table: str, fields: Mapping[str, Any]) -> sqlite3.Row:
        """Insert one row and return it as stored, generated id included."""
        _check_table(table)
        cols = list(fields)
        q = "INSERT INTO %s(%s) VALUES (%s)" % (table, ",".join(cols), ",".join("?" * len(cols)))
        with self._lock:
            try:
                cur = self.db.execute(q, [fields[c] for c in cols])
                row = self.db.execute("SELECT * FROM %s WHERE id=?" % table, (cur.lastrowid,)).fetchone()
                self.db.commit()
            except sqlite3.IntegrityError as e:
                self.db.rollback()
                if "UNIQUE" in str(e):
                    raise DuplicateRaceError(table, str(e)) from e
                logger.error("insert into %s rejected: %s", table, e)
                raise PersistenceError(f"insert into {table} rejected: {e}") from e
            except sqlite3.Error as e:
                self.db.rollback()
                logger.error("insert into %s failed: %s", table, e)
                raise PersistenceError(f"insert into {table} failed: {e}") from e
        if row is None:
            logger.error("row inserted into %s could not be read back", table)
            raise PersistenceError(f"row inserted into {table} could not be read back")
        return row

    def update(self, table: str, fields: Mapping[str, Any], where: str, args: Sequence[Any] = ()) -> int:
        _check_table(table)
        cols = list(fields)
        q = "UPDATE %s SET %s WHERE %s" % (table, ",".join(f"{c}=?" for c in cols), where)
        with self._lock:
            try:
                cur = self.db.execute(q, [fields[c] for c in cols] + list(args))
                self.db.commit()
            except sqlite3.Error as e:
                self.db.rollback()
                logger.error("update of %s failed: %s", table, e)
                raise PersistenceError(f"update of {table} failed: {e}") from e
        return cur.rowcount

    def query(self, table: str, where: Optional[str] = None, args: Sequence[Any] = (),
              order_by: str = "id", limit: Optional[int] = None) -> list[sqlite3.Row]:
        """Rows of ``table`` matching ``where``; no predicate means a full scan."""
        _check_table(table)
        q = "SELECT * FROM %s" % table
        if where:
            q += " WHERE " + where
        q += " ORDER BY " + order_by
        if limit is not None:
            q += " LIMIT %d" % int(limit)
        with self._lock:
            try:
                return self.db.execute(q, tuple(args)).fetchall()
            except sqlite3.Error as e:
                logger.error("query of %s failed: %s", table, e)
                raise PersistenceError(f"query of {table} failed: {e}") from e

    def count(self, table: str) -> int:
        _check_table(table)
        with self._lock:
            try:
                return self.db.execute("SELECT COUNT(*) FROM %s" % table).fetchone()[0]
            except sqlite3.Error as e:
                logger.error("count of %s failed: %s", table, e)
                raise PersistenceError(f"count of {table} failed: {e}") from e


def _check_table(table: str):
    if table not in TABLES:
        raise ValueError(f"unknown table {table!r}")
