import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from cbutils.config import DB_PATH
from cbutils.errors import StorageError
from cbutils.models import HistoryEntry

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    text          TEXT,
    image         TEXT,
    image_width   INTEGER,
    image_height  INTEGER,
    timestamp     INTEGER NOT NULL,
    size_bytes    INTEGER NOT NULL DEFAULT 0,
    source_app    TEXT,
    CHECK ((text IS NULL) != (image IS NULL))
);

CREATE INDEX IF NOT EXISTS idx_items_timestamp ON items(timestamp DESC, id DESC);
CREATE INDEX IF NOT EXISTS idx_items_text ON items(text);
CREATE INDEX IF NOT EXISTS idx_items_image ON items(image);
"""

ORDER_BY_RECENCY = "ORDER BY timestamp DESC, id DESC"


class LedgerSession:
    """Ledger operations bound to a connection whose lock the caller holds.

    Only handed out by :meth:`HistoryLedger.session`; do not keep a reference
    past the ``with`` block.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def insert(self, entry: HistoryEntry) -> int:
        cursor = self._write(
            """INSERT INTO items
               (text, image, image_width, image_height, timestamp, size_bytes, source_app)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.text,
                entry.image_ref,
                entry.image_width,
                entry.image_height,
                entry.timestamp,
                entry.size_bytes,
                entry.source_app,
            ),
        )
        return cursor.lastrowid

    def touch(self, entry_id: int, timestamp: int) -> int | None:
        """Move an entry to the top of the history; returns the timestamp it replaced."""
        row = self._read("SELECT timestamp FROM items WHERE id = ?", (entry_id,)).fetchone()
        if row is None:
            return None
        self._write("UPDATE items SET timestamp = ? WHERE id = ?", (timestamp, entry_id))
        return row["timestamp"]

    def get(self, entry_id: int) -> HistoryEntry | None:
        row = self._read("SELECT * FROM items WHERE id = ?", (entry_id,)).fetchone()
        return self._row_to_entry(row) if row else None

    def find_by_text(self, text: str) -> HistoryEntry | None:
        row = self._read(
            f"SELECT * FROM items WHERE text = ? {ORDER_BY_RECENCY} LIMIT 1", (text,)
        ).fetchone()
        return self._row_to_entry(row) if row else None

    def find_by_image_ref(self, image_ref: str) -> HistoryEntry | None:
        row = self._read(
            f"SELECT * FROM items WHERE image = ? {ORDER_BY_RECENCY} LIMIT 1", (image_ref,)
        ).fetchone()
        return self._row_to_entry(row) if row else None

    def list_all(self, limit: int | None = None) -> list[HistoryEntry]:
        rows = self._read(
            f"SELECT * FROM items {ORDER_BY_RECENCY} LIMIT ?",
            (-1 if limit is None else limit,),
        ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def search(self, query: str, limit: int | None = None) -> list[HistoryEntry]:
        if not query:
            return self.list_all(limit)
        # instr() on lower() keeps %, _ and friends literal, unlike LIKE
        rows = self._read(
            f"""SELECT * FROM items
                WHERE text IS NOT NULL AND instr(lower(text), lower(?)) > 0
                {ORDER_BY_RECENCY} LIMIT ?""",
            (query, -1 if limit is None else limit),
        ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def delete(self, entry_id: int) -> HistoryEntry | None:
        entry = self.get(entry_id)
        if entry is None:
            return None
        self._write("DELETE FROM items WHERE id = ?", (entry_id,))
        return entry

    def delete_older_than(self, cutoff_ms: int) -> list[HistoryEntry]:
        rows = self._read("SELECT * FROM items WHERE timestamp < ?", (cutoff_ms,)).fetchall()
        if rows:
            self._write("DELETE FROM items WHERE timestamp < ?", (cutoff_ms,))
        return [self._row_to_entry(r) for r in rows]

    def delete_all(self) -> list[HistoryEntry]:
        rows = self._read("SELECT * FROM items", ()).fetchall()
        self._write("DELETE FROM items", ())
        return [self._row_to_entry(r) for r in rows]

    def sum_size_bytes(self) -> int:
        row = self._read("SELECT COALESCE(SUM(size_bytes), 0) AS total FROM items", ()).fetchone()
        return row["total"]

    def count(self) -> int:
        row = self._read("SELECT COUNT(*) AS cnt FROM items", ()).fetchone()
        return row["cnt"]

    def count_image_refs(self, image_ref: str) -> int:
        row = self._read("SELECT COUNT(*) AS cnt FROM items WHERE image = ?", (image_ref,)).fetchone()
        return row["cnt"]

    def _read(self, sql: str, params: tuple) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise StorageError(f"Query failed: {e}") from e

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor
        except (sqlite3.Error, UnicodeEncodeError) as e:
            self._conn.rollback()
            raise StorageError(f"Statement failed: {e}") from e

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> HistoryEntry:
        return HistoryEntry(
            id=row["id"],
            text=row["text"],
            image_ref=row["image"],
            image_width=row["image_width"],
            image_height=row["image_height"],
            timestamp=row["timestamp"],
            size_bytes=row["size_bytes"],
            source_app=row["source_app"],
        )


class HistoryLedger:
    """Owner of the history database connection.

    Every read or write goes through :meth:`session`, which holds a single
    non-reentrant lock for the whole ``with`` block, so find-then-insert and
    find-then-touch sequences are atomic across threads.
    """

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self.init_db()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open history database {self._db_path}: {e}") from e
        logger.info("History database: %s", self._db_path)

    @property
    def db_path(self) -> str:
        return self._db_path

    def init_db(self) -> None:
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @contextmanager
    def session(self) -> Iterator[LedgerSession]:
        with self._lock:
            yield LedgerSession(self._conn)

    def list_all(self, limit: int | None = None) -> list[HistoryEntry]:
        with self.session() as s:
            return s.list_all(limit)

    def get(self, entry_id: int) -> HistoryEntry | None:
        with self.session() as s:
            return s.get(entry_id)

    def count(self) -> int:
        with self.session() as s:
            return s.count()

    def sum_size_bytes(self) -> int:
        with self.session() as s:
            return s.sum_size_bytes()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
