import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from clipvault.config import DB_PATH, DEDUP_WINDOW, MAX_ENTRIES, SEARCH_LIMIT, SEARCH_WINDOW
from clipvault.crypto import CryptoBox
from clipvault.exceptions import CryptoError, StorageIOError
from clipvault.models import ClipEntry, ContentType

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS clips (
    id            TEXT PRIMARY KEY,
    content       BLOB NOT NULL,
    content_hash  TEXT NOT NULL,
    content_type  TEXT NOT NULL CHECK(content_type IN ('text', 'image', 'file', 'html', 'rtf')),
    timestamp     INTEGER NOT NULL,
    is_pinned     INTEGER NOT NULL DEFAULT 0 CHECK(is_pinned IN (0, 1)),
    pin_order     INTEGER,
    CHECK ((is_pinned = 1) = (pin_order IS NOT NULL))
);

CREATE INDEX IF NOT EXISTS idx_timestamp ON clips(timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_pinned ON clips(is_pinned, pin_order);
CREATE INDEX IF NOT EXISTS idx_hash_type ON clips(content_hash, content_type);
"""

COLUMNS = "id, content, content_type, timestamp, is_pinned, pin_order"


class ContentStore:
    """Encrypted, deduplicated clipboard history backed by SQLite.

    Not thread-safe on its own; share it through ``GuardedStore``.
    """

    def __init__(
        self,
        crypto: CryptoBox,
        db_path: str | Path | None = None,
        max_entries: int = MAX_ENTRIES,
        dedup_window: int = DEDUP_WINDOW,
    ):
        self._crypto = crypto
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self.max_entries = max_entries
        self.dedup_window = dedup_window
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self.init_db()
        except sqlite3.Error as e:
            raise StorageIOError(f"Failed to open database {self._db_path}: {e}") from e

    def init_db(self) -> None:
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as e:
            raise StorageIOError(str(e)) from e

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageIOError(str(e)) from e

    def insert(self, entry: ClipEntry) -> bool:
        """Store ``entry`` unless it duplicates a recent entry of the same type.

        Returns False for a duplicate, True when a row was written.
        """
        content_hash = entry.content_hash
        if self._is_recent_duplicate(content_hash, entry.content_type):
            logger.debug("Skipping duplicate %s entry %s", entry.content_type.value, content_hash[:12])
            return False

        sealed = self._crypto.seal(entry.content)
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO clips (id, content, content_hash, content_type, timestamp, is_pinned, pin_order)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.id,
                    sealed,
                    content_hash,
                    entry.content_type.value,
                    entry.timestamp,
                    int(entry.is_pinned),
                    entry.pin_order,
                ),
            )
            evicted = self._evict(conn)
        if evicted:
            logger.debug("Evicted %d old entries", evicted)
        return True

    def _is_recent_duplicate(self, content_hash: str, content_type: ContentType) -> bool:
        row = self._query(
            """SELECT 1 FROM (
                   SELECT content_hash FROM clips
                   WHERE content_type = ?
                   ORDER BY timestamp DESC, rowid DESC
                   LIMIT ?
               ) WHERE content_hash = ? LIMIT 1""",
            (content_type.value, self.dedup_window, content_hash),
        )
        return bool(row)

    def _evict(self, conn: sqlite3.Connection) -> int:
        cursor = conn.execute(
            """DELETE FROM clips
               WHERE id IN (
                   SELECT id FROM clips
                   WHERE is_pinned = 0
                   ORDER BY timestamp DESC, rowid DESC
                   LIMIT -1 OFFSET ?
               )""",
            (self.max_entries,),
        )
        return cursor.rowcount

    def get_recent(self, limit: int = 100) -> list[ClipEntry]:
        rows = self._query(
            f"SELECT {COLUMNS} FROM clips ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        return self._rows_to_entries(rows)

    def get_pinned(self) -> list[ClipEntry]:
        rows = self._query(f"SELECT {COLUMNS} FROM clips WHERE is_pinned = 1 ORDER BY pin_order ASC")
        return self._rows_to_entries(rows)

    def get_by_id(self, entry_id: str) -> ClipEntry | None:
        rows = self._query(f"SELECT {COLUMNS} FROM clips WHERE id = ?", (entry_id,))
        if not rows:
            return None
        return self._row_to_entry(rows[0])

    def search(self, query: str, window: int = SEARCH_WINDOW, limit: int = SEARCH_LIMIT) -> list[ClipEntry]:
        """Case-insensitive substring search over the most recent text entries."""
        if not query.strip():
            return []
        needle = query.lower()
        rows = self._query(
            f"""SELECT {COLUMNS} FROM clips
                WHERE content_type = ?
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?""",
            (ContentType.TEXT.value, window),
        )
        results = []
        for entry in self._rows_to_entries(rows):
            if needle in entry.text.lower():
                results.append(entry)
                if len(results) >= limit:
                    break
        return results

    def update_pin(self, entry_id: str, is_pinned: bool) -> bool:
        with self._transaction() as conn:
            pin_order = None
            if is_pinned:
                row = conn.execute("SELECT MAX(pin_order) AS max_order FROM clips WHERE is_pinned = 1").fetchone()
                pin_order = (row["max_order"] or 0) + 1
            cursor = conn.execute(
                "UPDATE clips SET is_pinned = ?, pin_order = ? WHERE id = ?",
                (int(is_pinned), pin_order, entry_id),
            )
        return cursor.rowcount > 0

    def update_timestamp(self, entry_id: str, timestamp: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("UPDATE clips SET timestamp = ? WHERE id = ?", (timestamp, entry_id))
        return cursor.rowcount > 0

    def delete(self, entry_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM clips WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0

    def clear_all(self) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM clips")
        return cursor.rowcount

    def clear_non_pinned(self) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM clips WHERE is_pinned = 0")
        return cursor.rowcount

    def count(self) -> int:
        return self._query("SELECT COUNT(*) AS cnt FROM clips")[0]["cnt"]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _rows_to_entries(self, rows: list[sqlite3.Row]) -> list[ClipEntry]:
        entries = []
        for row in rows:
            entry = self._row_to_entry(row)
            if entry is not None:
                entries.append(entry)
        return entries

    def _row_to_entry(self, row: sqlite3.Row) -> ClipEntry | None:
        # Rows that fail to open are skipped, never raised
        try:
            content = self._crypto.open(bytes(row["content"]))
        except CryptoError as e:
            logger.warning("Skipping clip %s: %s", row["id"], e)
            return None
        try:
            content_type = ContentType(row["content_type"])
        except ValueError:
            logger.warning("Skipping clip %s: unknown content type %r", row["id"], row["content_type"])
            return None
        return ClipEntry(
            id=row["id"],
            content=content,
            content_type=content_type,
            timestamp=row["timestamp"],
            is_pinned=bool(row["is_pinned"]),
            pin_order=row["pin_order"],
        )
