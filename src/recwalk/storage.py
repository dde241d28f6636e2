# src/recwalk/storage.py
"""Record store and blacklist backends: in-memory and local SQLite."""

import sqlite3
from typing import Iterable, List, Optional, Set, Union
import logging

from recwalk.config import settings
from recwalk.interfaces import Blacklist, RecordStore, normalize_ids
from recwalk.models import ItemRecord, coerce_record

logger = logging.getLogger(__name__)

CREATE_RECORDS_SQL = """
CREATE TABLE IF NOT EXISTS item_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id TEXT NOT NULL DEFAULT '',
    group_id TEXT NOT NULL,
    source_node_id TEXT NOT NULL DEFAULT '',
    popularity_signal TEXT NOT NULL DEFAULT '',
    thumbnail_ref TEXT NOT NULL DEFAULT '',
    title TEXT NOT NULL DEFAULT '',
    observed_at TIMESTAMP NOT NULL,
    imported INTEGER NOT NULL DEFAULT 0
);
"""

CREATE_BLACKLIST_SQL = """
CREATE TABLE IF NOT EXISTS unavailable_ids (
    item_id TEXT PRIMARY KEY,
    added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

RECORD_COLUMNS = (
    "item_id",
    "group_id",
    "source_node_id",
    "popularity_signal",
    "thumbnail_ref",
    "title",
    "observed_at",
    "imported",
)


def _sqlite_path(db_url: str) -> str:
    return db_url.replace("sqlite:///", "")


class MemoryRecordStore(RecordStore):
    """Record store that lives in process memory."""

    def __init__(self, max_size: Optional[int] = None):
        self.max_size = max_size or settings.STORE_MAX_SIZE
        self._records: List[ItemRecord] = []

    def add_batch(self, records: Iterable) -> None:
        items = [coerce_record(r) for r in records or []]
        if not items:
            return
        self._records.extend(items)
        # Oldest records are dropped first
        if len(self._records) > self.max_size:
            del self._records[:len(self._records) - self.max_size]

    def get_all(self) -> List[ItemRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records = []

    def count(self) -> int:
        return len(self._records)


class MemoryBlacklist(Blacklist):
    """Blacklist backed by a plain set."""

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: Set[str] = set(normalize_ids(list(ids)))

    def contains(self, item_id: str) -> bool:
        return bool(item_id) and item_id in self._ids

    def add(self, ids: Union[str, Iterable[str]]) -> None:
        new_ids = [i for i in normalize_ids(ids) if i not in self._ids]
        if not new_ids:
            logger.debug("No new ids to blacklist")
            return
        self._ids.update(new_ids)
        logger.info(f"Blacklisted {len(new_ids)} id(s), total {len(self._ids)}")

    def get_all(self) -> Set[str]:
        return set(self._ids)


class SqliteRecordStore(RecordStore):
    """SQLite-backed record store for local persistence."""

    def __init__(self, db_url: Optional[str] = None, max_size: Optional[int] = None):
        """Initialize local SQLite record store.

        Args:
            db_url: Database URL (sqlite:///path/to/db.db). Defaults to settings.DATABASE_URL.
            max_size: Maximum number of stored records. Oldest rows are pruned first.
        """
        self.db_url = db_url or settings.DATABASE_URL
        self.db_path = _sqlite_path(self.db_url)
        self.max_size = max_size or settings.STORE_MAX_SIZE
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish SQLite connection."""
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to local SQLite record store: {self.db_path}")

    def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed local SQLite record store")

    def create_schema(self) -> None:
        """Create the records table if it doesn't exist."""
        with self.conn:
            self.conn.execute(CREATE_RECORDS_SQL)
        logger.debug("Schema verified/created for record store")

    def add_batch(self, records: Iterable) -> None:
        """Insert records and prune the oldest rows beyond max_size."""
        items = [coerce_record(r) for r in records or []]
        if not items:
            return

        columns = ', '.join(RECORD_COLUMNS)
        placeholders = ', '.join('?' for _ in RECORD_COLUMNS)
        insert_sql = f"INSERT INTO item_records ({columns}) VALUES ({placeholders})"

        rows = [
            (
                r.item_id,
                r.group_id,
                r.source_node_id,
                r.popularity_signal,
                r.thumbnail_ref,
                r.title,
                r.observed_at.isoformat(),
                int(r.imported),
            )
            for r in items
        ]

        with self.conn:
            self.conn.executemany(insert_sql, rows)
            self.conn.execute(
                "DELETE FROM item_records WHERE id NOT IN "
                "(SELECT id FROM item_records ORDER BY id DESC LIMIT ?)",
                (self.max_size,),
            )
        logger.debug(f"Saved {len(items)} records to {self.db_path}")

    def get_all(self) -> List[ItemRecord]:
        """All stored records in insertion order."""
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT {', '.join(RECORD_COLUMNS)} FROM item_records ORDER BY id ASC")
        return [ItemRecord.from_dict(dict(row)) for row in cursor.fetchall()]

    def count(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM item_records")
        return cursor.fetchone()[0]

    def clear(self) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM item_records")
        logger.info("Record store cleared")


class SqliteBlacklist(Blacklist):
    """SQLite-backed blacklist. Reads go to the database on every call."""

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url or settings.DATABASE_URL
        self.db_path = _sqlite_path(self.db_url)
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to local SQLite blacklist: {self.db_path}")

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def create_schema(self) -> None:
        with self.conn:
            self.conn.execute(CREATE_BLACKLIST_SQL)

    def contains(self, item_id: str) -> bool:
        if not item_id:
            return False
        cursor = self.conn.cursor()
        cursor.execute("SELECT 1 FROM unavailable_ids WHERE item_id = ?", (item_id,))
        return cursor.fetchone() is not None

    def add(self, ids: Union[str, Iterable[str]]) -> None:
        new_ids = normalize_ids(ids)
        if not new_ids:
            return
        with self.conn:
            self.conn.executemany(
                "INSERT OR IGNORE INTO unavailable_ids (item_id) VALUES (?)",
                [(i,) for i in new_ids],
            )
        logger.info(f"Blacklisted {len(new_ids)} id(s)")

    def get_all(self) -> Set[str]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT item_id FROM unavailable_ids")
        return {row['item_id'] for row in cursor.fetchall()}


def get_record_store(backend: Optional[str] = None, **kwargs) -> RecordStore:
    """Factory function to create the appropriate record store.

    Args:
        backend: Storage backend ('local' or 'memory'). Defaults to settings.STORE_BACKEND.
        **kwargs: Additional arguments passed to the store constructor.

    Raises:
        ValueError: If an unknown backend is specified.
    """
    backend = backend or settings.STORE_BACKEND

    if backend == "local":
        logger.info("Using local SQLite record store")
        return SqliteRecordStore(**kwargs)
    elif backend == "memory":
        logger.info("Using in-memory record store")
        return MemoryRecordStore(**kwargs)
    else:
        raise ValueError(
            f"Unknown storage backend: '{backend}'. "
            "Supported backends: 'local', 'memory'"
        )


def get_blacklist(backend: Optional[str] = None, **kwargs) -> Blacklist:
    """Factory function to create the appropriate blacklist.

    Raises:
        ValueError: If an unknown backend is specified.
    """
    backend = backend or settings.STORE_BACKEND

    if backend == "local":
        return SqliteBlacklist(**kwargs)
    elif backend == "memory":
        return MemoryBlacklist(**kwargs)
    else:
        raise ValueError(
            f"Unknown storage backend: '{backend}'. "
            "Supported backends: 'local', 'memory'"
        )
