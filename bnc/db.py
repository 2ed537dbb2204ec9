"""
Persistence substrates for the Bible Notes Companion.

The stores only need a durable keyed map with point lookups and full
scans. Two backends provide it:

- SqliteBackend : one table per namespace in companion.sqlite
- MemoryBackend : a dict, used by tests and scratch sessions

Payloads are plain JSON-compatible dicts. Backends never hand out live
references to what they hold, so a caller mutating a returned payload can
not change the stored state.
"""

import copy
import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from .errors import PersistenceError
from .paths import DB_PATH

Payload = Dict[str, Any]

VERSE_TABLE = "verse_data"
CHAPTER_TABLE = "bible_chapters"

SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS {table} (
    key          TEXT PRIMARY KEY,
    payload      TEXT NOT NULL,
    updated_utc  TEXT NOT NULL
);
"""


@contextmanager
def get_conn(db_path: Path = DB_PATH, readonly: bool = False) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.

    Args:
        db_path: SQLite file to open
        readonly: If True, open in read-only mode

    Yields:
        sqlite3.Connection with row_factory set to Row
    """
    uri = f"file:{db_path}?mode=ro" if readonly else str(db_path)
    conn = sqlite3.connect(uri, uri=readonly)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def _decode(key: str, text: str) -> Payload:
    """Stored JSON text back to a payload; unreadable text raises PersistenceError."""
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Stored payload for {key!r} is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise PersistenceError(f"Stored payload for {key!r} is not an object")
    return payload


class KeyValueBackend:
    """
    Interface of a durable keyed store. No cross-key transactions are assumed.
    """

    def get(self, key: str) -> Optional[Payload]:
        raise NotImplementedError

    def put(self, key: str, payload: Payload) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def get_all(self) -> List[Payload]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryBackend(KeyValueBackend):
    def __init__(self) -> None:
        self._items: Dict[str, Payload] = {}

    def get(self, key: str) -> Optional[Payload]:
        item = self._items.get(key)
        return copy.deepcopy(item) if item is not None else None

    def put(self, key: str, payload: Payload) -> None:
        self._items[key] = copy.deepcopy(payload)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def get_all(self) -> List[Payload]:
        return [copy.deepcopy(v) for v in self._items.values()]

    def clear(self) -> None:
        self._items.clear()

    def keys(self) -> List[str]:
        return list(self._items)


class SqliteBackend(KeyValueBackend):
    """
    Keyed JSON payloads in a single SQLite table.

    A connection is opened per operation; sqlite3 errors surface as
    PersistenceError.
    """

    def __init__(self, db_path: Path = DB_PATH, table: str = VERSE_TABLE) -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = Path(db_path)
        self.table = table
        self.ensure_schema()

    def ensure_schema(self) -> None:
        """Create the backing table (idempotent)."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with get_conn(self.db_path) as conn:
                conn.executescript(SCHEMA_SQL.format(table=self.table))
                conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Could not initialize table {self.table!r} in {self.db_path}: {e}") from e

    def get(self, key: str) -> Optional[Payload]:
        try:
            with get_conn(self.db_path) as conn:
                row = conn.execute(
                    f"SELECT payload FROM {self.table} WHERE key = ?;",
                    (key,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Read of {key!r} failed: {e}") from e
        return _decode(key, row["payload"]) if row else None

    def put(self, key: str, payload: Payload) -> None:
        updated_utc = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        try:
            with get_conn(self.db_path) as conn:
                conn.execute(
                    f"""
                    INSERT INTO {self.table} (key, payload, updated_utc)
                    VALUES (:key, :payload, :updated_utc)
                    ON CONFLICT(key) DO UPDATE SET
                        payload     = excluded.payload,
                        updated_utc = excluded.updated_utc;
                    """,
                    {
                        "key": key,
                        "payload": json.dumps(payload, ensure_ascii=False),
                        "updated_utc": updated_utc,
                    },
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Write of {key!r} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with get_conn(self.db_path) as conn:
                conn.execute(f"DELETE FROM {self.table} WHERE key = ?;", (key,))
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Delete of {key!r} failed: {e}") from e

    def get_all(self) -> List[Payload]:
        try:
            with get_conn(self.db_path) as conn:
                rows = conn.execute(f"SELECT key, payload FROM {self.table} ORDER BY key;").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Scan of {self.table!r} failed: {e}") from e
        return [_decode(r["key"], r["payload"]) for r in rows]

    def clear(self) -> None:
        try:
            with get_conn(self.db_path) as conn:
                conn.execute(f"DELETE FROM {self.table};")
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Clear of {self.table!r} failed: {e}") from e


def ping(db_path: Path = DB_PATH) -> bool:
    """
    Check if the database is reachable.

    Returns:
        True if database exists and can be connected to
    """
    if not Path(db_path).exists():
        return False

    try:
        with get_conn(db_path, readonly=True) as conn:
            conn.execute("SELECT 1")
        return True
    except sqlite3.Error:
        return False
