"""
Durable state for the quote collection.

Stores three independent keys in a SQLite key/value table:
- quotes: the serialized collection (JSON array of records)
- last_filter: the last-applied category filter
- last_synced_at: epoch ms of the last successful sync cycle
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from .errors import StorageError, ValidationError
from .models import Record, SyncState

logger = logging.getLogger(__name__)

QUOTES_KEY = "quotes"
LAST_FILTER_KEY = "last_filter"
LAST_SYNCED_AT_KEY = "last_synced_at"


class StateDatabase:
    """SQLite-backed key/value persistence."""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv_state (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open state database {db_path}: {e}") from e

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(self.SCHEMA)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _get(self, key: str) -> str | None:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM kv_state WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        return row["value"] if row else None

    def _put(self, items: dict[str, str | None]):
        """Write several keys in one transaction. A None value deletes the key."""
        try:
            with self._connect() as conn:
                for key, value in items.items():
                    if value is None:
                        conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
                    else:
                        conn.execute(
                            "INSERT OR REPLACE INTO kv_state (key, value) VALUES (?, ?)",
                            (key, value),
                        )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {', '.join(items)}: {e}") from e

    def load(self) -> list[Record] | None:
        """
        Load the saved collection.

        Fails soft: a missing or corrupt snapshot returns None so the caller
        can start fresh.
        """
        try:
            raw = self._get(QUOTES_KEY)
        except StorageError as e:
            logger.warning(f"Could not read saved quotes, starting fresh: {e}")
            return None
        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Saved quotes are not valid JSON, ignoring snapshot: {e}")
            return None

        if not isinstance(data, list):
            logger.warning(
                f"Saved quotes are a {type(data).__name__}, not a list; ignoring snapshot"
            )
            return None

        try:
            return [Record.from_dict(item) for item in data]
        except ValidationError as e:
            logger.warning(f"Saved quotes contain an invalid record, ignoring snapshot: {e}")
            return None

    def save(self, records: list[Record]):
        """
        Persist the full collection.

        Raises:
            StorageError: If SQLite rejects the write
        """
        payload = json.dumps([record.to_dict() for record in records])
        self._put({QUOTES_KEY: payload})
        logger.debug(f"Saved {len(records)} quotes to {self.db_path}")

    def load_sync_state(self) -> SyncState:
        """Load sync metadata; unreadable values come back as absent."""
        state = SyncState()
        try:
            state.last_filter = self._get(LAST_FILTER_KEY)
            raw_ts = self._get(LAST_SYNCED_AT_KEY)
        except StorageError as e:
            logger.warning(f"Could not read sync state: {e}")
            return state

        if raw_ts is not None:
            try:
                state.last_synced_at = int(raw_ts)
            except ValueError:
                logger.warning(f"Ignoring corrupt last sync timestamp: {raw_ts!r}")
        return state

    def save_sync_state(self, state: SyncState):
        """Persist sync metadata. Absent fields are removed."""
        self._put({
            LAST_FILTER_KEY: state.last_filter,
            LAST_SYNCED_AT_KEY: (
                str(state.last_synced_at) if state.last_synced_at is not None else None
            ),
        })

    def reset(self):
        """Remove the collection and all sync metadata."""
        self._put({
            QUOTES_KEY: None,
            LAST_FILTER_KEY: None,
            LAST_SYNCED_AT_KEY: None,
        })
        logger.info(f"Cleared saved state in {self.db_path}")
