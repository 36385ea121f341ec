"""
In-memory quote collection mirrored to durable storage.

Every mutation (add, remove, import, merge, clear) goes through a single
non-reentrant lock and is persisted before the lock is released.
"""

import logging
import random
import threading
import time
from collections.abc import Iterable, Sequence
from dataclasses import replace

from .errors import StaleSnapshotError, StorageError
from .models import (
    DEFAULT_QUOTES,
    Record,
    SyncState,
    matches_category,
    new_record_id,
    normalize_category,
    validate_fields,
)
from .state import StateDatabase

logger = logging.getLogger(__name__)


class QuoteStore:
    """Owned, serialized quote collection."""

    def __init__(self, state_db: StateDatabase, records: Iterable[Record] = ()):
        self.state_db = state_db
        self._lock = threading.Lock()
        self._records: list[Record] = list(records)
        self._retired_ids: set[str] = set()
        self._version = 0
        self._last_timestamp = max((r.updated_at for r in self._records), default=0)
        self._dirty = False
        self._sync_state = state_db.load_sync_state()

    @classmethod
    def open(cls, state_db: StateDatabase, seed_defaults: bool = True) -> "QuoteStore":
        """
        Load the collection from durable storage.

        On first run (or after a corrupt snapshot) the store starts with the
        built-in default quotes, which are saved immediately.
        """
        records = state_db.load()
        if records is not None:
            logger.info(f"Loaded {len(records)} quotes from {state_db.db_path}")
            return cls(state_db, records)

        store = cls(state_db)
        if seed_defaults:
            seeded = [store._build(text, category) for text, category in DEFAULT_QUOTES]
            with store._lock:
                store._records = seeded
                store._commit()
            logger.info(f"Seeded {len(seeded)} default quotes")
        return store

    # -- internals (callers hold self._lock) -------------------------------

    def _next_timestamp(self) -> int:
        """Epoch ms, strictly increasing within this store."""
        now = int(time.time() * 1000)
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return self._last_timestamp

    def _build(self, text, category) -> Record:
        text, category = validate_fields(text, category)
        return Record(
            id=self._fresh_id(),
            text=text,
            category=category,
            updated_at=self._next_timestamp(),
        )

    def _fresh_id(self) -> str:
        taken = {r.id for r in self._records}
        while True:
            record_id = new_record_id()
            if record_id not in taken and record_id not in self._retired_ids:
                return record_id

    def _commit(self):
        """Bump the version and write through to storage."""
        self._version += 1
        try:
            self.state_db.save(self._records)
        except StorageError:
            self._dirty = True
            logger.warning(
                f"Failed to persist {len(self._records)} quotes; "
                f"keeping in-memory state and retrying on next change"
            )
            raise
        if self._dirty:
            self.state_db.save_sync_state(self._sync_state)
            logger.info("Persisted quotes after earlier storage failure")
        self._dirty = False

    # -- reads -------------------------------------------------------------

    def all(self) -> Sequence[Record]:
        """Read-only view of the current collection."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def snapshot(self) -> tuple[list[Record], int]:
        """Consistent copy of the collection plus its version counter."""
        with self._lock:
            return list(self._records), self._version

    @property
    def version(self) -> int:
        return self._version

    @property
    def dirty(self) -> bool:
        """True if the last write to storage failed."""
        return self._dirty

    def categories(self) -> list[str]:
        """Unique categories in first-seen order."""
        seen: dict[str, None] = {}
        for record in self._records:
            seen.setdefault(record.category, None)
        return list(seen)

    def filter(self, category: str | None = None) -> list[Record]:
        return [r for r in self._records if matches_category(r, category)]

    def random_quote(self, category: str | None = None, rng: random.Random | None = None) -> Record | None:
        """Pick a random quote, optionally from one category."""
        candidates = self.filter(category)
        if not candidates:
            return None
        return (rng or random).choice(candidates)

    def stats(self) -> dict:
        return {
            "total_quotes": len(self._records),
            "total_categories": len(self.categories()),
        }

    # -- sync metadata -----------------------------------------------------

    @property
    def sync_state(self) -> SyncState:
        return replace(self._sync_state)

    @property
    def last_filter(self) -> str | None:
        return self._sync_state.last_filter

    def set_filter(self, category: str | None):
        """Remember the last-applied category filter."""
        self._sync_state.last_filter = normalize_category(category) if category else None
        self.state_db.save_sync_state(self._sync_state)

    def mark_synced(self, timestamp_ms: int | None = None):
        self._sync_state.last_synced_at = (
            timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
        )
        self.state_db.save_sync_state(self._sync_state)

    # -- mutations ---------------------------------------------------------

    def add(self, text: str, category: str) -> Record:
        """
        Add a new quote.

        Raises:
            ValidationError: If text or category is empty
            StorageError: If the record was added but could not be persisted
        """
        with self._lock:
            record = self._build(text, category)
            self._records.append(record)
            self._commit()
        logger.info(f"Added quote {record.id} in '{record.category}'")
        return record

    def remove(self, record_id: str) -> bool:
        """Remove a quote by id. Removing an unknown id is a no-op."""
        with self._lock:
            index = next(
                (i for i, r in enumerate(self._records) if r.id == record_id), None
            )
            if index is None:
                return False
            del self._records[index]
            self._retired_ids.add(record_id)
            self._commit()
        logger.info(f"Removed quote {record_id}")
        return True

    def import_records(self, records: Iterable[Record]) -> list[Record]:
        """
        Append imported records.

        Ids that are already in use (or were used by a removed quote) are
        replaced with fresh ones. Imported records get a new timestamp.
        """
        added: list[Record] = []
        with self._lock:
            taken = {r.id for r in self._records} | self._retired_ids
            for record in records:
                record_id = record.id
                if record_id in taken:
                    record_id = self._fresh_id()
                    logger.debug(f"Imported id {record.id} already used, assigned {record_id}")
                imported = Record(
                    id=record_id,
                    text=record.text,
                    category=record.category,
                    updated_at=self._next_timestamp(),
                )
                taken.add(record_id)
                self._records.append(imported)
                added.append(imported)
            if added:
                self._commit()
        logger.info(f"Imported {len(added)} quotes")
        return added

    def replace_all(self, records: Iterable[Record], base_version: int | None = None):
        """
        Atomically install a merged collection.

        Args:
            records: The new collection
            base_version: Version the merge was computed from. If the store has
                changed since, nothing is installed.

        Raises:
            StaleSnapshotError: If base_version no longer matches
            StorageError: If installed but not persisted
        """
        new_records = list(records)
        with self._lock:
            if base_version is not None and base_version != self._version:
                raise StaleSnapshotError(
                    f"Collection changed during sync (version {base_version} -> {self._version})"
                )
            for record in new_records:
                self._last_timestamp = max(self._last_timestamp, record.updated_at)
            live_ids = {r.id for r in new_records}
            self._retired_ids |= {r.id for r in self._records} - live_ids
            self._records = new_records
            self._commit()

    def clear(self):
        """Remove every quote and void sync metadata."""
        with self._lock:
            self._retired_ids |= {r.id for r in self._records}
            self._records = []
            self._version += 1
            self._sync_state = SyncState()
            try:
                self.state_db.reset()
            except StorageError:
                self._dirty = True
                logger.warning("Failed to clear stored quotes; retrying on next change")
                raise
            self._dirty = False
        logger.info("Cleared all quotes")
