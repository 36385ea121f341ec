"""Shared fixtures for quotesync tests."""

import pytest

from quotesync.models import Record
from quotesync.state import StateDatabase
from quotesync.store import QuoteStore


@pytest.fixture
def state_db(tmp_path):
    """Fresh state database in a temp directory."""
    return StateDatabase(tmp_path / "state.db")


@pytest.fixture
def store(state_db):
    """Empty store (no default quotes)."""
    return QuoteStore.open(state_db, seed_defaults=False)


def rec(record_id, text, category="x", updated_at=0) -> Record:
    """Shorthand for building records in tests."""
    return Record(id=str(record_id), text=text, category=category, updated_at=updated_at)


@pytest.fixture
def make_record():
    return rec
