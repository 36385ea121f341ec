"""Core data types for quotes and sync metadata."""

import math
import re
import uuid
from dataclasses import dataclass

from .errors import ValidationError

ALL_CATEGORIES = "all"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Record:
    """A single quote."""
    id: str
    text: str
    category: str
    updated_at: int = 0  # logical timestamp (epoch ms), tie-breaks only

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Record":
        """
        Build a record from its serialized form.

        Raises:
            ValidationError: If a field is missing, of the wrong type, or blank
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Expected an object, got {type(data).__name__}")

        record_id = data.get("id")
        if isinstance(record_id, bool) or not isinstance(record_id, (str, int)):
            raise ValidationError(f"Invalid id: {record_id!r}")

        updated_at = data.get("updatedAt", 0)
        if (
            isinstance(updated_at, bool)
            or not isinstance(updated_at, (int, float))
            or (isinstance(updated_at, float) and not math.isfinite(updated_at))
        ):
            raise ValidationError(f"Invalid updatedAt: {updated_at!r}")

        text, category = validate_fields(data.get("text"), data.get("category"))
        return cls(
            id=str(record_id),
            text=text,
            category=category,
            updated_at=int(updated_at),
        )


@dataclass
class SyncState:
    """Small persisted metadata that lives alongside the collection."""
    last_synced_at: int | None = None  # epoch ms
    last_filter: str | None = None


def normalize_category(category: str) -> str:
    """Lower-case and trim a category name."""
    return category.strip().lower()


def normalize_text_key(text: str) -> str:
    """
    Key used to match records that don't share an id.

    Case-folded with runs of whitespace collapsed, so "Hello  World " and
    "hello world" match.
    """
    return _WHITESPACE.sub(" ", text).strip().casefold()


def validate_fields(text, category) -> tuple[str, str]:
    """
    Validate and normalize quote text and category.

    Returns:
        (trimmed text, normalized category)

    Raises:
        ValidationError: If either value is not a string or is blank
    """
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Quote text must be a non-empty string")
    if not isinstance(category, str) or not category.strip():
        raise ValidationError("Quote category must be a non-empty string")
    return text.strip(), normalize_category(category)


def new_record_id() -> str:
    return uuid.uuid4().hex


def matches_category(record: Record, selector: str | None) -> bool:
    """True if the record passes a category filter (None / "all" = everything)."""
    if selector is None:
        return True
    selector = normalize_category(selector)
    if selector in ("", ALL_CATEGORIES):
        return True
    return record.category == selector


# Seed collection used on first run when no durable snapshot exists
DEFAULT_QUOTES: list[tuple[str, str]] = [
    ("The only way to do great work is to love what you do.", "Motivation"),
    ("Innovation distinguishes between a leader and a follower.", "Leadership"),
    ("Life is what happens when you're busy making other plans.", "Life"),
    ("The future belongs to those who believe in the beauty of their dreams.", "Inspiration"),
    ("It is during our darkest moments that we must focus to see the light.", "Motivation"),
    ("The best time to plant a tree was 20 years ago. The second best time is now.", "Wisdom"),
    ("Success is not final, failure is not fatal: it is the courage to continue that counts.", "Success"),
    ("In the middle of difficulty lies opportunity.", "Inspiration"),
    ("The only impossible journey is the one you never begin.", "Motivation"),
    ("Quality is not an act, it is a habit.", "Wisdom"),
]
