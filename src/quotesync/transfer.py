"""
JSON import and export of quote collections.

Import format: a JSON array of objects with at least "text" and "category".
"id" and "updatedAt" are optional. Entries that lack "text" or "category"
entirely are dropped; anything else malformed rejects the whole file.
"""

import json
import logging
import math
from pathlib import Path

from .errors import ParseError, ValidationError
from .models import Record, new_record_id, validate_fields

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("text", "category")


def parse_import(raw: str) -> list[Record]:
    """
    Parse the contents of an import file.

    Returns:
        Records in file order. Missing ids are synthesized; missing
        timestamps are 0 and get assigned when the store imports them.

    Raises:
        ParseError: If the file is not a usable array of quotes
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Import file is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ParseError(f"Import file must contain a JSON array, got {type(data).__name__}")

    records: list[Record] = []
    skipped = 0
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ParseError(f"Entry {index} is not an object")

        if any(name not in item for name in REQUIRED_FIELDS):
            skipped += 1
            continue

        try:
            text, category = validate_fields(item["text"], item["category"])
        except ValidationError as e:
            raise ParseError(f"Entry {index}: {e}") from e

        record_id = item.get("id")
        if record_id is None:
            record_id = new_record_id()
        elif isinstance(record_id, bool) or not isinstance(record_id, (str, int)):
            raise ParseError(f"Entry {index} has an invalid id: {record_id!r}")

        updated_at = item.get("updatedAt", 0)
        if (
            isinstance(updated_at, bool)
            or not isinstance(updated_at, (int, float))
            or (isinstance(updated_at, float) and not math.isfinite(updated_at))
        ):
            raise ParseError(f"Entry {index} has an invalid updatedAt: {updated_at!r}")

        records.append(Record(
            id=str(record_id),
            text=text,
            category=category,
            updated_at=int(updated_at),
        ))

    if skipped:
        logger.info(f"Skipped {skipped} import entries missing text or category")

    if not records:
        raise ParseError("Import file contains no valid quotes")

    return records


def read_import_file(path: Path) -> list[Record]:
    """Read and parse an import file from disk."""
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot read {path}: {e}") from e
    return parse_import(raw)


def export_json(records: list[Record]) -> str:
    """Serialize a collection as a pretty-printed JSON array."""
    return json.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False)


def write_export_file(records: list[Record], path: Path) -> Path:
    """Write an export file, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_json(records) + "\n", encoding="utf-8")
    logger.info(f"Exported {len(records)} quotes to {path}")
    return path
