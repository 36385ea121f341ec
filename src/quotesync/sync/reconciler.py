"""
Reconciliation of a local collection against a remote snapshot.

Conflict resolution: remote wins.
- Records matched by id (or, failing that, by normalized text) whose text or
  category differ are conflicts; the remote version goes into the merge and
  the pair is reported.
- Local-only records are never deleted; they are kept and become push
  candidates.

reconcile() is a pure function of its two inputs.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from ..models import Record, normalize_text_key


@dataclass
class ReconcileResult:
    """Outcome of merging a local collection with a remote snapshot."""
    merged: list[Record] = field(default_factory=list)
    added: list[Record] = field(default_factory=list)
    conflicting: list[tuple[Record, Record]] = field(default_factory=list)  # (local, remote)
    push_candidates: list[Record] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.conflicting)


def _dedupe_remote(remote: Sequence[Record]) -> list[Record]:
    """Collapse duplicate remote ids; the last occurrence wins."""
    by_id: dict[str, Record] = {}
    for record in remote:
        by_id[record.id] = record
    return list(by_id.values())


def _match_locals(local: Sequence[Record], remote: list[Record]) -> dict[str, Record]:
    """
    Pair local records with remote ones.

    Returns:
        Map of remote id -> the local record it was paired with
    """
    remote_ids = {r.id for r in remote}
    claimed: dict[str, Record] = {}
    unmatched: list[Record] = []

    for record in local:
        if record.id in remote_ids and record.id not in claimed:
            claimed[record.id] = record
        else:
            unmatched.append(record)

    # Text fallback for records created on different sides with different ids
    by_text: dict[str, str] = {}
    for record in remote:
        if record.id not in claimed:
            by_text[normalize_text_key(record.text)] = record.id

    for record in unmatched:
        remote_id = by_text.get(normalize_text_key(record.text))
        if remote_id is not None and remote_id not in claimed:
            claimed[remote_id] = record

    return claimed


def reconcile(local: Sequence[Record], remote: Sequence[Record]) -> ReconcileResult:
    """
    Merge a local collection with a remote snapshot.

    Order of the merged collection: remote records in remote order, then
    local-only records in local order.
    """
    result = ReconcileResult()
    remote_records = _dedupe_remote(remote)
    claimed = _match_locals(local, remote_records)

    for remote_record in remote_records:
        local_record = claimed.get(remote_record.id)
        if local_record is None:
            result.added.append(remote_record)
        elif (local_record.text, local_record.category) != (remote_record.text, remote_record.category):
            result.conflicting.append((local_record, remote_record))
        result.merged.append(remote_record)

    paired_ids = {record.id for record in claimed.values()}
    for local_record in local:
        if local_record.id not in paired_ids:
            result.merged.append(local_record)
            result.push_candidates.append(local_record)

    return result
