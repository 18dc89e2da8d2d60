"""Photo eviction: strip photos from all but the most recent records."""
from __future__ import annotations

from dataclasses import dataclass, replace

from cardvault.domain.records import StudentRecord


@dataclass(frozen=True)
class EvictionResult:
    removed_count: int


def rank_by_recency(records: list[StudentRecord]) -> list[int]:
    """Indexes of `records`, most recently created first (later position wins ties)."""
    return sorted(
        range(len(records)),
        key=lambda i: (records[i].date_creation, i),
        reverse=True,
    )


def evict_photos(records: list[StudentRecord], keep_last: int) -> tuple[list[StudentRecord], int]:
    """
    Return a copy of `records` where every record outside the `keep_last`
    most recent ones has an empty photo, plus how many photos were cleared.
    Collection order and every other field are preserved.
    """
    keep_last = max(keep_last, 0)
    if len(records) <= keep_last:
        return list(records), 0
    updated = list(records)
    removed = 0
    for index in rank_by_recency(records)[keep_last:]:
        if updated[index].photo:
            updated[index] = replace(updated[index], photo="")
            removed += 1
    return updated, removed
