# app/services/duplicate_detector.py
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List

from app.schemas.time_entry import ExistingEntry
from app.services.fingerprint import TAG_PREFIX, extract_meeting_id


class DuplicateDetector:
    """
    Decides whether a meeting is already represented in Clockify.

    Matching is literal substring containment of the full bracketed tag, so
    human-added text around the tag does not matter, while
    ``[Meet:abc1234]`` never matches ``[Meet:abc123]``.

    The detector works on a fixed snapshot of existing entries fetched once
    per pass; it never calls Clockify itself.
    """

    def __init__(self, existing: Iterable[ExistingEntry]) -> None:
        self._descriptions = [e.description or "" for e in existing]

    def is_already_synced(self, tag: str) -> bool:
        return any(tag in description for description in self._descriptions)


def is_already_synced(tag: str, existing: Iterable[ExistingEntry]) -> bool:
    return any(tag in (entry.description or "") for entry in existing)


def count_synced_entries(existing: Iterable[ExistingEntry]) -> int:
    """
    Number of entries that carry any meeting tag (previously synced meetings).
    """
    return sum(1 for entry in existing if TAG_PREFIX in (entry.description or ""))


def group_by_meeting(existing: Iterable[ExistingEntry]) -> Dict[str, List[ExistingEntry]]:
    grouped: Dict[str, List[ExistingEntry]] = defaultdict(list)
    for entry in existing:
        meeting_id = extract_meeting_id(entry.description)
        if meeting_id is not None:
            grouped[meeting_id].append(entry)
    return dict(grouped)


def find_duplicate_tags(existing: Iterable[ExistingEntry]) -> Dict[str, List[ExistingEntry]]:
    """
    Meeting ids that appear on more than one entry.
    """
    return {
        meeting_id: entries
        for meeting_id, entries in group_by_meeting(existing).items()
        if len(entries) > 1
    }
