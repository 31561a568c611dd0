# app/services/entry_builder.py
from __future__ import annotations

from datetime import timezone

from app.schemas.attendance import MeetingRecord
from app.schemas.time_entry import TimeEntryCandidate
from app.services.fingerprint import build_tag


def format_duration(seconds: int) -> tuple[int, int]:
    """
    Split a duration in seconds into whole (hours, minutes).
    """
    seconds = max(int(seconds), 0)
    return seconds // 3600, (seconds % 3600) // 60


def build_description(meeting: MeetingRecord, tag: str | None = None) -> str:
    """
    Human-readable entry description ending with the meeting's fingerprint tag.

    Meetings without a code fall back to their UTC start time.
    """
    tag = tag or build_tag(meeting.meeting_id)
    hours, minutes = format_duration(meeting.duration_seconds)

    if meeting.meeting_code:
        display = f"Meet: {meeting.meeting_code}"
    else:
        start = meeting.start_time
        if start.tzinfo is not None:
            start = start.astimezone(timezone.utc)
        display = f"Google Meet ({start.strftime('%H:%M')} UTC)"

    return f"🎥 {display} | {hours}h {minutes}m {tag}"


def build_candidate(meeting: MeetingRecord, tag: str | None = None) -> TimeEntryCandidate:
    return TimeEntryCandidate(
        start=meeting.start_time,
        end=meeting.end_time,
        billable=False,
        description=build_description(meeting, tag),
    )
