# app/services/session_aggregator.py
from __future__ import annotations

import math
from typing import Iterable, Optional

from app.schemas.attendance import AttendanceSession, MeetingRecord


class SessionAggregator:
    """
    Folds the participant sessions of one conference into a single
    MeetingRecord.

    Rules
    -----
    - Only sessions with both a start and an end are considered; sessions
      that are still in progress are picked up by a later pass once they end.
    - start = earliest session start, end = latest session end. Gaps between
      rejoins are part of the window (one record per meeting, not per join).
    - duration_seconds = floor(end - start), never negative.
    - No finished session => no MeetingRecord (None).
    """

    @staticmethod
    def aggregate(
        meeting_id: str,
        sessions: Iterable[AttendanceSession],
        meeting_code: str = "",
        meeting_uri: str = "",
    ) -> Optional[MeetingRecord]:
        finished = [
            s for s in sessions if s.start_time is not None and s.end_time is not None
        ]
        if not finished:
            return None

        start = min(s.start_time for s in finished)
        end = max(s.end_time for s in finished)
        duration = max(math.floor((end - start).total_seconds()), 0)

        return MeetingRecord(
            meeting_id=meeting_id,
            meeting_code=meeting_code or "",
            meeting_uri=meeting_uri or "",
            start_time=start,
            end_time=end,
            duration_seconds=duration,
        )


def aggregate(
    meeting_id: str,
    sessions: Iterable[AttendanceSession],
    meeting_code: str = "",
    meeting_uri: str = "",
) -> Optional[MeetingRecord]:
    """
    Module-level shortcut for SessionAggregator.aggregate.
    """
    return SessionAggregator.aggregate(
        meeting_id, sessions, meeting_code=meeting_code, meeting_uri=meeting_uri
    )
