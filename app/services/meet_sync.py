# app/services/meet_sync.py
from __future__ import annotations

import logging
from datetime import date as date_type, datetime, timezone
from typing import List, Protocol

from app.schemas.attendance import MeetingRecord
from app.schemas.sync import SyncOutcome, SyncWindow
from app.schemas.time_entry import ExistingEntry, TimeEntryCandidate
from app.services.duplicate_detector import DuplicateDetector, count_synced_entries
from app.services.entry_builder import build_candidate
from app.services.fingerprint import InvalidMeetingIdentifier, build_tag
from app.services.sync_pacer import SyncPacer

logger = logging.getLogger(__name__)

RATE_LIMIT_TOKENS = ("429", "Too Many Requests")


class AttendanceSource(Protocol):
    async def fetch_meeting_records(
        self, start: datetime, end: datetime
    ) -> List[MeetingRecord]:
        ...


class TimeEntrySink(Protocol):
    async def fetch_existing_entries(
        self, start_date: date_type, end_date: date_type
    ) -> List[ExistingEntry]:
        ...

    async def create_entry(self, candidate: TimeEntryCandidate) -> ExistingEntry:
        ...


def is_rate_limit_error(exc: BaseException) -> bool:
    """
    True if a create failure signals throttling (HTTP 429 / "Too Many Requests").
    """
    if getattr(exc, "status_code", None) == 429:
        return True
    message = str(exc)
    return any(token in message for token in RATE_LIMIT_TOKENS)


def snapshot_dates(
    window: SyncWindow, meetings: List[MeetingRecord]
) -> tuple[date_type, date_type]:
    """
    UTC date range of the existing-entry snapshot.

    Google returns conferences that merely overlap the window, so a meeting
    may start on a day before `window.start`. The range is widened to the
    earliest meeting start, otherwise its entry would never be seen and
    every later pass would create it again.
    """
    start_date, end_date = window.start_date, window.end_date
    for meeting in meetings:
        start_date = min(start_date, _utc_date(meeting.start_time))
        end_date = max(end_date, _utc_date(meeting.start_time))
    return start_date, end_date


def _utc_date(value: datetime) -> date_type:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date()


async def run_sync(
    window: SyncWindow,
    *,
    attendance_source: AttendanceSource,
    time_tracking_sink: TimeEntrySink,
    dry_run: bool = False,
    pacer: SyncPacer | None = None,
) -> SyncOutcome:
    """
    Execute one reconciliation pass over `window`.

    Behavior
    --------
    1) Fetch aggregated meetings from the attendance source.
    2) No meetings => zero outcome, Clockify is not contacted at all.
    3) Fetch the existing Clockify entries once, for whole UTC days from the
       earliest meeting start (or window start) to the window end.
    4) For every meeting, in the order returned:
        - tag already present in the snapshot => skipped
        - dry run                              => counted as synced, no write
        - otherwise create the entry; success => synced + inter-call delay,
          failure => failed (+ cooldown when rate-limited), never retried.
    5) total_in_target = tagged entries already in Clockify + synced.

    Errors from steps 1 and 3 propagate unchanged: no diff is possible
    without both snapshots. Per-meeting failures never abort the pass.

    Re-running over an overlapping window is safe: entries written by an
    earlier pass show up in the fresh snapshot and are skipped.
    """
    pacer = pacer or SyncPacer()

    meetings = await attendance_source.fetch_meeting_records(window.start, window.end)
    logger.info("Found %d meetings in Google Meet history", len(meetings))

    if not meetings:
        return SyncOutcome()

    start_date, end_date = snapshot_dates(window, meetings)
    existing = await time_tracking_sink.fetch_existing_entries(start_date, end_date)
    already_tagged = count_synced_entries(existing)
    logger.info(
        "Found %d existing Clockify entries (%d are meeting entries)",
        len(existing),
        already_tagged,
    )

    detector = DuplicateDetector(existing)
    synced = skipped = failed = 0

    for meeting in meetings:
        try:
            tag = build_tag(meeting.meeting_id)
        except InvalidMeetingIdentifier as exc:
            failed += 1
            logger.warning("Cannot sync meeting %r: %s", meeting.meeting_id, exc)
            continue

        if detector.is_already_synced(tag):
            skipped += 1
            continue

        candidate = build_candidate(meeting, tag)

        if dry_run:
            logger.info("[DRY RUN] Would sync: %s", candidate.description)
            synced += 1
            continue

        try:
            await time_tracking_sink.create_entry(candidate)
        except Exception as exc:
            failed += 1
            logger.warning(
                "Failed to sync meeting %s (%s): %s",
                meeting.meeting_id,
                meeting.meeting_code or "no code",
                exc,
            )
            if is_rate_limit_error(exc):
                logger.info("Rate limit hit, cooling down %.3fs", pacer.cooldown_seconds)
                await pacer.after_rate_limit()
            continue

        synced += 1
        logger.info("Synced: %s", candidate.description)
        await pacer.after_success()

    return SyncOutcome(
        meetings_found=len(meetings),
        synced=synced,
        skipped=skipped,
        failed=failed,
        total_in_target=already_tagged + synced,
    )
