# tests/test_meet_sync.py
from datetime import date, datetime, timedelta, timezone

import pytest

from app.schemas.attendance import MeetingRecord
from app.schemas.sync import SyncWindow
from app.schemas.time_entry import ExistingEntry
from app.services.clockify_client import ClockifyClientError
from app.services.meet_sync import is_rate_limit_error, run_sync, snapshot_dates
from app.services.sync_pacer import SyncPacer

WINDOW = SyncWindow(
    start=datetime(2025, 1, 3, 9, 0, tzinfo=timezone.utc),
    end=datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc),
)


def _meeting(n: int, code: str = "") -> MeetingRecord:
    start = datetime(2025, 1, 5, 10, 0, tzinfo=timezone.utc) + timedelta(hours=n)
    return MeetingRecord(
        meeting_id=f"conferenceRecords/m{n}",
        meeting_code=code,
        start_time=start,
        end_time=start + timedelta(minutes=30),
        duration_seconds=1800,
    )


class FakeAttendanceSource:
    def __init__(self, meetings, error: Exception | None = None):
        self.meetings = meetings
        self.error = error
        self.calls = []

    async def fetch_meeting_records(self, start, end):
        self.calls.append((start, end))
        if self.error:
            raise self.error
        return list(self.meetings)


class FakeClockify:
    """
    In-memory stand-in for the Clockify sink. Created entries become visible
    to later fetches whose date range covers their start, like the real
    service.
    """

    def __init__(self, entries=None, fail_on=None, fetch_error: Exception | None = None):
        self.entries = list(entries or [])
        self.fail_on = fail_on or {}
        self.fetch_error = fetch_error
        self.fetch_calls = 0
        self.fetched_ranges = []
        self.create_calls = []

    async def fetch_existing_entries(self, start_date, end_date):
        self.fetch_calls += 1
        self.fetched_ranges.append((start_date, end_date))
        if self.fetch_error:
            raise self.fetch_error
        # Clockify only returns entries starting inside the requested days.
        return [
            e
            for e in self.entries
            if e.start is not None
            and start_date <= e.start.astimezone(timezone.utc).date() <= end_date
        ]

    async def create_entry(self, candidate):
        self.create_calls.append(candidate)
        for marker, error in self.fail_on.items():
            if marker in candidate.description:
                raise error
        entry = ExistingEntry(
            id=f"e{len(self.entries) + 1}",
            description=candidate.description,
            start=candidate.start,
            end=candidate.end,
        )
        self.entries.append(entry)
        return entry


class RecordingSleep:
    def __init__(self):
        self.waits = []

    async def __call__(self, seconds):
        self.waits.append(seconds)


def _pacer(sleep: RecordingSleep) -> SyncPacer:
    return SyncPacer(delay_seconds=0.5, cooldown_seconds=0.2, sleep=sleep)


@pytest.mark.asyncio
async def test_second_pass_skips_everything_first_pass_created():
    source = FakeAttendanceSource([_meeting(1), _meeting(2), _meeting(3)])
    clockify = FakeClockify()
    sleep = RecordingSleep()

    first = await run_sync(WINDOW, attendance_source=source, time_tracking_sink=clockify, pacer=_pacer(sleep))
    second = await run_sync(WINDOW, attendance_source=source, time_tracking_sink=clockify, pacer=_pacer(sleep))

    assert first.synced == 3
    assert second.synced == 0
    assert second.skipped == second.meetings_found == 3
    assert second.total_in_target == 3
    assert len(clockify.create_calls) == 3
    # One existing-entry fetch per pass, no matter how many meetings.
    assert clockify.fetch_calls == 2


@pytest.mark.asyncio
async def test_no_meetings_short_circuits_without_touching_clockify():
    source = FakeAttendanceSource([])
    clockify = FakeClockify()

    outcome = await run_sync(WINDOW, attendance_source=source, time_tracking_sink=clockify)

    assert outcome.meetings_found == 0
    assert outcome.synced == outcome.skipped == outcome.failed == 0
    assert clockify.fetch_calls == 0
    assert clockify.create_calls == []
    assert source.calls == [(WINDOW.start, WINDOW.end)]


@pytest.mark.asyncio
async def test_dry_run_counts_but_never_creates():
    source = FakeAttendanceSource([_meeting(1), _meeting(2), _meeting(3)])
    clockify = FakeClockify()
    sleep = RecordingSleep()

    outcome = await run_sync(
        WINDOW,
        attendance_source=source,
        time_tracking_sink=clockify,
        dry_run=True,
        pacer=_pacer(sleep),
    )

    assert outcome.synced == 3
    assert clockify.create_calls == []
    assert sleep.waits == []


@pytest.mark.asyncio
async def test_failure_of_one_meeting_does_not_stop_the_others():
    source = FakeAttendanceSource([_meeting(1), _meeting(2), _meeting(3)])
    clockify = FakeClockify(
        fail_on={"[Meet:conferenceRecords/m2]": ClockifyClientError("boom", status_code=500)}
    )
    sleep = RecordingSleep()

    outcome = await run_sync(WINDOW, attendance_source=source, time_tracking_sink=clockify, pacer=_pacer(sleep))

    assert (outcome.synced, outcome.failed, outcome.skipped) == (2, 1, 0)
    assert len(clockify.create_calls) == 3
    # Delay only after the two successful creates, no cooldown for a 500.
    assert sleep.waits == [0.5, 0.5]


@pytest.mark.asyncio
async def test_rate_limited_create_triggers_one_cooldown_and_no_retry():
    source = FakeAttendanceSource([_meeting(1), _meeting(2)])
    clockify = FakeClockify(
        fail_on={
            "[Meet:conferenceRecords/m1]": ClockifyClientError(
                "Failed to create time entry (status=429): Too Many Requests",
                status_code=429,
            )
        }
    )
    sleep = RecordingSleep()

    outcome = await run_sync(WINDOW, attendance_source=source, time_tracking_sink=clockify, pacer=_pacer(sleep))

    assert outcome.failed == 1
    assert outcome.synced == 1
    assert len(clockify.create_calls) == 2
    assert sleep.waits == [0.2, 0.5]


@pytest.mark.asyncio
async def test_existing_tagged_entries_are_skipped_and_counted_in_total():
    earlier = datetime(2025, 1, 4, 8, 0, tzinfo=timezone.utc)
    existing = [
        ExistingEntry(id="x1", description="🎥 Meet: a | 0h 30m [Meet:conferenceRecords/m1]", start=earlier),
        ExistingEntry(id="x2", description="[Meet:conferenceRecords/old]", start=earlier),
        ExistingEntry(id="x3", description="Deep work", start=earlier),
    ]
    source = FakeAttendanceSource([_meeting(1), _meeting(2)])
    clockify = FakeClockify(entries=existing)

    outcome = await run_sync(
        WINDOW,
        attendance_source=source,
        time_tracking_sink=clockify,
        pacer=_pacer(RecordingSleep()),
    )

    assert outcome.skipped == 1
    assert outcome.synced == 1
    assert outcome.total_in_target == 3
    assert [c.description for c in clockify.create_calls] == [
        "🎥 Google Meet (12:00 UTC) | 0h 30m [Meet:conferenceRecords/m2]"
    ]


@pytest.mark.asyncio
async def test_repeated_meeting_in_one_pass_compares_against_same_snapshot():
    """
    The snapshot is not refreshed mid-pass, so a meeting listed twice is
    created twice within one pass.
    """
    source = FakeAttendanceSource([_meeting(1), _meeting(1)])
    clockify = FakeClockify()

    outcome = await run_sync(
        WINDOW,
        attendance_source=source,
        time_tracking_sink=clockify,
        pacer=_pacer(RecordingSleep()),
    )

    assert outcome.synced == 2
    assert clockify.fetch_calls == 1


@pytest.mark.asyncio
async def test_attendance_fetch_failure_is_fatal():
    source = FakeAttendanceSource([], error=RuntimeError("meet down"))
    clockify = FakeClockify()

    with pytest.raises(RuntimeError, match="meet down"):
        await run_sync(WINDOW, attendance_source=source, time_tracking_sink=clockify)

    assert clockify.fetch_calls == 0


@pytest.mark.asyncio
async def test_existing_entries_fetch_failure_is_fatal():
    source = FakeAttendanceSource([_meeting(1)])
    clockify = FakeClockify(fetch_error=ClockifyClientError("nope", status_code=401))

    with pytest.raises(ClockifyClientError):
        await run_sync(WINDOW, attendance_source=source, time_tracking_sink=clockify)

    assert clockify.create_calls == []


@pytest.mark.asyncio
async def test_meeting_with_bracket_in_id_is_counted_as_failed():
    bad = _meeting(1).model_copy(update={"meeting_id": "weird]id"})
    source = FakeAttendanceSource([bad, _meeting(2)])
    clockify = FakeClockify()

    outcome = await run_sync(
        WINDOW,
        attendance_source=source,
        time_tracking_sink=clockify,
        pacer=_pacer(RecordingSleep()),
    )

    assert outcome.failed == 1
    assert outcome.synced == 1


def test_rate_limit_detection():
    assert is_rate_limit_error(ClockifyClientError("x", status_code=429))
    assert is_rate_limit_error(RuntimeError("Failed: Too Many Requests"))
    assert is_rate_limit_error(RuntimeError("status=429"))
    assert not is_rate_limit_error(ClockifyClientError("x", status_code=500))


@pytest.mark.asyncio
async def test_meeting_starting_before_window_midnight_is_not_recreated():
    window = SyncWindow(
        start=datetime(2025, 1, 3, 0, 30, tzinfo=timezone.utc),
        end=datetime(2025, 1, 10, 0, 30, tzinfo=timezone.utc),
    )
    late_call = MeetingRecord(
        meeting_id="conferenceRecords/late",
        start_time=datetime(2025, 1, 2, 23, 30, tzinfo=timezone.utc),
        end_time=datetime(2025, 1, 3, 0, 45, tzinfo=timezone.utc),
        duration_seconds=4500,
    )
    source = FakeAttendanceSource([late_call])
    clockify = FakeClockify()

    first = await run_sync(window, attendance_source=source, time_tracking_sink=clockify, pacer=_pacer(RecordingSleep()))
    second = await run_sync(window, attendance_source=source, time_tracking_sink=clockify, pacer=_pacer(RecordingSleep()))

    assert first.synced == 1
    assert (second.synced, second.skipped) == (0, 1)
    assert len(clockify.create_calls) == 1
    assert clockify.fetched_ranges[-1] == (date(2025, 1, 2), date(2025, 1, 10))


def test_snapshot_dates_default_to_window_days():
    assert snapshot_dates(WINDOW, [_meeting(1)]) == (date(2025, 1, 3), date(2025, 1, 10))
