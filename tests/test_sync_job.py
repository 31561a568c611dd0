# tests/test_sync_job.py
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.core.config import Settings
from app.schemas.attendance import MeetingRecord
from app.schemas.time_entry import ExistingEntry
from app.services.sync_job import (
    SyncConfigurationError,
    build_clockify_client,
    build_google_oauth,
    run_sync_job,
)

NOW = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)


def _settings(**overrides) -> Settings:
    values = {
        "CLOCKIFY_API_TOKEN": "clockify-token",
        "CLOCKIFY_API_DELAY_MS": 10,
        "RATE_LIMIT_COOLDOWN_MS": 20,
        "SYNC_DAYS": 7,
        "DRY_RUN": False,
    }
    values.update(overrides)
    return Settings(**values)


class FakeSource:
    def __init__(self, meetings, gate: asyncio.Event | None = None):
        self.meetings = meetings
        self.gate = gate
        self.windows = []
        self.active = 0
        self.max_active = 0

    async def fetch_meeting_records(self, start, end):
        self.windows.append((start, end))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            return list(self.meetings)
        finally:
            self.active -= 1


class FakeClockify:
    def __init__(self):
        self.initialized = 0
        self.entries = []

    async def initialize(self):
        self.initialized += 1

    async def fetch_existing_entries(self, start_date, end_date):
        return list(self.entries)

    async def create_entry(self, candidate):
        entry = ExistingEntry(id=str(len(self.entries)), description=candidate.description)
        self.entries.append(entry)
        return entry


def _meeting() -> MeetingRecord:
    start = NOW - timedelta(days=1)
    return MeetingRecord(
        meeting_id="conferenceRecords/one",
        meeting_code="abc-defg-hij",
        start_time=start,
        end_time=start + timedelta(minutes=45),
        duration_seconds=2700,
    )


def _record_sleep(waits):
    async def sleep(seconds):
        waits.append(seconds)

    return sleep


@pytest.mark.asyncio
async def test_job_uses_settings_window_and_paces_writes():
    waits = []
    source = FakeSource([_meeting()])
    clockify = FakeClockify()

    result = await run_sync_job(
        triggered_by="manual",
        settings=_settings(),
        attendance_source=source,
        clockify=clockify,
        sleep=_record_sleep(waits),
        now=NOW,
    )

    assert result.message == "Sync completed"
    assert result.triggered_by == "manual"
    assert result.dry_run is False
    assert result.stats.synced == 1
    assert result.window_end == NOW
    assert result.window_start == NOW - timedelta(days=7)
    assert source.windows == [(NOW - timedelta(days=7), NOW)]
    assert clockify.initialized == 1
    assert waits == [0.01]


@pytest.mark.asyncio
async def test_job_dry_run_defaults_from_settings_and_can_be_overridden():
    clockify = FakeClockify()

    result = await run_sync_job(
        triggered_by="cli",
        settings=_settings(DRY_RUN=True),
        attendance_source=FakeSource([_meeting()]),
        clockify=clockify,
        now=NOW,
    )
    assert result.dry_run is True
    assert clockify.entries == []

    result = await run_sync_job(
        triggered_by="cli",
        dry_run=False,
        days=2,
        settings=_settings(DRY_RUN=True, CLOCKIFY_API_DELAY_MS=0),
        attendance_source=FakeSource([_meeting()]),
        clockify=clockify,
        now=NOW,
    )
    assert result.dry_run is False
    assert result.window_start == NOW - timedelta(days=2)
    assert len(clockify.entries) == 1


@pytest.mark.asyncio
async def test_job_reports_no_meetings():
    result = await run_sync_job(
        triggered_by="schedule",
        settings=_settings(),
        attendance_source=FakeSource([]),
        clockify=FakeClockify(),
        now=NOW,
    )

    assert result.message == "No meetings found"
    assert result.stats.meetings_found == 0


@pytest.mark.asyncio
async def test_concurrent_triggers_run_one_pass_at_a_time():
    gate = asyncio.Event()
    source = FakeSource([_meeting()], gate=gate)
    clockify = FakeClockify()
    settings = _settings(CLOCKIFY_API_DELAY_MS=0)

    first = asyncio.create_task(
        run_sync_job(triggered_by="manual", settings=settings, attendance_source=source, clockify=clockify, now=NOW)
    )
    second = asyncio.create_task(
        run_sync_job(triggered_by="schedule", settings=settings, attendance_source=source, clockify=clockify, now=NOW)
    )
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(first, second)

    assert source.max_active == 1
    # The second pass sees the entry written by the first one.
    assert [r.stats.synced for r in results] == [1, 0]
    assert results[1].stats.skipped == 1


def test_builders_require_credentials():
    with pytest.raises(SyncConfigurationError, match="CLOCKIFY_API_TOKEN"):
        build_clockify_client(_settings(CLOCKIFY_API_TOKEN=None))

    with pytest.raises(SyncConfigurationError, match="GOOGLE_CLIENT_ID"):
        build_google_oauth(_settings(GOOGLE_CLIENT_ID=None, GOOGLE_CLIENT_SECRET=None))


def test_clockify_builder_converts_delay_to_seconds():
    client = build_clockify_client(_settings(CLOCKIFY_API_DELAY_MS=250))

    assert client._api_delay_seconds == 0.25
