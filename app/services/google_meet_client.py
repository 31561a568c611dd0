# app/services/google_meet_client.py
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from app.schemas.attendance import AttendanceSession, MeetingRecord
from app.services.session_aggregator import SessionAggregator

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
RECORDS_PAGE_PAUSE_SECONDS = 0.1
PARTICIPANT_PAUSE_SECONDS = 0.05

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


class GoogleMeetClientError(RuntimeError):
    """
    Raised when a Google Meet API call fails. Fatal to a sync pass.
    """


def parse_rfc3339(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Google RFC 3339 timestamp (nanosecond precision, 'Z' suffix)
    into an aware UTC datetime.
    """
    if not value:
        return None
    cleaned = _FRACTION_RE.sub(r".\1", value.replace("Z", "+00:00"))
    dt = datetime.fromisoformat(cleaned)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class GoogleMeetClient:
    """
    Thin async client over the Google Meet REST API v2 conference records.

    The bearer token comes from `access_token_provider`, an async callable
    (normally a GoogleTokenProvider), so token refresh stays outside this
    class.
    """

    def __init__(
        self,
        access_token_provider: Callable[[], Awaitable[str]],
        base_url: str = "https://meet.googleapis.com/v2",
        timeout_seconds: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._token_provider = access_token_provider
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep

    async def pause(self, seconds: float) -> None:
        await self._sleep(seconds)

    async def get_json(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Issue an authenticated GET and return the JSON payload.

        Raises GoogleMeetClientError on transport errors and non-2xx responses.
        """
        token = await self._token_provider()
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.request(
                    method="GET", url=url, headers=headers, params=params
                )
        except httpx.HTTPError as exc:
            raise GoogleMeetClientError(f"Google Meet GET {path} failed: {exc}") from exc

        if resp.status_code // 100 != 2:
            raise GoogleMeetClientError(
                f"Google Meet GET failed (status={resp.status_code}): {resp.text}"
            )
        return resp.json()

    async def _list_all(
        self,
        path: str,
        key: str,
        params: Optional[Dict[str, Any]] = None,
        page_pause: float = 0.0,
    ) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page_token: Optional[str] = None

        while True:
            query = {"pageSize": PAGE_SIZE, **(params or {})}
            if page_token:
                query["pageToken"] = page_token

            payload = await self.get_json(path, params=query)
            items.extend(payload.get(key) or [])

            page_token = payload.get("nextPageToken") or None
            if not page_token:
                return items
            if page_pause:
                await self.pause(page_pause)

    async def list_conference_records(
        self, start: datetime, end: datetime
    ) -> List[Dict[str, Any]]:
        """
        Conferences overlapping [start, end].
        """
        flt = f'end_time>="{_rfc3339(start)}" AND start_time<="{_rfc3339(end)}"'
        return await self._list_all(
            "/conferenceRecords",
            "conferenceRecords",
            params={"filter": flt},
            page_pause=RECORDS_PAGE_PAUSE_SECONDS,
        )

    async def get_space(self, space_name: str) -> Dict[str, Any]:
        return await self.get_json(f"/{space_name}")

    async def list_participants(self, conference_name: str) -> List[Dict[str, Any]]:
        return await self._list_all(f"/{conference_name}/participants", "participants")

    async def list_participant_sessions(
        self, participant_name: str
    ) -> List[Dict[str, Any]]:
        return await self._list_all(
            f"/{participant_name}/participantSessions", "participantSessions"
        )


class GoogleMeetAttendanceSource:
    """
    Attendance collaborator of the sync: turns conference records into
    aggregated MeetingRecords.

    When `user_resource` (e.g. "users/1234567890") is given, only sessions
    of the signed-in participant with that id are aggregated; otherwise every
    participant's sessions count.
    """

    def __init__(self, client: GoogleMeetClient, user_resource: Optional[str] = None) -> None:
        self.client = client
        self.user_resource = user_resource
        self._spaces: Dict[str, Dict[str, Any]] = {}

    def _is_tracked(self, participant: Dict[str, Any]) -> bool:
        if not self.user_resource:
            return True
        signed_in = participant.get("signedinUser") or {}
        return signed_in.get("user") == self.user_resource

    async def _sessions_for(self, conference_name: str) -> List[AttendanceSession]:
        sessions: List[AttendanceSession] = []
        participants = await self.client.list_participants(conference_name)

        for participant in participants:
            name = participant.get("name")
            if not name or not self._is_tracked(participant):
                continue

            for raw in await self.client.list_participant_sessions(name):
                start = parse_rfc3339(raw.get("startTime"))
                if not raw.get("name") or start is None:
                    continue
                sessions.append(
                    AttendanceSession(
                        session_id=raw["name"],
                        start_time=start,
                        end_time=parse_rfc3339(raw.get("endTime")),
                    )
                )

            await self.client.pause(PARTICIPANT_PAUSE_SECONDS)

        return sessions

    async def _space_details(self, space: Any) -> Dict[str, Any]:
        """
        Meeting code/URI of a conference's space.

        Conference records reference their space by resource name, so the
        details are looked up (once per space and pass). A failed lookup only
        costs the human-readable code, never the meeting.
        """
        if isinstance(space, dict):
            return space
        if not space:
            return {}
        if space not in self._spaces:
            try:
                self._spaces[space] = await self.client.get_space(space)
            except GoogleMeetClientError as exc:
                logger.warning("Could not resolve %s: %s", space, exc)
                self._spaces[space] = {}
        return self._spaces[space]

    async def fetch_meeting_records(
        self, start: datetime, end: datetime
    ) -> List[MeetingRecord]:
        """
        All meetings in the window with at least one finished session, in the
        order Google returns the conference records.
        """
        meetings: List[MeetingRecord] = []

        for record in await self.client.list_conference_records(start, end):
            name = record.get("name")
            if not name or not record.get("startTime"):
                continue

            sessions = await self._sessions_for(name)
            if not any(s.end_time is not None for s in sessions):
                logger.debug("Skipping %s: no finished sessions yet", name)
                continue

            space = await self._space_details(record.get("space"))
            meeting = SessionAggregator.aggregate(
                meeting_id=name,
                sessions=sessions,
                meeting_code=space.get("meetingCode") or "",
                meeting_uri=space.get("meetingUri") or "",
            )
            if meeting is not None:
                meetings.append(meeting)

        return meetings
