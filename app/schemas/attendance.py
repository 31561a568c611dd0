# app/schemas/attendance.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AttendanceSession(BaseModel):
    """
    One continuous join-to-leave interval of a participant in a single
    conference, as reported by the Google Meet participantSessions API.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(
        ...,
        description="Opaque session resource name from the provider.",
        examples=["conferenceRecords/abc/participants/p1/participantSessions/s1"],
    )
    start_time: datetime = Field(..., description="Instant the participant joined.")
    end_time: datetime | None = Field(
        None,
        description="Instant the participant left, or None while still connected.",
    )


class MeetingRecord(BaseModel):
    """
    A single conference aggregated from one or more attendance sessions.

    `start_time` is the earliest session start and `end_time` the latest
    session end, so rejoins are folded into one attendance window.
    """

    model_config = ConfigDict(frozen=True)

    meeting_id: str = Field(
        ...,
        description="Stable conference record name, e.g. 'conferenceRecords/abc-123'.",
        examples=["conferenceRecords/abc-123"],
    )
    meeting_code: str = Field(
        "",
        description="Short shareable meeting code, empty when unknown.",
        examples=["abc-mnop-xyz"],
    )
    meeting_uri: str = Field(
        "",
        description="Meeting URL, empty when unknown.",
        examples=["https://meet.google.com/abc-mnop-xyz"],
    )
    start_time: datetime = Field(..., description="Earliest session start.")
    end_time: datetime = Field(..., description="Latest session end.")
    duration_seconds: int = Field(
        ...,
        ge=0,
        description="Whole seconds between start_time and end_time.",
        examples=[2400],
    )
