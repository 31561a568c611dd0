# app/schemas/time_entry.py
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class TimeEntryCandidate(BaseModel):
    """
    Payload the sync intends to create in Clockify for one meeting.
    """

    start: datetime = Field(..., description="Entry start (aggregated meeting start).")
    end: datetime = Field(..., description="Entry end (aggregated meeting end).")
    billable: bool = Field(False, description="Meeting entries are never billable.")
    description: str = Field(
        ...,
        description="Human-readable summary that embeds the [Meet:<id>] tag.",
        examples=["🎥 Meet: abc-mnop-xyz | 0h 40m [Meet:conferenceRecords/abc-123]"],
    )
    project_id: str | None = Field(
        None,
        description="Clockify project id; filled in by the Clockify client when known.",
    )

    def to_clockify_payload(self) -> dict:
        payload = {
            "start": _iso_utc(self.start),
            "end": _iso_utc(self.end),
            "billable": self.billable,
            "description": self.description,
        }
        if self.project_id:
            payload["projectId"] = self.project_id
        return payload


class ExistingEntry(BaseModel):
    """
    A time entry already present in Clockify for the queried window.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Clockify time entry id.")
    description: str = Field("", description="Entry description text.")
    start: datetime | None = Field(None, description="Entry start instant.")
    end: datetime | None = Field(None, description="Entry end instant, None while running.")
    project_id: str | None = None
    workspace_id: str | None = None

    @classmethod
    def from_clockify(cls, payload: dict) -> "ExistingEntry":
        """
        Build an ExistingEntry from a raw Clockify time-entry JSON object.
        """
        interval = payload.get("timeInterval") or {}
        return cls(
            id=payload["id"],
            description=payload.get("description") or "",
            start=interval.get("start"),
            end=interval.get("end"),
            project_id=payload.get("projectId"),
            workspace_id=payload.get("workspaceId"),
        )


def _iso_utc(value: datetime) -> str:
    """
    Format an instant the way Clockify expects it ("YYYY-MM-DDTHH:MM:SSZ").

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
