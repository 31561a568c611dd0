# app/schemas/sync.py
from datetime import date, datetime, timedelta, timezone

from pydantic import BaseModel, Field, model_validator


class SyncWindow(BaseModel):
    """
    Time window covered by one sync pass.

    Google Meet is queried with the exact instants; Clockify is queried by
    calendar date (whole days, UTC) so the existing-entry snapshot always
    covers every meeting found in the window.
    """

    start: datetime = Field(..., description="Window start (inclusive).")
    end: datetime = Field(..., description="Window end (inclusive).")

    @model_validator(mode="after")
    def _check_order(self) -> "SyncWindow":
        if self.start > self.end:
            raise ValueError("window start must not be after window end")
        return self

    @classmethod
    def last_days(cls, days: int, now: datetime | None = None) -> "SyncWindow":
        """
        Window ending `now` (UTC) and starting `days` days earlier.
        """
        end = now or datetime.now(tz=timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)

    @property
    def start_date(self) -> date:
        return _utc(self.start).date()

    @property
    def end_date(self) -> date:
        return _utc(self.end).date()


class SyncOutcome(BaseModel):
    """
    Counters accumulated during one reconciliation pass.
    """

    meetings_found: int = Field(0, ge=0, description="Meetings returned by Google Meet.", examples=[5])
    synced: int = Field(
        0,
        ge=0,
        description="Entries created (or, in dry-run mode, that would be created).",
        examples=[2],
    )
    skipped: int = Field(0, ge=0, description="Meetings already present in Clockify.", examples=[3])
    failed: int = Field(0, ge=0, description="Meetings whose entry creation failed.", examples=[0])
    total_in_target: int = Field(
        0,
        ge=0,
        description=(
            "Previously-synced meeting entries found in Clockify for the window "
            "plus the entries synced in this pass."
        ),
        examples=[5],
    )


class SyncRunResult(BaseModel):
    """
    Summary payload returned by /internal/run-sync and the CLI.
    """

    status: str = Field("success", description="Pass-level status.", examples=["success"])
    message: str = Field(..., description="Short human-readable result.", examples=["Sync completed"])
    triggered_by: str = Field(
        ...,
        description="What started the pass: manual, schedule or cli.",
        examples=["manual"],
    )
    dry_run: bool = Field(..., description="True if no remote writes were performed.")
    window_start: datetime = Field(..., description="Start of the synced window.")
    window_end: datetime = Field(..., description="End of the synced window.")
    stats: SyncOutcome


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
