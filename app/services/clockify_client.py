# app/services/clockify_client.py
from __future__ import annotations

import asyncio
import logging
from datetime import date as date_type
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from app.schemas.time_entry import ExistingEntry, TimeEntryCandidate

logger = logging.getLogger(__name__)

PROJECT_COLOR = "#0AC8B9"
ENTRIES_PAGE_SIZE = 1000
PAGE_PAUSE_SECONDS = 0.02


class ClockifyClientError(RuntimeError):
    """
    Raised when a Clockify API call fails or the client is used before
    `initialize()`.

    `status_code` is the HTTP status when the failure came from a response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ClockifyClient:
    """
    Minimal Clockify REST client for the meeting sync.

    Responsibilities
    ----------------
    - Resolve the current user, the workspace and the project that receives
      meeting entries (`initialize`).
    - Page through the user's time entries for a date range.
    - Create and delete time entries.

    Notes
    -----
    - The client holds no connection state beyond the resolved ids; a fresh
      `httpx.AsyncClient` is used per call.
    - `initialize()` must be awaited before any data method.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.clockify.me/api",
        project_name: str = "Google Meet",
        api_delay_seconds: float = 0.05,
        timeout_seconds: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not api_token:
            raise ValueError("api_token is required")

        self._api_token = api_token
        self._base_url = base_url.rstrip("/")
        self._project_name = project_name
        self._api_delay_seconds = api_delay_seconds
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep

        self.user_id: Optional[str] = None
        self.workspace_id: Optional[str] = None
        self.project_id: Optional[str] = None

    @property
    def is_initialized(self) -> bool:
        return self.user_id is not None and self.workspace_id is not None

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Api-Key": self._api_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                return await client.request(
                    method=method.upper(),
                    url=url,
                    headers=self._headers(),
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as exc:
            raise ClockifyClientError(f"Clockify {method.upper()} {path} failed: {exc}") from exc

    async def _call(
        self,
        method: str,
        path: str,
        action: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        resp = await self._request(method, path, params=params, json=json)
        if resp.status_code // 100 != 2:
            raise ClockifyClientError(
                f"Failed to {action} (status={resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )
        return resp

    async def initialize(self) -> None:
        """
        Resolve user, workspace and meeting project. Safe to call repeatedly.
        """
        if self.is_initialized:
            return

        user = (await self._call("GET", "/v1/user", "get Clockify user info")).json()
        self.user_id = user["id"]
        logger.info("Clockify user: %s (%s)", user.get("name"), user.get("email"))

        await self._sleep(self._api_delay_seconds)

        workspaces = (
            await self._call("GET", "/v1/workspaces", "get Clockify workspaces")
        ).json()
        if not workspaces:
            self.user_id = None
            raise ClockifyClientError("No Clockify workspaces found")

        self.workspace_id = workspaces[0]["id"]
        logger.info("Using Clockify workspace: %s", workspaces[0].get("name"))

        await self._sleep(self._api_delay_seconds)
        await self._get_or_create_project()

    async def _get_or_create_project(self) -> None:
        projects = (
            await self._call(
                "GET",
                f"/v1/workspaces/{self.workspace_id}/projects",
                "get projects",
                params={"archived": "false"},
            )
        ).json()

        wanted = self._project_name.lower()
        for project in projects:
            if (project.get("name") or "").lower() == wanted:
                self.project_id = project["id"]
                logger.info("Using existing project: %s", project["name"])
                return

        await self._sleep(self._api_delay_seconds)

        created = (
            await self._call(
                "POST",
                f"/v1/workspaces/{self.workspace_id}/projects",
                "create project",
                json={
                    "name": self._project_name,
                    "color": PROJECT_COLOR,
                    "note": "Google Meet attendance history",
                    "billable": False,
                    "public": False,
                },
            )
        ).json()
        self.project_id = created["id"]
        logger.info("Created new project: %s", created.get("name"))

    def _require_initialized(self) -> None:
        if not self.is_initialized:
            raise ClockifyClientError("Clockify client not initialized")

    async def fetch_existing_entries(
        self, start_date: date_type, end_date: date_type
    ) -> List[ExistingEntry]:
        """
        Return every time entry of the user between the two dates (inclusive,
        whole UTC days), following Clockify's page/page-size pagination.
        """
        self._require_initialized()

        entries: List[ExistingEntry] = []
        page = 1
        path = f"/v1/workspaces/{self.workspace_id}/user/{self.user_id}/time-entries"

        while True:
            params = {
                "start": f"{start_date.isoformat()}T00:00:00Z",
                "end": f"{end_date.isoformat()}T23:59:59Z",
                "page-size": str(ENTRIES_PAGE_SIZE),
                "page": str(page),
            }
            batch = (await self._call("GET", path, "get time entries", params=params)).json()
            entries.extend(ExistingEntry.from_clockify(item) for item in batch)

            if len(batch) < ENTRIES_PAGE_SIZE:
                break

            page += 1
            await self._sleep(PAGE_PAUSE_SECONDS)

        return entries

    async def create_entry(self, candidate: TimeEntryCandidate) -> ExistingEntry:
        """
        Create a time entry in the configured workspace and meeting project.

        Raises ClockifyClientError (status_code=429 when throttled) on failure.
        """
        self._require_initialized()

        if self.project_id and not candidate.project_id:
            candidate = candidate.model_copy(update={"project_id": self.project_id})

        resp = await self._call(
            "POST",
            f"/v1/workspaces/{self.workspace_id}/time-entries",
            "create time entry",
            json=candidate.to_clockify_payload(),
        )
        return ExistingEntry.from_clockify(resp.json())

    async def delete_entry(self, entry_id: str) -> None:
        self._require_initialized()
        await self._call(
            "DELETE",
            f"/v1/workspaces/{self.workspace_id}/time-entries/{entry_id}",
            "delete time entry",
        )
