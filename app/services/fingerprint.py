# app/services/fingerprint.py
"""
Fingerprint tags embedded in Clockify entry descriptions.

A synced entry carries ``[Meet:<meeting_id>]`` somewhere in its description.
The tag is the only record of "this meeting was already synced", so its
format is a versioned contract: changing it breaks duplicate detection
against entries written by earlier versions.
"""
from __future__ import annotations

import re
from typing import Optional

TAG_FORMAT_VERSION = 1
TAG_PREFIX = "[Meet:"
TAG_SUFFIX = "]"

_TAG_RE = re.compile(r"\[Meet:([^\[\]]+)\]")


class InvalidMeetingIdentifier(ValueError):
    """
    Raised when a meeting id cannot be embedded in a tag without
    becoming ambiguous.
    """


def validate_meeting_id(meeting_id: str) -> str:
    if not meeting_id or not meeting_id.strip():
        raise InvalidMeetingIdentifier("meeting id must not be empty")
    if "[" in meeting_id or "]" in meeting_id:
        raise InvalidMeetingIdentifier(
            f"meeting id must not contain brackets: {meeting_id!r}"
        )
    return meeting_id


def build_tag(meeting_id: str) -> str:
    """
    Return the fingerprint tag for a meeting, e.g. ``[Meet:conferenceRecords/abc]``.
    """
    return f"{TAG_PREFIX}{validate_meeting_id(meeting_id)}{TAG_SUFFIX}"


def extract_meeting_id(description: str | None) -> Optional[str]:
    """
    Return the meeting id of the first tag found in a description, if any.
    """
    if not description:
        return None
    match = _TAG_RE.search(description)
    return match.group(1) if match else None
