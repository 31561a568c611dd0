# tests/test_fingerprint.py
import pytest

from app.services.fingerprint import (
    InvalidMeetingIdentifier,
    build_tag,
    extract_meeting_id,
)


def test_build_tag_embeds_identifier_verbatim():
    assert build_tag("abc123") == "[Meet:abc123]"
    assert build_tag("conferenceRecords/x-1") == "[Meet:conferenceRecords/x-1]"


@pytest.mark.parametrize("bad", ["", "   ", "abc]", "[abc", "a]b[c"])
def test_build_tag_rejects_ambiguous_identifiers(bad):
    with pytest.raises(InvalidMeetingIdentifier):
        build_tag(bad)


def test_extract_meeting_id_finds_tag_inside_description():
    description = "🎥 Meet: abc-defg-hij | 0h 40m [Meet:conferenceRecords/abc]"
    assert extract_meeting_id(description) == "conferenceRecords/abc"


def test_extract_meeting_id_returns_none_without_tag():
    assert extract_meeting_id("Code review") is None
    assert extract_meeting_id("") is None
    assert extract_meeting_id(None) is None
